"""
Hierarchy URL Configuration
"""
from django.urls import path

from .views import DescendantsView, DownlineSearchView, SubtreeStatsView

urlpatterns = [
    path('<uuid:user_id>/descendants', DescendantsView.as_view(), name='hierarchy-descendants'),
    path('<uuid:user_id>/stats', SubtreeStatsView.as_view(), name='hierarchy-stats'),
    path('<uuid:user_id>/search', DownlineSearchView.as_view(), name='hierarchy-search'),
]
