"""
Commissions URL Configuration
"""
from django.urls import path

from .views import CommissionReportView, DealReconcileView, DealSplitsView, SplitPreviewView

urlpatterns = [
    path('deals/<uuid:deal_id>/splits', DealSplitsView.as_view(), name='deal-splits'),
    path('deals/<uuid:deal_id>/reconcile', DealReconcileView.as_view(), name='deal-reconcile'),
    path('preview', SplitPreviewView.as_view(), name='split-preview'),
    path('report', CommissionReportView.as_view(), name='commission-report'),
]
