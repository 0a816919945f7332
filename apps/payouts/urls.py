"""
Payouts URL Configuration
"""
from django.urls import path

from .views import LeaderboardView, PersonalPayoutsView, ProductionRankView, TeamPayoutsView

urlpatterns = [
    path('leaderboard', LeaderboardView.as_view(), name='payouts-leaderboard'),
    path('<uuid:user_id>/weekly', PersonalPayoutsView.as_view(), name='payouts-weekly'),
    path('<uuid:user_id>/weekly/team', TeamPayoutsView.as_view(), name='payouts-weekly-team'),
    path('<uuid:user_id>/rank', ProductionRankView.as_view(), name='payouts-rank'),
]
