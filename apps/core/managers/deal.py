"""
Deal QuerySet and Manager for reporting queries.
"""
from datetime import date, datetime, timedelta

from django.db import models
from django.db.models import Q


class DealQuerySet(models.QuerySet):
    """
    Custom QuerySet for Deal model.
    """

    def for_agents(self, agent_ids):
        """Filter to deals written by any of the given agents."""
        return self.filter(agent_id__in=list(agent_ids))

    def created_before(self, as_of: datetime | None):
        """Ignore deals created after the read time of an aggregation."""
        if as_of is None:
            return self
        return self.filter(created_at__lte=as_of)

    def reporting_candidates(self, date_from: date, date_to: date):
        """
        Narrow to deals whose reporting date can fall inside the range.

        The reporting date is the deposit date, else the effective date plus
        three business days, else the creation date. The business day shift
        is at most five calendar days, so the effective date window is widened
        by a week; callers apply the exact date in Python.

        Args:
            date_from: Start date (inclusive)
            date_to: End date (inclusive)

        Returns:
            Filtered queryset
        """
        return self.filter(
            Q(deposit_date__gte=date_from, deposit_date__lte=date_to) |
            Q(
                deposit_date__isnull=True,
                effective_date__gte=date_from - timedelta(days=7),
                effective_date__lte=date_to,
            ) |
            Q(
                deposit_date__isnull=True,
                effective_date__isnull=True,
                created_at__date__gte=date_from,
                created_at__date__lte=date_to,
            )
        )

    def with_agent(self):
        """Include the writing agent with select_related."""
        return self.select_related('agent')


class DealManager(models.Manager):
    """
    Manager for Deal model.
    """

    def get_queryset(self):
        return DealQuerySet(self.model, using=self._db)

    def for_agents(self, agent_ids):
        return self.get_queryset().for_agents(agent_ids)

    def reporting_candidates(self, date_from: date, date_to: date):
        return self.get_queryset().reporting_candidates(date_from, date_to)
