"""
CommissionSplit QuerySet and Manager.
"""
from datetime import datetime

from django.db import models

from apps.core.constants import ROLE_OVERRIDE_PREFIX


class CommissionSplitQuerySet(models.QuerySet):
    """
    Custom QuerySet for CommissionSplit model.
    """

    def for_beneficiary(self, user_id):
        return self.filter(beneficiary_id=user_id)

    def for_deals(self, deal_ids):
        return self.filter(deal_id__in=list(deal_ids))

    def override_rows(self):
        """Override shares paid to ancestors of the writing agent."""
        return self.filter(role__startswith=ROLE_OVERRIDE_PREFIX)

    def created_before(self, as_of: datetime | None):
        """Ignore splits written after the read time of an aggregation."""
        if as_of is None:
            return self
        return self.filter(created_at__lte=as_of)


class CommissionSplitManager(models.Manager):
    """
    Manager for CommissionSplit model.
    """

    def get_queryset(self):
        return CommissionSplitQuerySet(self.model, using=self._db)

    def for_beneficiary(self, user_id):
        return self.get_queryset().for_beneficiary(user_id)

    def for_deals(self, deal_ids):
        return self.get_queryset().for_deals(deal_ids)
