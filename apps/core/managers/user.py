"""
User QuerySet and Manager for hierarchy queries.
"""
from django.db import models
from django.db.models import Q


class UserQuerySet(models.QuerySet):
    """
    Custom QuerySet for User model.
    """

    def at_level(self, level: int | None):
        """Filter to a commission level; None leaves the queryset alone."""
        if level is None:
            return self
        return self.filter(commission_level=level)

    def children_of(self, parent_ids):
        """Direct downlines of any of the given users."""
        return self.filter(upline_id__in=list(parent_ids))

    def search(self, query: str):
        """
        Search users by name or email.

        Args:
            query: Search string

        Returns:
            Filtered queryset
        """
        if not query:
            return self

        q = Q(first_name__icontains=query) | Q(last_name__icontains=query) | Q(email__icontains=query)

        # "Jane Doe" should match first and last name together
        parts = query.split()
        if len(parts) > 1:
            q |= Q(first_name__icontains=parts[0]) & Q(last_name__icontains=' '.join(parts[1:]))

        return self.filter(q)


class UserManager(models.Manager):
    """
    Manager for User model.
    """

    def get_queryset(self):
        return UserQuerySet(self.model, using=self._db)

    def children_of(self, parent_ids):
        return self.get_queryset().children_of(parent_ids)
