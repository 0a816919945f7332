"""
Core managers for User, Deal and CommissionSplit models.
"""
from .deal import DealManager, DealQuerySet
from .split import CommissionSplitManager, CommissionSplitQuerySet
from .user import UserManager, UserQuerySet

__all__ = [
    'UserQuerySet',
    'UserManager',
    'DealQuerySet',
    'DealManager',
    'CommissionSplitQuerySet',
    'CommissionSplitManager',
]
