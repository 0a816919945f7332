"""
Factory Boy Factories for Commission Engine Models

Import all factories here for easy access in tests.
"""
from tests.factories.core import (
    CarrierFactory,
    CarrierRateFactory,
    UserFactory,
)
from tests.factories.deals import (
    CommissionSplitFactory,
    DealFactory,
)

__all__ = [
    # Core
    'UserFactory',
    'CarrierFactory',
    'CarrierRateFactory',
    # Deals
    'DealFactory',
    'CommissionSplitFactory',
]
