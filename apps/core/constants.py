"""
Core Constants

Centralized configuration values for the commission engine.
"""
from decimal import Decimal

# Commission levels - each rank is 10 points above the one below it
COMMISSION_LEVELS = {
    'PRODIGY': 70,
    'BA': 80,
    'SA': 90,
    'GA': 100,
    'MGA': 110,
    'PARTNER': 120,
    'AO': 130,
}

# Display labels keyed by level, ascending
RANK_LABELS = {
    70: 'Prodigy',
    80: 'BA',
    90: 'SA',
    100: 'GA',
    110: 'MGA',
    120: 'Partner',
    130: 'AO',
}

BASE_LEVEL = COMMISSION_LEVELS['PRODIGY']

# The owner rank; no split for a deal ever pays above this percent of the pool
OWNERSHIP_CAP = COMMISSION_LEVELS['AO']

# Each hop up the tree can add at most this many points of override
OVERRIDE_PER_LEVEL = 10

# Lowest level that runs a team (BA and up)
MANAGER_MIN_LEVEL = COMMISSION_LEVELS['BA']

# Insurance types
INSURANCE_TYPES = ['LIFE', 'HEALTH']

# First-year commission rate applied to premium when nothing more specific is configured
DEFAULT_FYC_RATES = {
    'LIFE': Decimal('1.0'),
    'HEALTH': Decimal('0.5'),
}

# Split roles
ROLE_AGENT = 'AGENT'
ROLE_OVERRIDE_PREFIX = 'OVERRIDE_LEVEL_'
ROLE_HOUSE = 'HOUSE'

# Unclaimed percent policies
UNCLAIMED_UNASSIGNED = 'unassigned'
UNCLAIMED_HOUSE = 'house'
UNCLAIMED_POLICIES = [UNCLAIMED_UNASSIGNED, UNCLAIMED_HOUSE]

# Deposit lands this many business days after the policy effective date
DEPOSIT_BUSINESS_DAYS = 3

WEEKDAY_NAMES = [
    'Monday',
    'Tuesday',
    'Wednesday',
    'Thursday',
    'Friday',
    'Saturday',
    'Sunday',
]

# Money precision
CENT = Decimal('0.01')


def rank_label(level: int | None) -> str:
    """Rank label for a commission level; unknown levels read as Prodigy."""
    return RANK_LABELS.get(level or BASE_LEVEL, RANK_LABELS[BASE_LEVEL])


def override_role(hops: int) -> str:
    """Split role for an ancestor ``hops`` steps above the writing agent."""
    return f'{ROLE_OVERRIDE_PREFIX}{hops}'


def is_override_role(role: str) -> bool:
    return role.startswith(ROLE_OVERRIDE_PREFIX)


def parse_level(value: str | int | None) -> int | None:
    """
    Accept a level filter given either as a number (``"100"``) or a rank
    label (``"GA"``, ``"partner"``). Returns None when it matches neither.
    """
    if value is None or value == '':
        return None
    if isinstance(value, int):
        return value if value in RANK_LABELS else None
    text = str(value).strip()
    if text.isdigit():
        level = int(text)
        return level if level in RANK_LABELS else None
    return COMMISSION_LEVELS.get(text.upper())


def hop_order(role: str) -> int:
    """Sort key for split roles: AGENT first, overrides by hop distance, HOUSE last."""
    if role == ROLE_AGENT:
        return 0
    if role == ROLE_HOUSE:
        return 10_000
    return int(role.removeprefix(ROLE_OVERRIDE_PREFIX))
