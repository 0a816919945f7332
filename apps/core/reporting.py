"""
Shared reads for windowed reports.

Every report buckets deals by reporting date (see apps.core.dates) and only
sees deals and splits that existed at the report's read time ``as_of``.
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from apps.core.dates import DateRange, reporting_date
from apps.core.models import CommissionSplit, Deal


def deals_reported_in(
    date_range: DateRange,
    agent_ids=None,
    as_of: datetime | None = None,
) -> list[Deal]:
    """
    Deals whose reporting date falls inside ``date_range``.

    Args:
        date_range: Inclusive reporting window
        agent_ids: Restrict to deals written by these agents (None for all)
        as_of: Ignore deals created after this moment

    Returns:
        Deals with ``reported_on`` set, oldest first
    """
    qs = Deal.objects.reporting_candidates(date_range.start, date_range.end).created_before(as_of)
    if agent_ids is not None:
        qs = qs.for_agents(agent_ids)

    deals = []
    for deal in qs.with_agent().order_by('created_at', 'id'):
        reported_on = reporting_date(deal)
        if reported_on in date_range:
            deal.reported_on = reported_on
            deals.append(deal)
    return deals


def splits_for(deals, as_of: datetime | None = None):
    """Split rows of the given deals, written no later than ``as_of``."""
    return (
        CommissionSplit.objects
        .for_deals(deal.id for deal in deals)
        .created_before(as_of)
    )


def production_by_agent(deals) -> dict[UUID, Decimal]:
    """Sum of annual premium per writing agent."""
    totals: dict[UUID, Decimal] = defaultdict(lambda: Decimal('0.00'))
    for deal in deals:
        totals[deal.agent_id] += deal.annual_premium
    return dict(totals)


def premium_by_type(deals) -> dict:
    """Premium and deal counts split into LIFE and HEALTH."""
    totals = {
        'life_premium': Decimal('0.00'),
        'health_premium': Decimal('0.00'),
        'life_deals': 0,
        'health_deals': 0,
    }
    for deal in deals:
        kind = deal.insurance_type.lower()
        if kind not in ('life', 'health'):
            continue
        totals[f'{kind}_premium'] += deal.annual_premium
        totals[f'{kind}_deals'] += 1
    return totals
