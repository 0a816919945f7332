"""
Commission Selectors

Read side of commission_splits: per-deal rows, reconciliation of a deal's
rows against its pool, and the company-wide commission report.
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.core.constants import (
    MANAGER_MIN_LEVEL,
    OWNERSHIP_CAP,
    ROLE_AGENT,
    ROLE_HOUSE,
    hop_order,
    is_override_role,
)
from apps.core.dates import DateRange
from apps.core.exceptions import InconsistentSplitError, UnknownDealError
from apps.core.hierarchy import get_nodes
from apps.core.models import CommissionSplit, Deal
from apps.core.reporting import deals_reported_in, premium_by_type, splits_for
from apps.core.utils import engine_setting, money, to_cents

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def get_deal_splits(deal_id: UUID) -> dict:
    """
    Persisted split rows for a deal.

    Raises:
        UnknownDealError: If the deal does not exist
    """
    deal = Deal.objects.filter(id=deal_id).first()
    if deal is None:
        raise UnknownDealError(deal_id)

    rows = sorted(
        CommissionSplit.objects
        .filter(deal_id=deal.id)
        .select_related('beneficiary')
        .order_by('created_at', 'id'),
        key=lambda row: hop_order(row.role),
    )
    return {
        'kind': 'persisted',
        'deal_id': str(deal.id),
        'annual_premium': money(deal.annual_premium),
        'insurance_type': deal.insurance_type,
        'pool': money(rows[0].pool_amount) if rows else None,
        'fyc_rate': str(rows[0].fyc_rate) if rows else None,
        'total_percent': sum(row.percent for row in rows),
        'total_amount': money(sum((row.amount for row in rows), ZERO)),
        'splits': [
            {
                'id': str(row.id),
                'beneficiary_id': str(row.beneficiary_id),
                'beneficiary_name': row.beneficiary.full_name,
                'role': row.role,
                'percent': row.percent,
                'amount': money(row.amount),
                'beneficiary_level': row.beneficiary_level,
                'created_at': row.created_at.isoformat(),
            }
            for row in rows
        ],
    }


def reconcile_deal_splits(deal_id: UUID) -> dict:
    """
    Check a deal's persisted splits against its premium and rate snapshot.

    The stored pool must equal premium x fyc_rate, each amount must equal
    pool x percent / 100, the rows must include exactly one AGENT line for
    the writing agent and percents must not exceed 130. Differences within
    COMMISSION_RECONCILIATION_TOLERANCE (per row) are rounding.

    Returns:
        Summary dict when everything reconciles

    Raises:
        UnknownDealError: If the deal does not exist
        InconsistentSplitError: With the list of problems found
    """
    deal = Deal.objects.filter(id=deal_id).first()
    if deal is None:
        raise UnknownDealError(deal_id)

    tolerance = Decimal(str(engine_setting('COMMISSION_RECONCILIATION_TOLERANCE', '0.01')))
    rows = list(CommissionSplit.objects.filter(deal_id=deal.id))
    problems: list[str] = []

    if not rows:
        raise InconsistentSplitError(deal.id, ['deal has no commission splits'])

    rates = {row.fyc_rate for row in rows}
    pools = {row.pool_amount for row in rows}
    if len(rates) > 1:
        problems.append(f'rows disagree on fyc_rate: {sorted(str(r) for r in rates)}')
    if len(pools) > 1:
        problems.append(f'rows disagree on pool_amount: {sorted(str(p) for p in pools)}')

    rate = rows[0].fyc_rate
    pool = rows[0].pool_amount
    expected_pool = to_cents(deal.annual_premium * rate)
    if abs(expected_pool - pool) > tolerance:
        problems.append(f'pool {pool} != premium {deal.annual_premium} x rate {rate} = {expected_pool}')

    for row in rows:
        expected = to_cents(pool * Decimal(row.percent) / Decimal(100))
        if abs(expected - row.amount) > tolerance:
            problems.append(f'{row.role} amount {row.amount} != {row.percent}% of {pool} = {expected}')

    total_percent = sum(row.percent for row in rows)
    if total_percent > OWNERSHIP_CAP:
        problems.append(f'percents sum to {total_percent}, above {OWNERSHIP_CAP}')

    agent_rows = [row for row in rows if row.role == ROLE_AGENT]
    if len(agent_rows) != 1 or agent_rows[0].beneficiary_id != deal.agent_id:
        problems.append('expected exactly one AGENT split for the writing agent')

    total_amount = sum((row.amount for row in rows), ZERO)
    expected_total = to_cents(pool * Decimal(total_percent) / Decimal(100))
    if abs(expected_total - total_amount) > tolerance * len(rows):
        problems.append(f'amounts sum to {total_amount}, expected {expected_total}')

    if problems:
        logger.warning(f'Deal {deal.id} failed reconciliation: {problems}')
        raise InconsistentSplitError(deal.id, problems)

    return {
        'deal_id': str(deal.id),
        'consistent': True,
        'pool': money(pool),
        'fyc_rate': str(rate),
        'total_percent': total_percent,
        'total_amount': money(total_amount),
        'split_count': len(rows),
    }


def _tier(row: CommissionSplit) -> str:
    if row.role == ROLE_HOUSE:
        return 'house'
    if row.role == ROLE_AGENT:
        return 'agent'
    if row.beneficiary_level >= OWNERSHIP_CAP:
        return 'owner'
    return 'manager'


def _share(part: Decimal, whole: Decimal) -> str:
    if not whole:
        return '0.00'
    return str(to_cents(part * Decimal(100) / whole))


def company_commission_report(date_range: DateRange, as_of: datetime | None = None) -> dict:
    """
    Company-wide commission rollup for a reporting window.

    Sums persisted splits of deals reported in the window by tier: agent
    (personal commission), manager (overrides below the cap), owner
    (overrides paid to level 130) and house. The tiers add up to the sum of
    split amounts exactly; unclaimed is the part of each deal's 130% that
    nobody was paid.

    Args:
        date_range: Reporting window
        as_of: Read time; defaults to now

    Returns:
        Dictionary with totals, tier shares, per-beneficiary breakdown and
        owner breakdown
    """
    as_of = as_of or timezone.now()

    with transaction.atomic():
        deals = deals_reported_in(date_range, as_of=as_of)
        rows = list(splits_for(deals, as_of=as_of))

    deals_by_id = {deal.id: deal for deal in deals}
    rows_by_deal: dict[UUID, list[CommissionSplit]] = defaultdict(list)
    for row in rows:
        rows_by_deal[row.deal_id].append(row)

    tiers = {'agent': ZERO, 'manager': ZERO, 'owner': ZERO, 'house': ZERO}
    owner_breakdown = {'from_managers': ZERO, 'from_direct_agents': ZERO}
    beneficiaries: dict[UUID, dict] = {}
    total_pool = ZERO
    unclaimed = ZERO

    for deal_id, deal_rows in rows_by_deal.items():
        pool = deal_rows[0].pool_amount
        total_pool += pool
        claimed = sum(row.percent for row in deal_rows)
        unclaimed += to_cents(pool * Decimal(OWNERSHIP_CAP - claimed) / Decimal(100))

        agent_level = next(
            (row.beneficiary_level for row in deal_rows if row.role == ROLE_AGENT),
            None,
        )
        if agent_level is None:
            agent_level = deals_by_id[deal_id].agent.commission_level

        for row in deal_rows:
            tier = _tier(row)
            tiers[tier] += row.amount

            if tier == 'owner':
                key = 'from_managers' if agent_level >= MANAGER_MIN_LEVEL else 'from_direct_agents'
                owner_breakdown[key] += row.amount

            entry = beneficiaries.setdefault(row.beneficiary_id, {
                'personal_commission': ZERO,
                'override_earned': ZERO,
                'house_earned': ZERO,
                'deal_ids': set(),
                'override_deal_ids': set(),
                'level': row.beneficiary_level,
            })
            if row.role == ROLE_AGENT:
                entry['personal_commission'] += row.amount
                entry['deal_ids'].add(row.deal_id)
            elif is_override_role(row.role):
                entry['override_earned'] += row.amount
                entry['override_deal_ids'].add(row.deal_id)
            else:
                entry['house_earned'] += row.amount

    unsplit_deals = len([deal for deal in deals if deal.id not in rows_by_deal])
    if unsplit_deals:
        logger.warning(f'{unsplit_deals} deals in {date_range} have no commission splits')

    total_paid = sum(tiers.values(), ZERO)
    nodes = get_nodes(beneficiaries)

    breakdown = []
    for user_id, entry in beneficiaries.items():
        node = nodes.get(user_id)
        total = entry['personal_commission'] + entry['override_earned'] + entry['house_earned']
        breakdown.append({
            'user_id': str(user_id),
            'name': node.full_name if node else None,
            'commission_level': node.commission_level if node else entry['level'],
            'personal_commission': money(entry['personal_commission']),
            'personal_deals': len(entry['deal_ids']),
            'override_earned': money(entry['override_earned']),
            'override_deals': len(entry['override_deal_ids']),
            'house_earned': money(entry['house_earned']),
            'total_commission': money(total),
            '_total': total,
        })
    breakdown.sort(key=lambda item: (-item['_total'], item['user_id']))
    for item in breakdown:
        del item['_total']

    total_premium = sum((deal.annual_premium for deal in deals), ZERO)
    by_type = premium_by_type(deals)
    avg_deal_size = to_cents(total_premium / len(deals)) if deals else ZERO

    return {
        'date_range': date_range.as_dict(),
        'as_of': as_of.isoformat(),
        'company_totals': {
            'total_deals': len(deals),
            'split_deals': len(rows_by_deal),
            'unsplit_deals': unsplit_deals,
            'total_premium': money(total_premium),
            'life_premium': money(by_type['life_premium']),
            'health_premium': money(by_type['health_premium']),
            'life_deals': by_type['life_deals'],
            'health_deals': by_type['health_deals'],
            'avg_deal_size': money(avg_deal_size),
            'total_commission_pool': money(total_pool),
            'total_paid': money(total_paid),
            'agent_commissions': money(tiers['agent']),
            'manager_overrides': money(tiers['manager']),
            'owner_overrides': money(tiers['owner']),
            'house_amount': money(tiers['house']),
            'unclaimed_amount': money(unclaimed),
        },
        'pool_shares': {
            tier: _share(amount, total_pool) for tier, amount in tiers.items()
        } | {'unclaimed': _share(unclaimed, total_pool)},
        'owner_breakdown': {
            'from_managers': money(owner_breakdown['from_managers']),
            'from_direct_agents': money(owner_breakdown['from_direct_agents']),
            'total_overrides': money(owner_breakdown['from_managers'] + owner_breakdown['from_direct_agents']),
        },
        'beneficiaries': breakdown,
    }
