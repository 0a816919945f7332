"""
Payout Selectors

Weekly payout statements and production rankings. Weeks run Monday to
Sunday and deals are bucketed by reporting date (deposit date, else
effective date plus three business days, else creation date). Amounts come
from persisted commission splits only.
"""
import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.core.constants import MANAGER_MIN_LEVEL, ROLE_AGENT, is_override_role
from apps.core.dates import (
    DateRange,
    day_name,
    format_week_range,
    get_week_dates,
    get_week_start,
    reporting_date,
)
from apps.core.exceptions import NotAManagerError
from apps.core.hierarchy import get_node, get_nodes, load_downline
from apps.core.models import CommissionSplit, Deal
from apps.core.reporting import deals_reported_in, premium_by_type, production_by_agent, splits_for
from apps.core.utils import money

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _week(week_start: date | None, as_of: datetime) -> DateRange:
    return DateRange.for_week(get_week_start(week_start or timezone.localdate(as_of)))


def _empty_day(day: date) -> dict:
    return {
        'date': day.isoformat(),
        'personal': ZERO,
        'override': ZERO,
        'total': ZERO,
        'deals': 0,
    }


def personal_payouts(
    user_id: UUID,
    week_start: date | None = None,
    as_of: datetime | None = None,
) -> dict:
    """
    A user's commission statement for one week.

    Args:
        user_id: The user
        week_start: Any date in the week (default: the current week)
        as_of: Read time

    Returns:
        Dictionary with personal_commission (AGENT splits), override_earnings
        (OVERRIDE splits paid to the user), a daily_breakdown with all seven
        weekdays zero-filled, and the deals behind the amounts
    """
    as_of = as_of or timezone.now()
    week = _week(week_start, as_of)

    with transaction.atomic():
        user = get_node(user_id)
        candidates = Deal.objects.reporting_candidates(week.start, week.end).created_before(as_of)
        rows = list(
            CommissionSplit.objects
            .for_beneficiary(user.id)
            .created_before(as_of)
            .filter(deal__in=candidates)
            .select_related('deal')
            .order_by('deal__created_at', 'deal_id')
        )

    daily = {day_name(day): _empty_day(day) for day in get_week_dates(week.start)}
    personal = ZERO
    override = ZERO
    other = ZERO
    personal_deals = set()
    override_deals = set()
    deal_lines = []

    for row in rows:
        reported_on = reporting_date(row.deal)
        if reported_on not in week:
            continue

        bucket = daily[day_name(reported_on)]
        if row.role == ROLE_AGENT:
            personal += row.amount
            personal_deals.add(row.deal_id)
            bucket['personal'] += row.amount
        elif is_override_role(row.role):
            override += row.amount
            override_deals.add(row.deal_id)
            bucket['override'] += row.amount
        else:
            other += row.amount
        bucket['total'] += row.amount
        bucket['deals'] += 1

        deal_lines.append({
            'deal_id': str(row.deal_id),
            'agent_id': str(row.deal.agent_id),
            'client_name': row.deal.client_name,
            'policy_number': row.deal.policy_number,
            'annual_premium': money(row.deal.annual_premium),
            'reporting_date': reported_on.isoformat(),
            'day': day_name(reported_on),
            'role': row.role,
            'percent': row.percent,
            'amount': money(row.amount),
        })

    return {
        'user_id': str(user.id),
        'name': user.full_name,
        'commission_level': user.commission_level,
        'rank': user.rank,
        'week_start': week.start.isoformat(),
        'week_end': week.end.isoformat(),
        'week_display': format_week_range(week.start),
        'personal_commission': money(personal),
        'override_earnings': money(override),
        'other_earnings': money(other),
        'total_earnings': money(personal + override + other),
        'personal_deal_count': len(personal_deals),
        'override_deal_count': len(override_deals),
        'daily_breakdown': {
            name: {
                'date': bucket['date'],
                'personal': money(bucket['personal']),
                'override': money(bucket['override']),
                'total': money(bucket['total']),
                'deals': bucket['deals'],
            }
            for name, bucket in daily.items()
        },
        'deals': deal_lines,
    }


def team_payouts(
    manager_id: UUID,
    week_start: date | None = None,
    as_of: datetime | None = None,
) -> dict:
    """
    A manager's team statement for one week.

    Every deal written in the manager's downline counts toward the team; each
    deal is attributed to the direct report whose branch it came from.

    Raises:
        UnknownUserError: If the manager does not exist
        NotAManagerError: If the user is below BA (level 80)
    """
    as_of = as_of or timezone.now()
    week = _week(week_start, as_of)

    with transaction.atomic():
        manager = get_node(manager_id)
        if manager.commission_level < MANAGER_MIN_LEVEL:
            raise NotAManagerError(manager.id, manager.commission_level)

        index = load_downline(manager.id)
        deals = deals_reported_in(week, agent_ids=index.descendant_ids(), as_of=as_of)
        rows = list(splits_for(deals, as_of=as_of).values_list('deal_id', 'beneficiary_id', 'role', 'amount'))

    agent_commission = defaultdict(lambda: ZERO)
    manager_override = defaultdict(lambda: ZERO)
    for deal_id, beneficiary_id, role, amount in rows:
        if role == ROLE_AGENT:
            agent_commission[deal_id] += amount
        elif beneficiary_id == manager.id and is_override_role(role):
            manager_override[deal_id] += amount

    branches: dict[UUID, dict] = {}
    for node in index.direct_recruits():
        branches[node.id] = {
            'agent_id': str(node.id),
            'agent_name': node.full_name,
            'commission_level': node.commission_level,
            'rank': node.rank,
            'status': node.status,
            'deals': 0,
            'production': ZERO,
            'their_commission': ZERO,
            'your_override': ZERO,
        }

    for deal in deals:
        branch_id = index.path_to(deal.agent_id)[1].id
        entry = branches[branch_id]
        entry['deals'] += 1
        entry['production'] += deal.annual_premium
        entry['their_commission'] += agent_commission[deal.id]
        entry['your_override'] += manager_override[deal.id]

    active_branches = [entry for entry in branches.values() if entry['deals']]
    active_branches.sort(key=lambda entry: (-entry['production'], entry['agent_id']))

    totals = {
        'total_production': sum((entry['production'] for entry in active_branches), ZERO),
        'total_deals': sum(entry['deals'] for entry in active_branches),
        'total_commissions': sum((entry['their_commission'] for entry in active_branches), ZERO),
        'your_override': sum((entry['your_override'] for entry in active_branches), ZERO),
    }

    return {
        'user_id': str(manager.id),
        'name': manager.full_name,
        'commission_level': manager.commission_level,
        'rank': manager.rank,
        'week_start': week.start.isoformat(),
        'week_end': week.end.isoformat(),
        'week_display': format_week_range(week.start),
        'team_totals': {
            'total_production': money(totals['total_production']),
            'total_deals': totals['total_deals'],
            'total_commissions': money(totals['total_commissions']),
            'your_override': money(totals['your_override']),
        },
        'agent_breakdown': [
            entry | {
                'production': money(entry['production']),
                'their_commission': money(entry['their_commission']),
                'your_override': money(entry['your_override']),
            }
            for entry in active_branches
        ],
        'truncated': index.truncated,
    }


def _ranked_producers(deals: list[Deal]) -> list[tuple[UUID, Decimal, int]]:
    """
    ACTIVE writing agents of ``deals`` with production, best first.

    Ties on production are broken by user id, ascending.
    """
    production = production_by_agent(deals)
    counts = defaultdict(int)
    for deal in deals:
        counts[deal.agent_id] += 1

    nodes = get_nodes(production)
    ranked = [
        (user_id, amount, counts[user_id])
        for user_id, amount in production.items()
        if amount > 0 and user_id in nodes and nodes[user_id].is_active
    ]
    ranked.sort(key=lambda item: (-item[1], str(item[0])))
    return ranked


def production_rank(
    user_id: UUID,
    date_range: DateRange,
    as_of: datetime | None = None,
) -> dict:
    """
    A user's 1-based production rank among ACTIVE agents, with their own
    LIFE and HEALTH premium and deal counts for the window.

    rank is None when the user produced nothing in the window.
    """
    as_of = as_of or timezone.now()
    with transaction.atomic():
        user = get_node(user_id)
        deals = deals_reported_in(date_range, as_of=as_of)
        ranked = _ranked_producers(deals)

    # personal mix counts every deal the user wrote, ranked or not
    personal = premium_by_type(deal for deal in deals if deal.agent_id == user.id)

    rank = None
    production = ZERO
    deal_count = 0
    for position, (ranked_id, amount, count) in enumerate(ranked, start=1):
        if ranked_id == user.id:
            rank, production, deal_count = position, amount, count
            break

    return {
        'user_id': str(user.id),
        'date_range': date_range.as_dict(),
        'rank': rank,
        'total_ranked': len(ranked),
        'production': money(production),
        'deals': deal_count,
        'personal': {
            'life_premium': money(personal['life_premium']),
            'health_premium': money(personal['health_premium']),
            'life_deals': personal['life_deals'],
            'health_deals': personal['health_deals'],
        },
    }


def leaderboard(
    date_range: DateRange,
    limit: int | None = None,
    as_of: datetime | None = None,
) -> dict:
    """ACTIVE producers ranked by production in the window."""
    as_of = as_of or timezone.now()
    with transaction.atomic():
        ranked = _ranked_producers(deals_reported_in(date_range, as_of=as_of))
        nodes = get_nodes(user_id for user_id, _, _ in ranked)

    if limit is not None:
        ranked = ranked[:limit]

    return {
        'date_range': date_range.as_dict(),
        'entries': [
            {
                'rank': position,
                'user_id': str(user_id),
                'name': nodes[user_id].full_name,
                'commission_level': nodes[user_id].commission_level,
                'rank_label': nodes[user_id].rank,
                'production': money(amount),
                'deals': count,
            }
            for position, (user_id, amount, count) in enumerate(ranked, start=1)
        ],
    }
