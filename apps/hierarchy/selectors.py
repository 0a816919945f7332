"""
Hierarchy Selectors

Downline aggregation for a root user: subtree membership, headcounts by
rank, production and override income over a reporting window, and a capped
downline search.

Membership counts are "now" (ACTIVE members); production and overrides are
"in range" and cover every descendant regardless of status. Override income
is always read from persisted commission splits, so it matches what was
actually paid.
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.core.constants import OVERRIDE_PER_LEVEL, RANK_LABELS, parse_level, rank_label
from apps.core.dates import DateRange
from apps.core.exceptions import EngineError
from apps.core.hierarchy import DownlineIndex, load_downline
from apps.core.models import User
from apps.core.reporting import deals_reported_in, splits_for
from apps.core.utils import engine_setting, money

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def estimate_override_percent(root_level: int, descendant_level: int, depth: int) -> int:
    """
    Override percent a root can expect on a descendant's production.

    The level gap, capped at 10 points per hop between them, floored at 0.
    """
    return max(0, min(root_level - descendant_level, OVERRIDE_PER_LEVEL * depth))


def descendants(root_id: UUID, strict: bool = False) -> list[UUID]:
    """
    Every user below ``root_id``, any status, breadth-first.

    Raises:
        UnknownUserError: If the root does not exist
        CycleDetectedError: If the subtree loops back on itself
        DepthLimitExceededError: If strict and the subtree is too deep
    """
    return load_downline(root_id, strict=strict).descendant_ids()


def downline_summary(root_id: UUID, strict: bool = False) -> dict:
    """Descendants with depth, upline and level, plus the truncation flag."""
    index = load_downline(root_id, strict=strict)
    return {
        'root_id': str(index.root.id),
        'count': len(index),
        'truncated': index.truncated,
        'max_depth': index.max_depth,
        'descendants': [
            {
                'id': str(node.id),
                'name': node.full_name,
                'depth': index.depth[node.id],
                'upline_id': str(node.upline_id),
                'commission_level': node.commission_level,
                'rank': node.rank,
                'status': node.status,
            }
            for node in index.nodes.values()
        ],
    }


def _stats_for(index: DownlineIndex, date_range: DateRange, as_of: datetime) -> dict:
    root = index.root
    active = [node for node in index.nodes.values() if node.is_active]

    by_level_count = {label: 0 for label in RANK_LABELS.values()}
    for node in active:
        by_level_count[node.rank] += 1

    deals = deals_reported_in(date_range, agent_ids=index.descendant_ids(), as_of=as_of)
    production = sum((deal.annual_premium for deal in deals), ZERO)

    override_earned = sum(
        (
            row.amount for row in
            splits_for(deals, as_of=as_of).for_beneficiary(root.id).override_rows()
        ),
        ZERO,
    )

    estimated = ZERO
    for deal in deals:
        node = index.nodes[deal.agent_id]
        percent = estimate_override_percent(
            root.commission_level, node.commission_level, index.depth[deal.agent_id]
        )
        estimated += deal.annual_premium * Decimal(percent) / Decimal(100)

    return {
        'date_range': date_range.as_dict(),
        'total_downline': len(active),
        'inactive_downline': len(index) - len(active),
        'direct_recruits': len([node for node in index.direct_recruits() if node.is_active]),
        'by_level_count': by_level_count,
        'production': money(production),
        'deals': len(deals),
        'override_earned': money(override_earned),
        'estimated_override': money(estimated),
        'truncated': index.truncated,
    }


def subtree_stats(
    root_id: UUID,
    date_range: DateRange,
    as_of: datetime | None = None,
) -> dict:
    """
    Downline statistics for a root user over a reporting window.

    Args:
        root_id: Root user ID
        date_range: Reporting window for production and overrides
        as_of: Read time; deals and splits created later are ignored

    Returns:
        Dictionary with total_downline, direct_recruits, by_level_count,
        production, deals, override_earned, estimated_override, truncated
    """
    as_of = as_of or timezone.now()
    with transaction.atomic():
        index = load_downline(root_id)
        stats = _stats_for(index, date_range, as_of)

    stats.update({
        'root_id': str(index.root.id),
        'commission_level': index.root.commission_level,
        'rank': index.root.rank,
        'as_of': as_of.isoformat(),
    })
    return stats


def hierarchy_overview(root_id: UUID, as_of: datetime | None = None) -> dict:
    """
    Month-to-date and year-to-date downline statistics from one subtree read.
    """
    as_of = as_of or timezone.now()
    today = timezone.localdate(as_of)

    with transaction.atomic():
        index = load_downline(root_id)
        mtd = _stats_for(index, DateRange.month_to_date(today), as_of)
        ytd = _stats_for(index, DateRange.year_to_date(today), as_of)

    return {
        'root_id': str(index.root.id),
        'name': index.root.full_name,
        'commission_level': index.root.commission_level,
        'rank': index.root.rank,
        'as_of': as_of.isoformat(),
        'month_to_date': mtd,
        'year_to_date': ytd,
    }


def search_downline(
    root_id: UUID,
    query: str | None = None,
    level=None,
    date_range: DateRange | None = None,
    limit: int | None = None,
    as_of: datetime | None = None,
) -> dict:
    """
    Search a root user's ACTIVE descendants.

    Args:
        root_id: Root user ID
        query: Free text matched against name and email
        level: Commission level as a number (100) or rank label ("GA")
        date_range: Window for production and overrides (default month to date)
        limit: Maximum results; never above HIERARCHY_SEARCH_LIMIT
        as_of: Read time

    Returns:
        Dictionary with results ordered by production descending (ties by
        user id), each annotated with depth, direct upline, path from the
        root, production and override earned by the root
    """
    as_of = as_of or timezone.now()
    date_range = date_range or DateRange.month_to_date(timezone.localdate(as_of))

    level_filter = None
    if level not in (None, ''):
        level_filter = parse_level(level)
        if level_filter is None:
            raise EngineError(f'Unknown commission level: {level}', code='bad_level', details={'level': str(level)})

    cap = engine_setting('HIERARCHY_SEARCH_LIMIT', 50)
    limit = cap if limit is None else max(0, min(limit, cap))

    with transaction.atomic():
        index = load_downline(root_id)
        active_ids = [node.id for node in index.nodes.values() if node.is_active]
        matched_ids = set(
            User.objects.filter(id__in=active_ids)
            .search((query or '').strip())
            .at_level(level_filter)
            .values_list('id', flat=True)
        )

        deals = deals_reported_in(date_range, agent_ids=matched_ids, as_of=as_of)
        overrides = (
            splits_for(deals, as_of=as_of)
            .for_beneficiary(index.root.id)
            .override_rows()
            .values_list('deal_id', 'amount')
        )
        override_by_deal = defaultdict(lambda: ZERO)
        for deal_id, amount in overrides:
            override_by_deal[deal_id] += amount

    production = defaultdict(lambda: ZERO)
    deal_counts = defaultdict(int)
    override_earned = defaultdict(lambda: ZERO)
    for deal in deals:
        production[deal.agent_id] += deal.annual_premium
        deal_counts[deal.agent_id] += 1
        override_earned[deal.agent_id] += override_by_deal[deal.id]

    ordered = sorted(matched_ids, key=lambda user_id: (-production[user_id], str(user_id)))

    results = []
    for user_id in ordered[:limit]:
        node = index.nodes[user_id]
        upline = index.direct_upline(user_id)
        depth = index.depth[user_id]
        results.append({
            'id': str(node.id),
            'name': node.full_name,
            'email': node.email,
            'commission_level': node.commission_level,
            'rank': rank_label(node.commission_level),
            'depth': depth,
            'direct_upline_id': str(upline.id) if upline else None,
            'direct_upline_name': upline.full_name if upline else None,
            'path': [
                {'id': str(step.id), 'name': step.full_name}
                for step in index.path_to(user_id)
            ],
            'production': money(production[user_id]),
            'deals': deal_counts[user_id],
            'override_percent': estimate_override_percent(
                index.root.commission_level, node.commission_level, depth
            ),
            'override_earned': money(override_earned[user_id]),
        })

    return {
        'root_id': str(index.root.id),
        'query': query or '',
        'level': level_filter,
        'date_range': date_range.as_dict(),
        'total_matches': len(matched_ids),
        'limit': limit,
        'results': results,
        'truncated': index.truncated,
    }
