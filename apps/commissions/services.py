"""
Commission Services

Writes commission_splits rows. Every write for a deal happens inside one
transaction with the deal row locked, and replaces the previous rows, so a
reader sees either the old split set or the new one and never a mix.
"""
import logging
from decimal import Decimal
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.commissions.engine import (
    DealTerms,
    PersistedSplits,
    RecomputedPreview,
    SplitLine,
    SplitResult,
    compute_splits,
    pick_fyc_rate,
    reprice_splits,
)
from apps.core.constants import ROLE_AGENT, UNCLAIMED_HOUSE, UNCLAIMED_UNASSIGNED, hop_order
from apps.core.exceptions import EngineError, UnknownDealError, UnknownUserError
from apps.core.hierarchy import get_node, get_upline_chain
from apps.core.models import Carrier, CarrierRate, CommissionSplit, Deal
from apps.core.utils import engine_setting, to_cents, uuid_or_none

logger = logging.getLogger(__name__)


def resolve_fyc_rate(agent_id: UUID, carrier_id: UUID | None, insurance_type: str) -> Decimal:
    """
    Look up the FYC rate for an agent writing with a carrier.

    CarrierRate.agent_rate for the pair, else the carrier's life/health FYC,
    else the default for the insurance type.
    """
    agent_rate = None
    carrier_rate = None
    if carrier_id:
        agent_rate = (
            CarrierRate.objects
            .filter(agent_id=agent_id, carrier_id=carrier_id)
            .values_list('agent_rate', flat=True)
            .first()
        )
        carrier = Carrier.objects.filter(id=carrier_id).first()
        if carrier is not None:
            carrier_rate = carrier.fyc_for(insurance_type)
    return pick_fyc_rate(insurance_type, agent_rate=agent_rate, carrier_rate=carrier_rate)


def _unclaimed_policy() -> tuple[str, UUID | None]:
    policy = engine_setting('COMMISSION_UNCLAIMED_POLICY', UNCLAIMED_UNASSIGNED)
    house_account_id = uuid_or_none(engine_setting('COMMISSION_HOUSE_ACCOUNT_ID', ''))
    if policy == UNCLAIMED_HOUSE and house_account_id is None:
        raise EngineError(
            'COMMISSION_UNCLAIMED_POLICY is "house" but COMMISSION_HOUSE_ACCOUNT_ID is not a valid user id',
            code='bad_policy',
        )
    if policy == UNCLAIMED_HOUSE:
        try:
            get_node(house_account_id)
        except UnknownUserError:
            raise EngineError(
                f'COMMISSION_HOUSE_ACCOUNT_ID {house_account_id} does not match any user',
                code='bad_policy',
                details={'house_account_id': str(house_account_id)},
            )
    return policy, house_account_id


def _lock_deal(deal_id: UUID) -> Deal:
    deal = Deal.objects.select_for_update().filter(id=deal_id).first()
    if deal is None:
        raise UnknownDealError(deal_id)
    return deal


def _replace_splits(deal: Deal, result: SplitResult) -> int:
    """Delete the deal's split rows and write the new set. Returns rows removed."""
    replaced, _ = CommissionSplit.objects.filter(deal_id=deal.id).delete()
    now = timezone.now()
    pool_amount = to_cents(result.pool)
    CommissionSplit.objects.bulk_create([
        CommissionSplit(
            deal_id=deal.id,
            beneficiary_id=line.beneficiary_id,
            role=line.role,
            percent=line.percent,
            amount=line.amount,
            beneficiary_level=line.beneficiary_level,
            fyc_rate=result.fyc_rate,
            pool_amount=pool_amount,
            created_at=now,
        )
        for line in result.lines
    ])
    return replaced


@transaction.atomic
def split_deal(deal_id: UUID) -> PersistedSplits:
    """
    Compute and store the commission splits for a new deal.

    Reads the agent's current level, their upline chain and the current FYC
    rate, then replaces any rows the deal already has.

    Raises:
        UnknownDealError: If the deal does not exist
        InactiveAgentError: If the writing agent is not ACTIVE
        CycleDetectedError: If the agent's upline chain loops
    """
    deal = _lock_deal(deal_id)
    terms = DealTerms.from_deal(deal)
    agent = get_node(deal.agent_id)
    chain = get_upline_chain(agent.id)
    rate = resolve_fyc_rate(agent.id, deal.carrier_id, terms.insurance_type)
    policy, house_account_id = _unclaimed_policy()

    result = compute_splits(
        terms, agent, chain, rate,
        unclaimed_policy=policy,
        house_account_id=house_account_id,
    )
    replaced = _replace_splits(deal, result)

    logger.info(
        f'Split deal {deal.id}: {len(result.lines)} splits, '
        f'{result.total_percent}% of pool {result.pool}'
    )
    return PersistedSplits(deal_id=deal.id, result=result, replaced=replaced)


@transaction.atomic
def resplit_deal(deal_id: UUID) -> PersistedSplits:
    """
    Re-split a deal after a commission-relevant edit (premium, type, carrier).

    Beneficiaries and percents are kept from the stored rows, which carry the
    levels in effect when the deal was first split; only the rate and pool
    are refreshed. A deal without rows, or whose writing agent changed, is
    split from scratch.
    """
    deal = _lock_deal(deal_id)
    existing = list(
        CommissionSplit.objects
        .filter(deal_id=deal.id)
        .order_by('created_at', 'id')
    )
    agent_rows = [row for row in existing if row.role == ROLE_AGENT]
    if not existing or not agent_rows or agent_rows[0].beneficiary_id != deal.agent_id:
        logger.info(f'Deal {deal.id} has no usable split snapshot, splitting from scratch')
        return split_deal(deal.id)

    terms = DealTerms.from_deal(deal)
    rate = resolve_fyc_rate(deal.agent_id, deal.carrier_id, terms.insurance_type)
    snapshot = [
        SplitLine(
            beneficiary_id=row.beneficiary_id,
            role=row.role,
            percent=row.percent,
            amount=row.amount,
            beneficiary_level=row.beneficiary_level,
        )
        for row in _in_hop_order(existing)
    ]
    result = reprice_splits(snapshot, terms, rate)
    replaced = _replace_splits(deal, result)

    logger.info(f'Re-split deal {deal.id} against pool {result.pool} ({replaced} rows replaced)')
    return PersistedSplits(deal_id=deal.id, result=result, replaced=replaced)


def _in_hop_order(rows: list[CommissionSplit]) -> list[CommissionSplit]:
    return sorted(rows, key=lambda row: hop_order(row.role))


def preview_splits(
    agent_id: UUID,
    annual_premium: Decimal,
    insurance_type: str = 'LIFE',
    carrier_id: UUID | None = None,
) -> RecomputedPreview:
    """
    What-if splits for a deal that has not been written yet.

    Uses current levels and rates and writes nothing.
    """
    agent = get_node(agent_id)
    terms = DealTerms(annual_premium=Decimal(annual_premium), insurance_type=insurance_type, carrier_id=carrier_id)
    chain = get_upline_chain(agent.id)
    rate = resolve_fyc_rate(agent.id, carrier_id, insurance_type)
    policy, house_account_id = _unclaimed_policy()
    result = compute_splits(
        terms, agent, chain, rate,
        unclaimed_policy=policy,
        house_account_id=house_account_id,
    )
    return RecomputedPreview(agent_id=agent.id, result=result)
