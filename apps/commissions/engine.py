"""
Commission distribution engine.

Pure split arithmetic, no database access. A deal's commission pool is
premium x FYC rate. The writing agent earns their own commission level as a
percent of that pool; each ancestor earns the gap between their level and the
highest level below them in the chain, until the ownership cap of 130 is
reached.

Every percent is a share of the pool, not of the premium, so a fully claimed
deal pays out 130% of its pool. With a $10,000 LIFE premium (pool $10,000),
an agent at 70 under a 100 under a 130 earns $7,000, $3,000 and $3,000:
$13,000 in total.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from apps.core.constants import (
    DEFAULT_FYC_RATES,
    OWNERSHIP_CAP,
    ROLE_AGENT,
    ROLE_HOUSE,
    UNCLAIMED_HOUSE,
    UNCLAIMED_POLICIES,
    UNCLAIMED_UNASSIGNED,
    override_role,
)
from apps.core.exceptions import CycleDetectedError, EngineError, InactiveAgentError
from apps.core.hierarchy import HierarchyNode
from apps.core.utils import to_cents


@dataclass(frozen=True)
class DealTerms:
    """The commission-relevant fields of a deal."""
    annual_premium: Decimal
    insurance_type: str = 'LIFE'
    carrier_id: UUID | None = None

    @classmethod
    def from_deal(cls, deal) -> 'DealTerms':
        return cls(
            annual_premium=Decimal(deal.annual_premium),
            insurance_type=deal.insurance_type,
            carrier_id=deal.carrier_id,
        )


@dataclass(frozen=True)
class SplitLine:
    """One beneficiary's computed share of a pool."""
    beneficiary_id: UUID
    role: str
    percent: int
    amount: Decimal
    beneficiary_level: int

    def as_dict(self) -> dict:
        return {
            'beneficiary_id': str(self.beneficiary_id),
            'role': self.role,
            'percent': self.percent,
            'amount': str(self.amount),
            'beneficiary_level': self.beneficiary_level,
        }


@dataclass(frozen=True)
class SplitResult:
    """Computed split set for one pool, before it is tagged persisted or preview."""
    pool: Decimal
    fyc_rate: Decimal
    lines: tuple[SplitLine, ...]
    unclaimed_percent: int

    @property
    def total_percent(self) -> int:
        return sum(line.percent for line in self.lines)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal('0.00'))


@dataclass(frozen=True)
class PersistedSplits:
    """Splits as written to commission_splits for a deal. Reporting reads only these."""
    deal_id: UUID
    result: SplitResult
    replaced: int = 0
    kind: str = field(default='persisted', init=False)

    def as_dict(self) -> dict:
        return _result_dict(self.result) | {
            'kind': self.kind,
            'deal_id': str(self.deal_id),
            'replaced': self.replaced,
        }


@dataclass(frozen=True)
class RecomputedPreview:
    """What-if splits from current levels. Never stored and never reported on."""
    agent_id: UUID
    result: SplitResult
    kind: str = field(default='preview', init=False)

    def as_dict(self) -> dict:
        return _result_dict(self.result) | {
            'kind': self.kind,
            'agent_id': str(self.agent_id),
        }


def _result_dict(result: SplitResult) -> dict:
    return {
        'pool': str(to_cents(result.pool)),
        'fyc_rate': str(result.fyc_rate),
        'total_percent': result.total_percent,
        'total_amount': str(result.total_amount),
        'unclaimed_percent': result.unclaimed_percent,
        'splits': [line.as_dict() for line in result.lines],
    }


def default_fyc_rate(insurance_type: str) -> Decimal:
    return DEFAULT_FYC_RATES.get(insurance_type, DEFAULT_FYC_RATES['LIFE'])


def pick_fyc_rate(
    insurance_type: str,
    agent_rate: Decimal | None = None,
    carrier_rate: Decimal | None = None,
) -> Decimal:
    """
    The rate that sizes a pool.

    An agent's personal rate with the carrier wins, then the carrier's own
    rate for the insurance type, then the default (LIFE 1.0, HEALTH 0.5).
    """
    if agent_rate is not None:
        return Decimal(agent_rate)
    if carrier_rate is not None:
        return Decimal(carrier_rate)
    return default_fyc_rate(insurance_type)


def split_amount(pool: Decimal, percent: int) -> Decimal:
    return to_cents(pool * Decimal(percent) / Decimal(100))


def compute_splits(
    deal: DealTerms,
    agent: HierarchyNode,
    upline_chain: list[HierarchyNode],
    rate: Decimal,
    unclaimed_policy: str = UNCLAIMED_UNASSIGNED,
    house_account_id: UUID | None = None,
) -> SplitResult:
    """
    Split a deal's commission pool across the agent and their upline.

    Args:
        deal: Premium and insurance type of the deal
        agent: The writing agent; must be ACTIVE
        upline_chain: Ancestors nearest first, already depth-capped
        rate: FYC rate sizing the pool
        unclaimed_policy: 'unassigned' leaves percent below the cap unpaid,
            'house' pays it to ``house_account_id`` as a HOUSE line
        house_account_id: Beneficiary of the unclaimed percent under 'house'

    Returns:
        SplitResult whose percents sum to at most 130

    Raises:
        InactiveAgentError: If the agent is not ACTIVE
        CycleDetectedError: If the chain repeats a user or contains the agent
        EngineError: If the policy is unknown, or the house account already
            has a line on the deal
    """
    if not agent.is_active:
        raise InactiveAgentError(agent.id, agent.status)
    if unclaimed_policy not in UNCLAIMED_POLICIES:
        raise EngineError(f'Unknown unclaimed percent policy: {unclaimed_policy}', code='bad_policy')
    if unclaimed_policy == UNCLAIMED_HOUSE and not house_account_id:
        raise EngineError('House policy requires COMMISSION_HOUSE_ACCOUNT_ID', code='bad_policy')

    pool = Decimal(deal.annual_premium) * Decimal(rate)
    prev_level = min(agent.commission_level, OWNERSHIP_CAP)
    lines = [
        SplitLine(
            beneficiary_id=agent.id,
            role=ROLE_AGENT,
            percent=prev_level,
            amount=split_amount(pool, prev_level),
            beneficiary_level=agent.commission_level,
        )
    ]

    seen = {agent.id}
    for hop, ancestor in enumerate(upline_chain, start=1):
        if ancestor.id in seen:
            raise CycleDetectedError(agent.id, ancestor.id)
        seen.add(ancestor.id)

        if prev_level >= OWNERSHIP_CAP:
            break

        increment = max(0, min(ancestor.commission_level - prev_level, OWNERSHIP_CAP - prev_level))
        if increment > 0:
            lines.append(
                SplitLine(
                    beneficiary_id=ancestor.id,
                    role=override_role(hop),
                    percent=increment,
                    amount=split_amount(pool, increment),
                    beneficiary_level=ancestor.commission_level,
                )
            )
            prev_level = min(ancestor.commission_level, OWNERSHIP_CAP)

    unclaimed = OWNERSHIP_CAP - prev_level
    if unclaimed > 0 and unclaimed_policy == UNCLAIMED_HOUSE:
        if any(line.beneficiary_id == house_account_id for line in lines):
            raise EngineError(
                f'House account {house_account_id} already earns a split on this deal',
                code='bad_policy',
                details={'house_account_id': str(house_account_id)},
            )
        lines.append(
            SplitLine(
                beneficiary_id=house_account_id,
                role=ROLE_HOUSE,
                percent=unclaimed,
                amount=split_amount(pool, unclaimed),
                beneficiary_level=OWNERSHIP_CAP,
            )
        )
        unclaimed = 0

    return SplitResult(pool=pool, fyc_rate=Decimal(rate), lines=tuple(lines), unclaimed_percent=unclaimed)


def reprice_splits(lines: list[SplitLine], deal: DealTerms, rate: Decimal) -> SplitResult:
    """
    Recompute amounts for an existing split set against a new pool.

    Beneficiaries, roles and percents come from the snapshot taken when the
    deal was first split, so later level changes never leak into the deal.
    """
    pool = Decimal(deal.annual_premium) * Decimal(rate)
    repriced = tuple(
        SplitLine(
            beneficiary_id=line.beneficiary_id,
            role=line.role,
            percent=line.percent,
            amount=split_amount(pool, line.percent),
            beneficiary_level=line.beneficiary_level,
        )
        for line in lines
    )
    claimed = sum(line.percent for line in repriced)
    return SplitResult(
        pool=pool,
        fyc_rate=Decimal(rate),
        lines=repriced,
        unclaimed_percent=max(0, OWNERSHIP_CAP - claimed),
    )
