"""
Hierarchy store adapter for the commission engine.

Read-only view of the recruiting tree: user id, commission level, upline and
status. Upline chains come back from one recursive CTE (django-cte); downlines
are fetched level by level into an in-memory index so a request that needs a
whole subtree issues one query per depth instead of one per user.

The tree is expected to be a forest. Cycles are treated as bad input and
raise CycleDetectedError; every walk is bounded by a depth ceiling.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from uuid import UUID

from django.db.models import ExpressionWrapper, IntegerField, Value
from django_cte import CTE, with_cte

from apps.core.constants import rank_label
from apps.core.exceptions import (
    CycleDetectedError,
    DepthLimitExceededError,
    UnknownUserError,
)
from apps.core.models import User
from apps.core.utils import engine_setting, format_full_name

logger = logging.getLogger(__name__)

NODE_FIELDS = ('id', 'commission_level', 'upline_id', 'status', 'first_name', 'last_name', 'email')


@dataclass(frozen=True)
class HierarchyNode:
    id: UUID
    commission_level: int
    upline_id: UUID | None
    status: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    @property
    def full_name(self) -> str:
        return format_full_name(self.first_name, self.last_name)

    @property
    def rank(self) -> str:
        return rank_label(self.commission_level)

    @property
    def is_active(self) -> bool:
        return self.status == 'ACTIVE'

    @classmethod
    def from_row(cls, row: dict) -> 'HierarchyNode':
        return cls(**{name: row[name] for name in NODE_FIELDS})

    @classmethod
    def from_user(cls, user: User) -> 'HierarchyNode':
        return cls(**{name: getattr(user, name) for name in NODE_FIELDS})


def get_node(user_id: UUID) -> HierarchyNode:
    """
    Load one user as a hierarchy node.

    Raises:
        UnknownUserError: If the user does not exist
    """
    row = User.objects.filter(id=user_id).values(*NODE_FIELDS).first()
    if row is None:
        raise UnknownUserError(user_id)
    return HierarchyNode.from_row(row)


def get_nodes(user_ids) -> dict[UUID, HierarchyNode]:
    """Load several users at once, keyed by id. Missing ids are left out."""
    rows = User.objects.filter(id__in=list(user_ids)).values(*NODE_FIELDS)
    return {row['id']: HierarchyNode.from_row(row) for row in rows}


# =============================================================================
# Upline
# =============================================================================

def _upline_cte(user_id: UUID, max_depth: int) -> CTE:
    """
    Build a recursive CTE walking from a user up through their uplines.

    The user is depth 0, the direct upline depth 1 and so on; rows stop at
    ``max_depth`` so a cycle in the data cannot make the query run forever.
    """
    def make_cte(cte):
        # Anchor: the user themselves
        anchor = (
            User.objects.filter(id=user_id)
            .annotate(depth=Value(0, output_field=IntegerField()))
            .values('id', 'upline_id', 'depth')
        )

        # Recursive: follow upline chain
        recursive = (
            cte.join(User, id=cte.col.upline_id)
            .annotate(depth=ExpressionWrapper(cte.col.depth + 1, output_field=IntegerField()))
            .filter(depth__lte=max_depth)
            .values('id', 'upline_id', 'depth')
        )

        return anchor.union(recursive, all=True)

    return CTE.recursive(make_cte)


def get_upline_chain(user_id: UUID, max_depth: int | None = None) -> list[HierarchyNode]:
    """
    Ancestors of a user, nearest first, excluding the user.

    Args:
        user_id: Starting user ID
        max_depth: How many ancestors to follow at most
            (default COMMISSION_MAX_UPLINE_DEPTH)

    Returns:
        List of HierarchyNode from direct upline towards the root

    Raises:
        CycleDetectedError: If the chain reaches a user twice
    """
    if max_depth is None:
        max_depth = engine_setting('COMMISSION_MAX_UPLINE_DEPTH', 20)

    cte = _upline_cte(user_id, max_depth)
    rows = (
        with_cte(cte, select=cte.join(User, id=cte.col.id))
        .annotate(chain_depth=cte.col.depth)
        .order_by('chain_depth')
        .values(*NODE_FIELDS, 'chain_depth')
    )

    seen: set[UUID] = set()
    chain: list[HierarchyNode] = []
    for row in rows:
        if row['id'] in seen:
            logger.warning(f'Upline cycle detected above user {user_id} at {row["id"]}')
            raise CycleDetectedError(user_id, row['id'])
        seen.add(row['id'])
        if row['chain_depth'] > 0:
            chain.append(HierarchyNode.from_row(row))

    return chain


def validate_upline_assignment(user_id: UUID, upline_id: UUID | None) -> None:
    """
    Check that making ``upline_id`` the upline of ``user_id`` keeps the tree a forest.

    Raises:
        CycleDetectedError: If the new upline is the user or one of their descendants
    """
    if upline_id is None:
        return
    if str(upline_id) == str(user_id):
        raise CycleDetectedError(user_id, user_id)

    max_depth = engine_setting('HIERARCHY_MAX_DEPTH', 50)
    chain = get_upline_chain(upline_id, max_depth=max_depth)
    if any(node.id == user_id for node in chain):
        raise CycleDetectedError(user_id, upline_id)


# =============================================================================
# Downline
# =============================================================================

@dataclass
class DownlineIndex:
    """
    Arena of a user's subtree, built once per request.

    ``nodes`` holds every descendant (not the root), ``children`` maps a user
    to their direct downlines and ``depth`` gives the hop count from the root.
    ``truncated`` is set when the subtree continues below ``max_depth``.
    """
    root: HierarchyNode
    max_depth: int
    nodes: dict[UUID, HierarchyNode] = field(default_factory=dict)
    children: dict[UUID, list[UUID]] = field(default_factory=dict)
    depth: dict[UUID, int] = field(default_factory=dict)
    truncated: bool = False

    def __len__(self):
        return len(self.nodes)

    def __contains__(self, user_id) -> bool:
        return user_id in self.nodes

    def descendant_ids(self) -> list[UUID]:
        """Descendants in breadth-first order."""
        return list(self.nodes)

    def direct_recruits(self) -> list[HierarchyNode]:
        return [self.nodes[child_id] for child_id in self.children.get(self.root.id, [])]

    def node(self, user_id: UUID) -> HierarchyNode:
        if user_id == self.root.id:
            return self.root
        return self.nodes[user_id]

    def direct_upline(self, user_id: UUID) -> HierarchyNode | None:
        node = self.node(user_id)
        if node.upline_id is None:
            return None
        return self.node(node.upline_id)

    def path_to(self, user_id: UUID) -> list[HierarchyNode]:
        """Nodes from the root down to ``user_id``, both included."""
        path = []
        current = self.node(user_id)
        while current.id != self.root.id:
            path.append(current)
            current = self.node(current.upline_id)
        path.append(self.root)
        path.reverse()
        return path


def load_downline(
    root_id: UUID,
    max_depth: int | None = None,
    strict: bool = False,
) -> DownlineIndex:
    """
    Fetch a user's whole subtree, one query per level.

    Args:
        root_id: Root user ID
        max_depth: Depth ceiling (default HIERARCHY_MAX_DEPTH)
        strict: Raise instead of truncating when the ceiling is hit

    Returns:
        DownlineIndex over every descendant, all statuses

    Raises:
        UnknownUserError: If the root does not exist
        CycleDetectedError: If a user is reached twice
        DepthLimitExceededError: If strict and the subtree is deeper than the ceiling
    """
    if max_depth is None:
        max_depth = engine_setting('HIERARCHY_MAX_DEPTH', 50)

    root = get_node(root_id)
    index = DownlineIndex(root=root, max_depth=max_depth)
    visited = {root.id}
    frontier = deque([root.id])
    level = 0

    while frontier:
        if level >= max_depth:
            if User.objects.children_of(frontier).exists():
                index.truncated = True
            break

        level += 1
        rows = (
            User.objects.children_of(frontier)
            .order_by('created_at', 'id')
            .values(*NODE_FIELDS)
        )
        next_frontier = deque()
        for row in rows:
            node = HierarchyNode.from_row(row)
            if node.id in visited:
                logger.warning(f'Downline cycle detected below user {root_id} at {node.id}')
                raise CycleDetectedError(root_id, node.id)
            visited.add(node.id)
            index.nodes[node.id] = node
            index.depth[node.id] = level
            index.children.setdefault(node.upline_id, []).append(node.id)
            next_frontier.append(node.id)
        frontier = next_frontier

    if index.truncated:
        logger.warning(f'Downline of {root_id} truncated at depth {max_depth}')
        if strict:
            raise DepthLimitExceededError(root_id, max_depth, partial=index)

    return index
