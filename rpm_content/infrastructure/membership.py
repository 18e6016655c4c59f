"""
Resolution of which content units are visible in a set of repository versions.

Pulp records version membership in two ways. Versions created after the
content_ids cutover carry the full list of their content ids
(core_repositoryversion.content_ids). Every version can also be resolved
from core_repositorycontent, where each unit has the version that added it
and, optionally, the version that removed it.

The snapshot form is a single array lookup, so it is used whenever every
requested version has content_ids; otherwise the whole batch falls back to
the added/removed ranges.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

from rpm_content.domain.repository_version import RepositoryVersionRef

logger = logging.getLogger(__name__)


PARAM_PREFIX = "mv"


class MembershipStrategy(Enum):
    """How version membership is resolved for one call."""

    SNAPSHOT = "snapshot"
    EVENT_SOURCED = "event_sourced"


@dataclass(frozen=True)
class MembershipPredicate:
    """
    A sub-query selecting the content ids visible in the requested versions.

    Attributes:
        subquery: SELECT returning one content id column, empty when no
            versions were requested
        params: Named parameters referenced by the sub-query
    """

    subquery: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.subquery

    def applies_to(self, column: str) -> str:
        """Condition that is true when ``column`` holds a visible content id."""
        if self.is_empty:
            return "FALSE"
        return f"{column} IN ({self.subquery})"


def _bind_version(index: int, ref: RepositoryVersionRef, params: Dict[str, Any]) -> Tuple[str, str]:
    """Add the parameters of the index-th version and return their names."""
    repository_param = f"{PARAM_PREFIX}_repository_id_{index}"
    number_param = f"{PARAM_PREFIX}_number_{index}"
    params[repository_param] = ref.repository_id
    params[number_param] = ref.number
    return repository_param, number_param


def _snapshot_predicate(refs: Sequence[RepositoryVersionRef]) -> MembershipPredicate:
    params: Dict[str, Any] = {}
    conditions: List[str] = []
    for index, ref in enumerate(refs):
        repository_param, number_param = _bind_version(index, ref, params)
        conditions.append(
            f"(crv.repository_id = %({repository_param})s"
            f" AND crv.number = %({number_param})s"
            f" AND crv.content_ids IS NOT NULL)"
        )
    subquery = (
        "SELECT unnest(crv.content_ids) FROM core_repositoryversion crv"
        f" WHERE {' OR '.join(conditions)}"
    )
    return MembershipPredicate(subquery=subquery, params=params)


def _event_sourced_predicate(refs: Sequence[RepositoryVersionRef]) -> MembershipPredicate:
    params: Dict[str, Any] = {}
    conditions: List[str] = []
    for index, ref in enumerate(refs):
        repository_param, number_param = _bind_version(index, ref, params)
        conditions.append(
            f"(crv.repository_id = %({repository_param})s"
            f" AND crv.number <= %({number_param})s"
            f" AND NOT (crv2.number <= %({number_param})s AND crv2.number IS NOT NULL))"
        )
    subquery = (
        "SELECT crc.content_id FROM core_repositorycontent crc"
        " INNER JOIN core_repositoryversion crv ON (crc.version_added_id = crv.pulp_id)"
        " LEFT OUTER JOIN core_repositoryversion crv2 ON (crc.version_removed_id = crv2.pulp_id)"
        f" WHERE {' OR '.join(conditions)}"
    )
    return MembershipPredicate(subquery=subquery, params=params)


_PREDICATE_BUILDERS = {
    MembershipStrategy.SNAPSHOT: _snapshot_predicate,
    MembershipStrategy.EVENT_SOURCED: _event_sourced_predicate,
}


def build_membership_predicate(
    strategy: MembershipStrategy,
    refs: Sequence[RepositoryVersionRef],
) -> MembershipPredicate:
    """
    Build the visibility sub-query for the given versions.

    Each version binds its own indexed parameters, so the result can be
    embedded into any single content query without name clashes.
    """
    if not refs:
        return MembershipPredicate(subquery="")
    return _PREDICATE_BUILDERS[strategy](refs)


def select_strategy(database, conn, refs: Sequence[RepositoryVersionRef]) -> MembershipStrategy:
    """
    Pick the snapshot form only if every requested version has content_ids.

    Args:
        database: Store adapter providing fetch_value
        conn: Connection held by the calling operation
        refs: Requested repository versions
    """
    if not refs:
        return MembershipStrategy.SNAPSHOT

    params: Dict[str, Any] = {}
    conditions: List[str] = []
    for index, ref in enumerate(refs):
        repository_param, number_param = _bind_version(index, ref, params)
        conditions.append(
            f"(crv.repository_id = %({repository_param})s AND crv.number = %({number_param})s)"
        )
    query = (
        "SELECT COUNT(*) FROM core_repositoryversion crv"
        f" WHERE ({' OR '.join(conditions)}) AND crv.content_ids IS NULL"
    )

    missing = database.fetch_value(conn, query, params) or 0
    strategy = MembershipStrategy.SNAPSHOT if missing == 0 else MembershipStrategy.EVENT_SOURCED
    logger.debug(f"Resolving {len(refs)} repository versions with {strategy.value} membership")
    return strategy


def resolve_membership(database, conn, refs: Sequence[RepositoryVersionRef]) -> MembershipPredicate:
    """Select the strategy for ``refs`` and build its predicate."""
    strategy = select_strategy(database, conn, refs)
    return build_membership_predicate(strategy, refs)
