"""Application service answering content queries over repository versions."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rpm_content.application.result_merger import merge_rows
from rpm_content.domain.content import (
    DEFAULT_LIMIT,
    EnvironmentSearchResult,
    ErrataListFilters,
    ErrataListItem,
    ModuleStream,
    ModuleStreamListFilters,
    PackageGroupSearchResult,
    PackageListFilters,
    PackageListItem,
    PackageSearchResult,
    PageOptions,
)
from rpm_content.domain.repository_version import parse_version_hrefs
from rpm_content.infrastructure import content_queries
from rpm_content.infrastructure.database import ContentDatabase
from rpm_content.infrastructure.membership import resolve_membership

logger = logging.getLogger(__name__)


def _search_limit(limit: int) -> int:
    return limit if limit > 0 else DEFAULT_LIMIT


def _errata_from_row(row: Dict[str, Any]) -> ErrataListItem:
    return ErrataListItem(
        id=str(row["id"]),
        errata_id=row["errata_id"],
        title=row["title"],
        summary=row["summary"],
        description=row["description"],
        issued_date=row["issued_date"],
        updated_date=row["updated_date"],
        type=row["type"],
        severity=row["severity"],
        reboot_suggested=bool(row["reboot_suggested"]),
        cves=list(row["cves"] or []),
    )


def _module_stream_from_row(row: Dict[str, Any]) -> ModuleStream:
    return ModuleStream(
        name=row["name"],
        stream=row["stream"],
        version=row["version"],
        context=row["context"],
        arch=row["arch"],
        description=row["description"],
        package_names=list(row["package_names"] or []),
        profiles=dict(row["profiles"] or {}),
    )


def _package_from_row(row: Dict[str, Any]) -> PackageListItem:
    return PackageListItem(
        id=str(row["id"]),
        name=row["name"],
        version=row["version"],
        release=row["release"],
        arch=row["arch"],
        epoch=row["epoch"],
        summary=row["summary"],
    )


class ContentQueryService:
    """
    Searches and lists RPM content visible in Pulp repository versions.

    Every operation takes a list of repository version hrefs. Content is
    visible if it is in at least one of them. An empty list yields an empty
    result without touching the database.
    """

    def __init__(self, database: Optional[ContentDatabase] = None):
        """
        Initialize the service.

        Args:
            database: Store adapter. If None, one is built from env vars.
        """
        self.database = database if database is not None else ContentDatabase()

    def close(self):
        """Release the database connection pool."""
        self.database.close()

    def package_search(self, hrefs: Sequence[str], search: str, limit: int = 0) -> List[PackageSearchResult]:
        """
        Search packages by name.

        Args:
            hrefs: Repository version hrefs
            search: Case-insensitive substring of the package name
            limit: Maximum number of distinct names, 0 for the default of 500

        Returns:
            One result per distinct package name, ordered by name
        """
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return []

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.package_search_query(predicate, search, _search_limit(limit))
            rows = self.database.fetch_all(conn, query, params)

        logger.debug(f"Package search '{search}' matched {len(rows)} names")
        return [PackageSearchResult(name=row["name"], summary=row["summary"]) for row in rows]

    def package_group_search(
        self, hrefs: Sequence[str], search: str, limit: int = 0
    ) -> List[PackageGroupSearchResult]:
        """
        Search package groups by name.

        A group contributed by several versions is returned once, with the
        union of its packages; ``limit`` counts merged groups.
        """
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return []

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.package_group_search_query(predicate, search)
            rows = self.database.fetch_all(conn, query, params)

        groups = merge_rows(
            rows,
            key_fields=("name", "id"),
            member_field="packages",
            build=lambda row, packages: PackageGroupSearchResult(
                name=row["name"], id=row["id"], description=row["description"], packages=packages
            ),
            limit=_search_limit(limit),
        )
        logger.debug(f"Package group search '{search}' merged {len(rows)} rows into {len(groups)} groups")
        return groups

    def environment_search(
        self, hrefs: Sequence[str], search: str, limit: int = 0
    ) -> List[EnvironmentSearchResult]:
        """
        Search environments by name.

        Merged like package groups, on (name, id) with the union of their groups.
        """
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return []

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.environment_search_query(predicate, search)
            rows = self.database.fetch_all(conn, query, params)

        environments = merge_rows(
            rows,
            key_fields=("name", "id"),
            member_field="groups",
            build=lambda row, groups: EnvironmentSearchResult(
                name=row["name"], id=row["id"], description=row["description"], groups=groups
            ),
            limit=_search_limit(limit),
        )
        logger.debug(f"Environment search '{search}' merged {len(rows)} rows into {len(environments)} environments")
        return environments

    def package_list(
        self,
        hrefs: Sequence[str],
        filters: Optional[PackageListFilters] = None,
        page: Optional[PageOptions] = None,
    ) -> Tuple[List[PackageListItem], int]:
        """
        List packages, one row per content unit.

        Returns:
            The requested page and the total number of matching packages
        """
        filters = filters or PackageListFilters()
        page = page or PageOptions()
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return [], 0

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.package_list_count_query(predicate, filters)
            total = self.database.fetch_value(conn, query, params) or 0
            query, params = content_queries.package_list_query(predicate, filters, page)
            rows = self.database.fetch_all(conn, query, params)

        return [_package_from_row(row) for row in rows], total

    def module_stream_list(
        self,
        hrefs: Sequence[str],
        filters: Optional[ModuleStreamListFilters] = None,
        sort_by: str = "",
    ) -> List[ModuleStream]:
        """
        List module streams, one per (name, stream).

        Args:
            hrefs: Repository version hrefs
            filters: Package names the stream must provide and a name search
            sort_by: Sorted by name descending if it contains "desc", else ascending
        """
        filters = filters or ModuleStreamListFilters()
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return []

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.module_stream_list_query(predicate, filters, sort_by)
            rows = self.database.fetch_all(conn, query, params)

        return [_module_stream_from_row(row) for row in rows]

    def errata_list(
        self,
        hrefs: Sequence[str],
        filters: Optional[ErrataListFilters] = None,
        page: Optional[PageOptions] = None,
    ) -> Tuple[List[ErrataListItem], int]:
        """
        List advisories.

        ``page.sort_by`` has the form ``field:direction`` with field one of
        issued_date, updated_date, type or severity (default issued_date) and
        direction asc or desc (default desc).

        Returns:
            The requested page and the total number of matching advisories
        """
        filters = filters or ErrataListFilters()
        page = page or PageOptions()
        refs = parse_version_hrefs(hrefs)
        if not refs:
            return [], 0

        with self.database.connection() as conn:
            predicate = resolve_membership(self.database, conn, refs)
            query, params = content_queries.errata_count_query(predicate, filters)
            total = self.database.fetch_value(conn, query, params) or 0
            query, params = content_queries.errata_list_query(predicate, filters, page)
            rows = self.database.fetch_all(conn, query, params)

        return [_errata_from_row(row) for row in rows], total
