"""SQL for each RPM content type, restricted to a membership predicate."""

from typing import Any, Dict, List, Sequence, Tuple

from rpm_content.domain.content import (
    ERRATA_SEVERITIES,
    ERRATA_TYPES,
    OTHER_TYPE,
    UNKNOWN_SEVERITY,
    ErrataListFilters,
    ModuleStreamListFilters,
    PackageListFilters,
    PageOptions,
)
from rpm_content.infrastructure.membership import MembershipPredicate

Query = Tuple[str, Dict[str, Any]]

ERRATA_SORT_COLUMNS = {
    "issued_date": "ru.issued_date",
    "updated_date": "ru.updated_date",
    "type": "ru.type",
    "severity": "ru.severity",
}
DEFAULT_ERRATA_SORT = "issued_date"


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching ``text`` literally anywhere in the value."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def errata_order(sort_by: str) -> Tuple[str, str]:
    """
    Translate ``field:direction`` into an ORDER BY column and direction.

    Unknown or missing fields sort by issued_date; the direction is
    descending unless "asc" is given.
    """
    field, _, direction = (sort_by or "").partition(":")
    column = ERRATA_SORT_COLUMNS.get(field.strip().lower(), ERRATA_SORT_COLUMNS[DEFAULT_ERRATA_SORT])
    return column, "ASC" if direction.strip().lower() == "asc" else "DESC"


def module_stream_direction(sort_by: str) -> str:
    return "DESC" if "desc" in (sort_by or "").lower() else "ASC"


def _enumerated_filter(
    column: str,
    values: Sequence[str],
    known: Sequence[str],
    sentinel: str,
    param: str,
    params: Dict[str, Any],
) -> str:
    # The sentinel also selects everything outside the known values.
    params[param] = list(values)
    condition = f"{column} = ANY(%({param})s)"
    if sentinel in values:
        params[f"{param}_known"] = list(known)
        condition += f" OR {column} IS NULL OR NOT ({column} = ANY(%({param}_known)s))"
    return f"({condition})"


def package_search_query(predicate: MembershipPredicate, search: str, limit: int) -> Query:
    """One row per distinct package name; the lowest content id supplies the summary."""
    params = dict(predicate.params, search=contains_pattern(search), limit=limit)
    query = f"""
        SELECT DISTINCT ON (rp.name) rp.name, rp.summary
        FROM rpm_package rp
        WHERE {predicate.applies_to('rp.content_ptr_id')}
          AND rp.name ILIKE %(search)s
        ORDER BY rp.name ASC, rp.content_ptr_id ASC
        LIMIT %(limit)s
    """
    return query, params


def package_group_search_query(predicate: MembershipPredicate, search: str) -> Query:
    """Every matching group row; rows sharing (name, id) are merged by the caller."""
    params = dict(predicate.params, search=contains_pattern(search))
    query = f"""
        SELECT rpg.name, rpg.id, rpg.description,
               ARRAY(
                   SELECT pkg->>'name'
                   FROM jsonb_array_elements(COALESCE(rpg.packages, '[]'::jsonb)) pkg
                   WHERE pkg->>'name' IS NOT NULL
               ) AS packages
        FROM rpm_packagegroup rpg
        WHERE {predicate.applies_to('rpg.content_ptr_id')}
          AND rpg.name ILIKE %(search)s
        ORDER BY rpg.name ASC, rpg.id ASC, rpg.content_ptr_id ASC
    """
    return query, params


def environment_search_query(predicate: MembershipPredicate, search: str) -> Query:
    """Every matching environment row; rows sharing (name, id) are merged by the caller."""
    params = dict(predicate.params, search=contains_pattern(search))
    query = f"""
        SELECT rpe.name, rpe.id, rpe.description,
               ARRAY(
                   SELECT grp->>'name'
                   FROM jsonb_array_elements(COALESCE(rpe.group_ids, '[]'::jsonb)) grp
                   WHERE grp->>'name' IS NOT NULL
               ) AS groups
        FROM rpm_packageenvironment rpe
        WHERE {predicate.applies_to('rpe.content_ptr_id')}
          AND rpe.name ILIKE %(search)s
        ORDER BY rpe.name ASC, rpe.id ASC, rpe.content_ptr_id ASC
    """
    return query, params


def _package_list_where(predicate: MembershipPredicate, filters: PackageListFilters) -> Query:
    params = dict(predicate.params)
    conditions = [predicate.applies_to('rp.content_ptr_id')]
    if filters.name:
        params["name"] = contains_pattern(filters.name)
        conditions.append("rp.name ILIKE %(name)s")
    return " AND ".join(conditions), params


def package_list_count_query(predicate: MembershipPredicate, filters: PackageListFilters) -> Query:
    where, params = _package_list_where(predicate, filters)
    return f"SELECT COUNT(*) FROM rpm_package rp WHERE {where}", params


def package_list_query(
    predicate: MembershipPredicate,
    filters: PackageListFilters,
    page: PageOptions,
) -> Query:
    """One row per package content unit, ordered by name, version, release and arch."""
    where, params = _package_list_where(predicate, filters)
    params.update(limit=page.effective_limit, offset=page.effective_offset)
    query = f"""
        SELECT rp.content_ptr_id AS id, rp.name, rp.version, rp.release, rp.arch,
               rp.epoch, rp.summary
        FROM rpm_package rp
        WHERE {where}
        ORDER BY rp.name ASC, rp.version ASC, rp.release ASC, rp.arch ASC, rp.content_ptr_id ASC
        LIMIT %(limit)s OFFSET %(offset)s
    """
    return query, params


def module_stream_list_query(
    predicate: MembershipPredicate,
    filters: ModuleStreamListFilters,
    sort_by: str,
) -> Query:
    """
    One row per (name, stream).

    When several versions contribute the same (name, stream), the row with
    the highest module version wins, then the lowest content id. Versions
    are digit strings, so a longer one is the higher one.
    """
    params = dict(predicate.params)
    conditions = [predicate.applies_to('rm.content_ptr_id')]
    if filters.search:
        params["search"] = contains_pattern(filters.search)
        conditions.append("rm.name ILIKE %(search)s")
    if filters.rpm_names:
        params["rpm_names"] = list(filters.rpm_names)
        conditions.append(
            """rm.content_ptr_id IN (
                SELECT rmp.modulemd_id
                FROM rpm_modulemd_packages rmp
                INNER JOIN rpm_package rp ON (rp.content_ptr_id = rmp.package_id)
                WHERE rp.name = ANY(%(rpm_names)s)
            )"""
        )

    direction = module_stream_direction(sort_by)
    query = f"""
        SELECT DISTINCT ON (rm.name, rm.stream)
               rm.name, rm.stream, rm.version, rm.context, rm.arch, rm.description,
               rm.profiles,
               ARRAY(
                   SELECT DISTINCT rp.name
                   FROM rpm_modulemd_packages rmp
                   INNER JOIN rpm_package rp ON (rp.content_ptr_id = rmp.package_id)
                   WHERE rmp.modulemd_id = rm.content_ptr_id
                   ORDER BY rp.name
               ) AS package_names
        FROM rpm_modulemd rm
        WHERE {' AND '.join(conditions)}
        ORDER BY rm.name {direction}, rm.stream ASC, length(rm.version) DESC, rm.version DESC,
                 rm.content_ptr_id ASC
    """
    return query, params


def _errata_where(predicate: MembershipPredicate, filters: ErrataListFilters) -> Query:
    params = dict(predicate.params)
    conditions: List[str] = [predicate.applies_to('ru.content_ptr_id')]
    if filters.search:
        params["search"] = contains_pattern(filters.search)
        conditions.append("(ru.id ILIKE %(search)s OR ru.summary ILIKE %(search)s)")
    if filters.types:
        conditions.append(
            _enumerated_filter("ru.type", filters.types, ERRATA_TYPES, OTHER_TYPE, "types", params)
        )
    if filters.severities:
        conditions.append(
            _enumerated_filter(
                "ru.severity", filters.severities, ERRATA_SEVERITIES, UNKNOWN_SEVERITY, "severities", params
            )
        )
    return " AND ".join(conditions), params


def errata_count_query(predicate: MembershipPredicate, filters: ErrataListFilters) -> Query:
    where, params = _errata_where(predicate, filters)
    return f"SELECT COUNT(*) FROM rpm_updaterecord ru WHERE {where}", params


def errata_list_query(
    predicate: MembershipPredicate,
    filters: ErrataListFilters,
    page: PageOptions,
) -> Query:
    where, params = _errata_where(predicate, filters)
    params.update(limit=page.effective_limit, offset=page.effective_offset)
    column, direction = errata_order(page.sort_by)
    query = f"""
        SELECT ru.content_ptr_id AS id, ru.id AS errata_id, ru.title, ru.summary,
               ru.description, ru.issued_date, ru.updated_date, ru.type, ru.severity,
               ru.reboot_suggested,
               ARRAY(
                   SELECT DISTINCT ref.ref_id
                   FROM rpm_updatereference ref
                   WHERE ref.update_record_id = ru.content_ptr_id AND ref.ref_type = 'cve'
                   ORDER BY ref.ref_id
               ) AS cves
        FROM rpm_updaterecord ru
        WHERE {where}
        ORDER BY {column} {direction}, ru.content_ptr_id ASC
        LIMIT %(limit)s OFFSET %(offset)s
    """
    return query, params
