"""Tests for per-content-type SQL composition."""

import pytest

from tests.fakes import REPO_ID
from rpm_content.domain.content import (
    ErrataListFilters,
    ModuleStreamListFilters,
    PackageListFilters,
    PageOptions,
)
from rpm_content.domain.repository_version import RepositoryVersionRef
from rpm_content.infrastructure import content_queries
from rpm_content.infrastructure.membership import MembershipStrategy, build_membership_predicate


@pytest.fixture
def predicate():
    refs = [RepositoryVersionRef(repository_id=REPO_ID, number=1)]
    return build_membership_predicate(MembershipStrategy.SNAPSHOT, refs)


def test_contains_pattern_escapes_wildcards():
    assert content_queries.contains_pattern("peng") == "%peng%"
    assert content_queries.contains_pattern("50%_off") == "%50\\%\\_off%"
    assert content_queries.contains_pattern("a\\b") == "%a\\\\b%"


@pytest.mark.parametrize(
    "sort_by, expected",
    [
        ("", ("ru.issued_date", "DESC")),
        ("issued_date:desc", ("ru.issued_date", "DESC")),
        ("issued_date:asc", ("ru.issued_date", "ASC")),
        ("updated_date", ("ru.updated_date", "DESC")),
        ("type:asc", ("ru.type", "ASC")),
        ("severity:ASC", ("ru.severity", "ASC")),
        ("title:asc", ("ru.issued_date", "ASC")),
        ("ru.id; DROP TABLE x:asc", ("ru.issued_date", "ASC")),
    ],
)
def test_errata_order(sort_by, expected):
    assert content_queries.errata_order(sort_by) == expected


def test_errata_default_order_matches_explicit_issued_date_desc():
    assert content_queries.errata_order("") == content_queries.errata_order("issued_date:desc")


@pytest.mark.parametrize(
    "sort_by, expected",
    [("", "ASC"), ("anything!", "ASC"), ("name ASC", "ASC"), ("anything DesC", "DESC"), ("name:desc", "DESC")],
)
def test_module_stream_direction(sort_by, expected):
    assert content_queries.module_stream_direction(sort_by) == expected


def test_package_search_query(predicate):
    query, params = content_queries.package_search_query(predicate, "Peng", 100)

    assert "DISTINCT ON (rp.name)" in query
    assert "rp.name ILIKE %(search)s" in query
    assert "ORDER BY rp.name ASC" in query
    assert params["search"] == "%Peng%"
    assert params["limit"] == 100
    assert params["mv_repository_id_0"] == REPO_ID


def test_group_search_query_has_no_limit(predicate):
    """Test that groups are fetched unbounded so the limit can apply after merging."""
    query, params = content_queries.package_group_search_query(predicate, "bir")
    assert "LIMIT" not in query
    assert "limit" not in params
    assert "jsonb_array_elements" in query


def test_package_list_count_and_page_share_filters(predicate):
    filters = PackageListFilters(name="bea")
    count_query, count_params = content_queries.package_list_count_query(predicate, filters)
    page_query, page_params = content_queries.package_list_query(predicate, filters, PageOptions(offset=4, limit=2))

    assert count_query.startswith("SELECT COUNT(*) FROM rpm_package rp")
    assert "rp.name ILIKE %(name)s" in count_query
    assert "rp.name ILIKE %(name)s" in page_query
    assert "ORDER BY rp.name ASC, rp.version ASC, rp.release ASC, rp.arch ASC" in page_query
    assert page_params["limit"] == 2
    assert page_params["offset"] == 4
    assert "limit" not in count_params
    assert count_params["name"] == page_params["name"] == "%bea%"


def test_package_list_defaults(predicate):
    """Test that a zero limit becomes 500 and a negative offset becomes 0."""
    _, params = content_queries.package_list_query(predicate, PackageListFilters(), PageOptions(offset=-3))
    assert params["limit"] == 500
    assert params["offset"] == 0
    assert "name" not in params


def test_module_stream_query_filters(predicate):
    filters = ModuleStreamListFilters(rpm_names=["walrus", "kangaroo"], search="Duck")
    query, params = content_queries.module_stream_list_query(predicate, filters, "name DESC")

    assert "DISTINCT ON (rm.name, rm.stream)" in query
    assert "ORDER BY rm.name DESC, rm.stream ASC, length(rm.version) DESC, rm.version DESC" in query
    assert "rp.name = ANY(%(rpm_names)s)" in query
    assert params["rpm_names"] == ["walrus", "kangaroo"]
    assert params["search"] == "%Duck%"


def test_module_stream_query_without_filters(predicate):
    query, params = content_queries.module_stream_list_query(predicate, ModuleStreamListFilters(), "")
    assert "rpm_names" not in params
    assert "ANY(%(rpm_names)s)" not in query
    assert "ORDER BY rm.name ASC" in query


def test_errata_type_filter_without_sentinel(predicate):
    filters = ErrataListFilters(types=["security", "enhancement"])
    query, params = content_queries.errata_count_query(predicate, filters)

    assert "ru.type = ANY(%(types)s)" in query
    assert "types_known" not in params
    assert params["types"] == ["security", "enhancement"]


def test_errata_type_filter_with_other(predicate):
    """Test that "other" also selects advisories outside the known types."""
    filters = ErrataListFilters(types=["other"])
    query, params = content_queries.errata_count_query(predicate, filters)

    assert "NOT (ru.type = ANY(%(types_known)s))" in query
    assert "ru.type IS NULL" in query
    assert params["types_known"] == ["security", "bugfix", "enhancement"]


def test_errata_severity_filter_with_unknown(predicate):
    filters = ErrataListFilters(severities=["Low", "Unknown"])
    query, params = content_queries.errata_count_query(predicate, filters)

    assert "ru.severity = ANY(%(severities)s)" in query
    assert params["severities_known"] == ["Critical", "Important", "Moderate", "Low"]


def test_errata_search_covers_id_and_summary(predicate):
    filters = ErrataListFilters(search="0055")
    query, params = content_queries.errata_list_query(predicate, filters, PageOptions())

    assert "(ru.id ILIKE %(search)s OR ru.summary ILIKE %(search)s)" in query
    assert "ORDER BY ru.issued_date DESC" in query
    assert params["search"] == "%0055%"


def test_module_stream_winner_compares_versions_numerically(predicate):
    """Test that version 10 outranks version 9 although "9" > "10" as text."""
    query, _ = content_queries.module_stream_list_query(predicate, ModuleStreamListFilters(), "")

    order_by = query[query.index("ORDER BY rm.name"):]
    assert order_by.index("length(rm.version) DESC") < order_by.index("rm.version DESC,")
