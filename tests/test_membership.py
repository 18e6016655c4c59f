"""Tests for membership strategy selection and predicate building."""

from tests.fakes import OTHER_REPO_ID, REPO_ID
from rpm_content.domain.repository_version import RepositoryVersionRef
from rpm_content.infrastructure.membership import (
    MembershipStrategy,
    build_membership_predicate,
    resolve_membership,
    select_strategy,
)


REFS = [
    RepositoryVersionRef(repository_id=REPO_ID, number=1),
    RepositoryVersionRef(repository_id=OTHER_REPO_ID, number=4),
]


def test_empty_refs_select_snapshot_without_querying(fake_database):
    """Test that no count query is issued when no versions are requested."""
    assert select_strategy(fake_database, None, []) is MembershipStrategy.SNAPSHOT
    assert fake_database.statements == []


def test_all_versions_with_content_ids_select_snapshot(fake_database):
    fake_database.missing_snapshots = 0
    assert select_strategy(fake_database, None, REFS) is MembershipStrategy.SNAPSHOT


def test_one_version_without_content_ids_selects_event_sourced(fake_database):
    """Test that a single legacy version moves the whole batch to event-sourced resolution."""
    fake_database.missing_snapshots = 1
    assert select_strategy(fake_database, None, REFS) is MembershipStrategy.EVENT_SOURCED


def test_strategy_count_query_binds_every_version(fake_database):
    select_strategy(fake_database, None, REFS)

    query, params = fake_database.statements[0]
    assert query.startswith("SELECT COUNT(*) FROM core_repositoryversion crv")
    assert "crv.content_ids IS NULL" in query
    assert params == {
        "mv_repository_id_0": REPO_ID,
        "mv_number_0": 1,
        "mv_repository_id_1": OTHER_REPO_ID,
        "mv_number_1": 4,
    }


def test_empty_predicate_matches_nothing():
    predicate = build_membership_predicate(MembershipStrategy.SNAPSHOT, [])
    assert predicate.is_empty
    assert predicate.applies_to("rp.content_ptr_id") == "FALSE"
    assert predicate.params == {}


def test_snapshot_predicate():
    """Test that the snapshot form unnests content_ids of each requested version."""
    predicate = build_membership_predicate(MembershipStrategy.SNAPSHOT, REFS)

    assert "unnest(crv.content_ids)" in predicate.subquery
    assert "core_repositorycontent" not in predicate.subquery
    assert predicate.subquery.count("crv.content_ids IS NOT NULL") == 2
    assert "crv.number = %(mv_number_0)s" in predicate.subquery
    assert "crv.number = %(mv_number_1)s" in predicate.subquery
    assert " OR " in predicate.subquery
    assert predicate.applies_to("rp.content_ptr_id").startswith("rp.content_ptr_id IN (SELECT")


def test_event_sourced_predicate():
    """Test that the event-sourced form checks the added and removed versions."""
    predicate = build_membership_predicate(MembershipStrategy.EVENT_SOURCED, REFS)

    assert "core_repositorycontent crc" in predicate.subquery
    assert "LEFT OUTER JOIN core_repositoryversion crv2" in predicate.subquery
    assert "crv.number <= %(mv_number_0)s" in predicate.subquery
    assert "NOT (crv2.number <= %(mv_number_1)s AND crv2.number IS NOT NULL)" in predicate.subquery
    assert "content_ids" not in predicate.subquery


def test_predicate_is_deterministic():
    """Test that building twice gives identical SQL and parameters."""
    first = build_membership_predicate(MembershipStrategy.EVENT_SOURCED, REFS)
    second = build_membership_predicate(MembershipStrategy.EVENT_SOURCED, REFS)
    assert first == second


def test_same_repository_twice_gets_distinct_parameters():
    refs = [
        RepositoryVersionRef(repository_id=REPO_ID, number=1),
        RepositoryVersionRef(repository_id=REPO_ID, number=2),
    ]
    predicate = build_membership_predicate(MembershipStrategy.SNAPSHOT, refs)
    assert predicate.params["mv_number_0"] == 1
    assert predicate.params["mv_number_1"] == 2


def test_resolve_membership_uses_selected_strategy(fake_database):
    fake_database.missing_snapshots = 2
    predicate = resolve_membership(fake_database, None, REFS)
    assert "core_repositorycontent" in predicate.subquery
