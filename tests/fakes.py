"""Test doubles and href helpers shared by the unit tests."""

from contextlib import contextmanager


REPO_ID = "018c1c95-4281-76eb-b277-842cbad524f4"
OTHER_REPO_ID = "018c1c95-4281-76eb-b277-842cbad524f5"


def version_href(repository_id: str = REPO_ID, number: int = 1, domain: str = "e1c6bee3") -> str:
    """Build a repository version href the way Pulp returns it."""
    return f"/pulp/{domain}/api/v3/repositories/rpm/rpm/{repository_id}/versions/{number}/"


class FakeDatabase:
    """In-memory stand-in for ContentDatabase that records every statement."""

    def __init__(self):
        self.missing_snapshots = 0
        self.total = 0
        self.rows = []
        self.error = None
        self.statements = []
        self.acquired = 0
        self.released = 0
        self.closed = False

    @contextmanager
    def connection(self):
        self.acquired += 1
        try:
            yield object()
        finally:
            self.released += 1

    def fetch_value(self, conn, query, params):
        self.statements.append((query, params))
        if "content_ids IS NULL" in query:
            return self.missing_snapshots
        return self.total

    def fetch_all(self, conn, query, params):
        self.statements.append((query, params))
        if self.error:
            raise self.error
        return self.rows

    def close(self):
        self.closed = True
