"""Repository version references and their parsing."""

import uuid
from dataclasses import dataclass
from typing import Iterable, List


class InvalidReference(ValueError):
    """Raised when a repository version href is malformed."""

    def __init__(self, value: str, reason: str):
        super().__init__(f"{value} {reason}")
        self.value = value


@dataclass(frozen=True)
class RepositoryVersionRef:
    """Immutable (repository, version number) pair."""

    repository_id: str
    number: int


# Offsets of the uuid, "versions" and number segments from the "api" segment:
#   /pulp/<domain>/api/v3/repositories/rpm/rpm/<uuid>/versions/<n>/
#   /pulp/api/v3/repositories/rpm/rpm/<uuid>/versions/<n>/
UUID_OFFSET = 5
VERSIONS_OFFSET = 6
NUMBER_OFFSET = 7


def parse_version_href(href: str) -> RepositoryVersionRef:
    """
    Parse one repository version href.

    Args:
        href: Pulp href such as
            /pulp/default/api/v3/repositories/rpm/rpm/<uuid>/versions/1/

    Returns:
        The repository id (canonical lowercase uuid) and version number

    Raises:
        InvalidReference: If the path shape, uuid or version number is invalid
    """
    segments = href.split("/")
    # The last "api" segment is the API root; a domain may itself be named "api".
    api_indexes = [index for index, segment in enumerate(segments) if segment == "api"]
    if not api_indexes:
        raise InvalidReference(href, "is not a repository version href")
    api_index = api_indexes[-1]

    if len(segments) <= api_index + NUMBER_OFFSET:
        raise InvalidReference(href, "has too few path segments")
    if segments[api_index + VERSIONS_OFFSET] != "versions":
        raise InvalidReference(href, "is not a repository version href")

    repository_id = segments[api_index + UUID_OFFSET]
    number = segments[api_index + NUMBER_OFFSET]

    try:
        parsed_id = uuid.UUID(repository_id)
    except ValueError:
        raise InvalidReference(repository_id, "is not a valid uuid") from None

    if not (number.isascii() and number.isdigit()):
        raise InvalidReference(number, "is not a valid integer")

    return RepositoryVersionRef(repository_id=str(parsed_id), number=int(number))


def parse_version_hrefs(hrefs: Iterable[str]) -> List[RepositoryVersionRef]:
    """Parse hrefs in order; the first malformed one aborts the whole batch."""
    return [parse_version_href(href) for href in hrefs]
