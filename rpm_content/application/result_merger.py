"""Merging of logical entities contributed by several repository versions."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class _MergedEntity:
    row: Dict[str, Any]
    members: List[str] = field(default_factory=list)
    seen: set = field(default_factory=set)

    def add_members(self, members: Iterable[str]):
        for member in members or ():
            if member not in self.seen:
                self.seen.add(member)
                self.members.append(member)


def merge_rows(
    rows: Iterable[Dict[str, Any]],
    key_fields: Iterable[str],
    member_field: str,
    build: Callable[[Dict[str, Any], List[str]], T],
    limit: Optional[int] = None,
) -> List[T]:
    """
    Collapse rows sharing a logical key into one entity.

    The member lists of all occurrences are unioned. The first occurrence of a
    key supplies the remaining attributes and fixes its position, so the input
    ordering is kept. ``limit`` bounds the number of merged entities.

    Args:
        rows: Query rows as dicts
        key_fields: Columns forming the logical entity key, e.g. ("name", "id")
        member_field: Column holding the member list to union
        build: Creates the result record from a row and its merged members
        limit: Maximum number of entities to return, None for all
    """
    key_fields = tuple(key_fields)
    merged: Dict[Hashable, _MergedEntity] = {}
    for row in rows:
        key = tuple(row[name] for name in key_fields)
        entity = merged.get(key)
        if entity is None:
            entity = merged[key] = _MergedEntity(row=row)
        entity.add_members(row.get(member_field))

    entities = list(merged.values())
    if limit is not None:
        entities = entities[:limit]
    return [build(entity.row, entity.members) for entity in entities]
