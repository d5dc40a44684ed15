"""Visibility policy shared by projects and tasks.

An entity is readable by its owner, by everyone when ``visibility == 'all'``,
and by the users listed in ``shared_with`` when ``visibility == 'specific'``.
``shared_with`` has no effect for the other two tiers.
"""

from typing import Iterable, List, Optional, Protocol, Sequence, TypeVar


class VisibleEntity(Protocol):
    user_id: int
    visibility: str
    shared_with: Sequence[int]


E = TypeVar("E", bound=VisibleEntity)


def can_access(entity: VisibleEntity, caller_id: Optional[int]) -> bool:
    if caller_id is None:
        return False
    if entity.user_id == caller_id:
        return True
    if entity.visibility == "all":
        return True
    if entity.visibility == "specific":
        return caller_id in (entity.shared_with or [])
    return False


def can_modify_project(project: VisibleEntity, caller_id: Optional[int]) -> bool:
    """Only the owner may change or delete a project."""
    return caller_id is not None and project.user_id == caller_id


def filter_accessible(entities: Iterable[E], caller_id: Optional[int]) -> List[E]:
    return [e for e in entities if can_access(e, caller_id)]
