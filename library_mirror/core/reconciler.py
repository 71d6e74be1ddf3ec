# ===== IMPORTS & DEPENDENCIES =====
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet

from library_mirror.models.report import PipelineError


class EmptyDesiredStateError(PipelineError):
    """Raised when no upstream game was collected; diffing would empty the store."""


@dataclass(frozen=True)
class LibraryDiff:
    to_add: FrozenSet[int]
    to_remove: FrozenSet[int]
    to_refresh: FrozenSet[int]


# ===== CORE BUSINESS LOGIC =====
def diff(desired: AbstractSet[int], current: AbstractSet[int]) -> LibraryDiff:
    """
    Splits the desired and persisted app_id sets into additions, removals and
    refreshes. An empty desired set is an aggregation failure, not an empty library.
    """
    if not desired:
        raise EmptyDesiredStateError(
            f"No upstream games collected; refusing to remove {len(current)} persisted games"
        )
    desired = frozenset(desired)
    current = frozenset(current)
    return LibraryDiff(
        to_add=desired - current,
        to_remove=current - desired,
        to_refresh=desired & current,
    )
