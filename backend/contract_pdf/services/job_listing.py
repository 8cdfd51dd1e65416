"""
Job list filtering and ordering, shared by the list endpoint and the poller.

Works on anything with `id`, `filename` and `created_at` attributes.
"""
from typing import Iterable, List, Optional, TypeVar, Union

from ..models import SortDirection, SortKey

T = TypeVar("T")


def filter_jobs(jobs: Iterable[T], query: Optional[str]) -> List[T]:
    """Case-insensitive filename substring match; empty query keeps all."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(jobs)
    return [j for j in jobs if needle in j.filename.casefold()]


def sort_jobs(
    jobs: Iterable[T],
    sort_by: Union[SortKey, str] = SortKey.CREATED_AT,
    direction: Union[SortDirection, str] = SortDirection.DESC,
) -> List[T]:
    """Sort by created_at or filename; id breaks ties so order is total."""
    key = SortKey(sort_by)
    reverse = SortDirection(direction) == SortDirection.DESC

    if key == SortKey.FILENAME:
        return sorted(jobs, key=lambda j: (j.filename.casefold(), j.id), reverse=reverse)
    return sorted(jobs, key=lambda j: (j.created_at, j.id), reverse=reverse)
