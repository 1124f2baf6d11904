from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from ..core.constants import MAX_ALLOCATION
from ..core.exceptions import AllocationExceeded
from .model import ProjectResource
from .repository import ProjectResourceRepository


def _total_on(resources: Iterable[ProjectResource], day: date) -> int:
    return sum(r.allocation for r in resources if r.is_active_on(day))


def _window_checkpoints(resources: Sequence[ProjectResource], start: Optional[date], end: Optional[date]) -> list[date]:
    """Dates inside [start, end] where the user's total can peak.

    Totals only rise when an assignment starts, so the window start plus every
    later start date inside the window covers all maxima.
    """
    lower = start or date.min
    points = {lower}
    for r in resources:
        if r.start_date is None or r.start_date <= lower:
            continue
        if end is not None and r.start_date > end:
            continue
        points.add(r.start_date)
    return sorted(points)


class AllocationEngine:
    """Keeps a user's combined allocation across active assignments within the cap.

    Totals are always read fresh from the repository. Callers run the check and
    the write that follows it in one transaction while holding the user's lock.
    """

    def __init__(self, resources: ProjectResourceRepository, *, limit: int = MAX_ALLOCATION):
        self._resources = resources
        self._limit = int(limit)

    @property
    def limit(self) -> int:
        return self._limit

    def current_total_allocation(
        self,
        user_id: int,
        as_of: date,
        *,
        excluding_resource_id: Optional[int] = None,
    ) -> int:
        active = self._resources.list_active_for_user(int(user_id), as_of)
        return sum(r.allocation for r in active if r.resource_id != excluding_resource_id)

    def validate_new_allocation(
        self,
        user_id: int,
        as_of: date,
        proposed_allocation: int,
        *,
        excluding_resource_id: Optional[int] = None,
    ) -> int:
        """Return the resulting total, or raise AllocationExceeded."""
        current = self.current_total_allocation(user_id, as_of, excluding_resource_id=excluding_resource_id)
        if current + int(proposed_allocation) > self._limit:
            raise AllocationExceeded(
                user_id=int(user_id),
                current_total=current,
                requested=int(proposed_allocation),
                limit=self._limit,
                as_of=as_of,
            )
        return current + int(proposed_allocation)

    def peak_allocation(
        self,
        user_id: int,
        start: Optional[date],
        end: Optional[date],
        *,
        excluding_resource_id: Optional[int] = None,
    ) -> tuple[int, Optional[date]]:
        """Highest existing total inside the window and the first date it occurs."""
        others = [r for r in self._resources.list_for_user(int(user_id)) if r.resource_id != excluding_resource_id]
        peak, peak_day = 0, None
        for day in _window_checkpoints(others, start, end):
            total = _total_on(others, day)
            if peak_day is None or total > peak:
                peak, peak_day = total, day
        return peak, (peak_day if peak_day != date.min else None)

    def validate_window(
        self,
        user_id: int,
        start: Optional[date],
        end: Optional[date],
        proposed_allocation: int,
        *,
        excluding_resource_id: Optional[int] = None,
    ) -> int:
        """Check the cap on every date the proposed assignment would be active.

        Returns the peak resulting total, or raises AllocationExceeded for the
        first date that would go over.
        """
        requested = int(proposed_allocation)
        others = [r for r in self._resources.list_for_user(int(user_id)) if r.resource_id != excluding_resource_id]
        peak = 0
        for day in _window_checkpoints(others, start, end):
            total = _total_on(others, day)
            if total + requested > self._limit:
                raise AllocationExceeded(
                    user_id=int(user_id),
                    current_total=total,
                    requested=requested,
                    limit=self._limit,
                    as_of=day if day != date.min else None,
                )
            peak = max(peak, total)
        return peak + requested
