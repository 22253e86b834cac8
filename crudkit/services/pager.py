from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from crudkit.services.query_builder import int_param, is_truthy

DEFAULT_PAGES_PER_SET = 10


@dataclass(frozen=True)
class Pager:
    # current_page is clamped for links only; rows come from the query offset.
    total_entries: int
    entries_per_page: int
    requested_page: int = 1
    pages_per_set: int = DEFAULT_PAGES_PER_SET
    max_entries_per_page: int = 200

    def __post_init__(self):
        per_page = max(1, min(int(self.entries_per_page), int(self.max_entries_per_page)))
        object.__setattr__(self, "entries_per_page", per_page)
        object.__setattr__(self, "total_entries", max(0, int(self.total_entries)))
        object.__setattr__(self, "pages_per_set", max(1, int(self.pages_per_set)))

    @property
    def first_page(self) -> int:
        return 1

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total_entries / self.entries_per_page))

    @property
    def current_page(self) -> int:
        return min(max(int(self.requested_page), self.first_page), self.last_page)

    @property
    def skipped(self) -> int:
        return (self.current_page - 1) * self.entries_per_page

    @property
    def first(self) -> int:
        if self.total_entries == 0:
            return 0
        return self.skipped + 1

    @property
    def last(self) -> int:
        return min(self.current_page * self.entries_per_page, self.total_entries)

    @property
    def entries_on_this_page(self) -> int:
        if self.total_entries == 0:
            return 0
        return self.last - self.first + 1

    @property
    def previous_page(self) -> int | None:
        return self.current_page - 1 if self.current_page > self.first_page else None

    @property
    def next_page(self) -> int | None:
        return self.current_page + 1 if self.current_page < self.last_page else None

    def _set_bounds(self) -> tuple[int, int]:
        # Sliding window: keep the current page near the middle of the set.
        if self.last_page <= self.pages_per_set:
            return self.first_page, self.last_page
        start = max(self.first_page, self.current_page - (self.pages_per_set - 1) // 2)
        end = start + self.pages_per_set - 1
        if end > self.last_page:
            end = self.last_page
            start = end - self.pages_per_set + 1
        return start, end

    @property
    def pages_in_set(self) -> list[int]:
        start, end = self._set_bounds()
        return list(range(start, end + 1))

    @property
    def previous_set(self) -> int | None:
        start, _ = self._set_bounds()
        if start <= self.first_page:
            return None
        return max(self.first_page, self.current_page - self.pages_per_set)

    @property
    def next_set(self) -> int | None:
        _, end = self._set_bounds()
        if end >= self.last_page:
            return None
        return min(self.last_page, self.current_page + self.pages_per_set)

    def as_dict(self) -> dict:
        return {
            "total_entries": self.total_entries,
            "entries_per_page": self.entries_per_page,
            "current_page": self.current_page,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "first": self.first,
            "last": self.last,
            "previous_page": self.previous_page,
            "next_page": self.next_page,
            "pages_in_set": self.pages_in_set,
            "previous_set": self.previous_set,
            "next_set": self.next_set,
        }


def pager_from_params(
    params: Mapping[str, Sequence[str]],
    total: int,
    *,
    page_size: int = 50,
    max_page_size: int = 200,
    pages_per_set: int = DEFAULT_PAGES_PER_SET,
) -> Pager | None:
    if is_truthy(params, "_no_page"):
        return None
    return Pager(
        total_entries=total,
        entries_per_page=int_param(params, "_page_size", page_size, minimum=1),
        requested_page=int_param(params, "_page", 1, minimum=1),
        pages_per_set=pages_per_set,
        max_entries_per_page=max_page_size,
    )
