from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .model import (
    Item,
    ListingResult,
    Scope,
    as_row,
    derive_items,
    matches,
)

Position = tuple[int, Scope]
Row = tuple[str, str, str]


class MergeOutcome(Enum):
    REFRESHED = "refreshed"
    PUSHED = "pushed"
    DISCARDED = "discarded"


_UNSET = object()


@dataclass
class NavigationFrame:
    """One level of the browse stack.

    ``items`` is derived from ``result`` and must only change through
    :meth:`replace_result`.
    """

    result: ListingResult
    items: list[Item] = field(init=False)
    cursor: Optional[int] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.items = derive_items(self.result)
        self.cursor = 0 if self.items else None

    @property
    def scope(self) -> Scope:
        return self.result.scope

    def replace_result(self, result: ListingResult) -> None:
        self.result = result
        self.items = derive_items(result)
        if not self.items:
            self.cursor = None
        elif self.cursor is None:
            self.cursor = 0
        elif self.cursor >= len(self.items):
            self.cursor = len(self.items) - 1

    def selected(self) -> Optional[Item]:
        if self.cursor is None:
            return None
        return self.items[self.cursor]

    def next(self) -> None:
        if not self.items:
            self.cursor = None
            return
        if self.cursor is None or self.cursor >= len(self.items) - 1:
            self.cursor = 0
        else:
            self.cursor += 1

    def previous(self) -> None:
        if not self.items:
            self.cursor = None
            return
        if self.cursor is None or self.cursor == 0:
            self.cursor = len(self.items) - 1
        else:
            self.cursor -= 1

    def first(self) -> None:
        if self.items:
            self.cursor = 0

    def last(self) -> None:
        if self.items:
            self.cursor = len(self.items) - 1

    def search_next(self, text: str) -> None:
        matched = [
            index for index, item in enumerate(self.items) if matches(item, text)
        ]
        if not matched:
            return
        current = self.cursor if self.cursor is not None else 0
        after = [index for index in matched if index > current]
        self.cursor = after[0] if after else matched[0]


class NavigationStack:
    """Breadcrumb path of frames, root first, visible level last."""

    def __init__(self) -> None:
        self.frames: list[NavigationFrame] = []

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def top(self) -> Optional[NavigationFrame]:
        if not self.frames:
            return None
        return self.frames[-1]

    @property
    def scope(self) -> Scope:
        top = self.top
        if top is None:
            return None
        return top.scope

    @property
    def position(self) -> Position:
        return (len(self.frames), self.scope)

    def selected(self) -> Optional[Item]:
        top = self.top
        if top is None:
            return None
        return top.selected()

    def push(self, result: ListingResult) -> NavigationFrame:
        frame = NavigationFrame(result)
        self.frames.append(frame)
        return frame

    def pop(self) -> Optional[NavigationFrame]:
        if not self.frames:
            return None
        return self.frames.pop()

    def merge(self, result: ListingResult, origin: object = _UNSET) -> MergeOutcome:
        """Fold a completed listing into the stack.

        A result for the visible scope refreshes the top frame in place and
        keeps the cursor index, clamped to the new length. Any other result is
        pushed as a new level, unless ``origin`` (the :attr:`position` when
        the fetch was issued) no longer matches, in which case the user has
        navigated away and the result is dropped.
        """
        top = self.top
        if top is not None and result.scope == top.scope:
            top.replace_result(result)
            return MergeOutcome.REFRESHED
        if origin is not _UNSET and origin != self.position:
            return MergeOutcome.DISCARDED
        self.push(result)
        return MergeOutcome.PUSHED

    def next(self) -> None:
        if self.top is not None:
            self.top.next()

    def previous(self) -> None:
        if self.top is not None:
            self.top.previous()

    def first(self) -> None:
        if self.top is not None:
            self.top.first()

    def last(self) -> None:
        if self.top is not None:
            self.top.last()

    def search_next(self, text: str) -> None:
        if self.top is not None:
            self.top.search_next(text)


def project(frame: Optional[NavigationFrame]) -> tuple[list[Row], Optional[int]]:
    if frame is None:
        return [], None
    return [as_row(item) for item in frame.items], frame.cursor


