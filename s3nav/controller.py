from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from .model import (
    Container,
    Entry,
    ListingResult,
    Prefix,
    Scope,
    Up,
    containers_listing,
    entries_listing,
    parent_prefix,
)
from .navigation import MergeOutcome, NavigationStack, Position

logger = logging.getLogger(__name__)

SEARCH_MARKER = "/"
CONTAINERS_LABEL = "bucket selection"


class InputMode(Enum):
    NORMAL = "normal"
    SEARCH = "search"


@dataclass(frozen=True)
class KeyPress:
    key: str
    character: Optional[str] = None

    @property
    def name(self) -> str:
        # Printable keys dispatch on the character so "G" and "/" read as typed.
        if self.character and len(self.character) == 1 and self.character.isprintable():
            return self.character
        return self.key


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class FetchRequest:
    scope: Scope
    origin: Position


@dataclass(frozen=True)
class FetchCompleted:
    request: FetchRequest
    result: ListingResult


@dataclass(frozen=True)
class FetchFailed:
    request: FetchRequest
    error: Exception


Event = Union[KeyPress, Tick, FetchCompleted, FetchFailed]


def format_scope(scope: Scope) -> str:
    if scope is None:
        return CONTAINERS_LABEL
    bucket, prefix = scope
    return f"s3://{bucket}/{prefix}"


class Controller:
    def __init__(
        self,
        service,
        clipboard: Optional[Callable[[str], None]] = None,
        on_redraw: Optional[Callable[[], None]] = None,
        on_exit: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.service = service
        self.stack = NavigationStack()
        self.events: asyncio.Queue[Event] = asyncio.Queue()
        self.mode = InputMode.NORMAL
        self.search_input = ""
        self.status = ""
        self.running = False
        self._clipboard = clipboard
        self._on_redraw = on_redraw
        self._on_exit = on_exit
        self._on_error = on_error
        self._last_key: Optional[KeyPress] = None
        # Scope to re-list when an ascend emptied the stack and its fetch failed.
        self._detached_scope: Scope = None
        self._tasks: set[asyncio.Task] = set()

    def attach(
        self,
        on_redraw: Callable[[], None],
        on_exit: Callable[[], None],
        on_error: Optional[Callable[[str], None]] = None,
        clipboard: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._on_redraw = on_redraw
        self._on_exit = on_exit
        if on_error is not None:
            self._on_error = on_error
        if clipboard is not None and self._clipboard is None:
            self._clipboard = clipboard

    def start(self, result: Optional[ListingResult]) -> None:
        if result is not None:
            self.stack.merge(result)

    def post(self, event: Event) -> None:
        self.events.put_nowait(event)

    async def run(self) -> None:
        self.running = True
        if not self.stack.frames:
            self.request_containers()
        while self.running:
            event = await self.events.get()
            if self.handle_event(event) and self._on_redraw is not None:
                self._on_redraw()

    def stop(self) -> None:
        self.running = False
        if self._on_exit is not None:
            self._on_exit()

    def handle_event(self, event: Event) -> bool:
        """Apply one event to the navigation state; True when a redraw is due."""
        if isinstance(event, FetchCompleted):
            return self._merge(event)
        if isinstance(event, FetchFailed):
            return self._report_failure(event)
        if isinstance(event, Tick):
            self._last_key = None
            return False
        if isinstance(event, KeyPress):
            last_key = self._last_key
            self._last_key = event
            if self.status:
                self.status = ""
            if self.mode is InputMode.NORMAL:
                return self._handle_normal_key(event, last_key)
            return self._handle_search_key(event)
        raise TypeError(f"unknown event: {event!r}")

    def _handle_normal_key(self, key: KeyPress, last_key: Optional[KeyPress]) -> bool:
        name = key.name
        if name in {"q", "ctrl+c"}:
            self.stop()
            return False
        if name == "g":
            if last_key is not None and last_key.name == "g":
                self.stack.first()
                return True
            return False
        if name == "G":
            self.stack.last()
            return True
        if name in {"j", "down"}:
            self.stack.next()
            return True
        if name in {"k", "up"}:
            self.stack.previous()
            return True
        if name == "enter":
            self.enter()
            return True
        if name == "ctrl+r":
            self.refresh()
            return False
        if name == "n":
            self.search_next()
            return True
        if name == SEARCH_MARKER:
            self.search_input = SEARCH_MARKER
            self.mode = InputMode.SEARCH
            return True
        if name == "y":
            self.copy_selected_uri()
            return True
        return False

    def _handle_search_key(self, key: KeyPress) -> bool:
        if key.key in {"escape", "enter"}:
            self.mode = InputMode.NORMAL
            return True
        if key.key == "backspace":
            if len(self.search_input) > len(SEARCH_MARKER):
                self.search_input = self.search_input[:-1]
            self.search_next()
            return True
        name = key.name
        if len(name) == 1:
            self.search_input += name
            self.search_next()
            return True
        return False

    def search_next(self) -> None:
        if not self.search_input.startswith(SEARCH_MARKER):
            return
        self.stack.search_next(self.search_input[len(SEARCH_MARKER) :])

    def enter(self) -> None:
        item = self.stack.selected()
        if item is None:
            return
        if isinstance(item, Up):
            self.ascend()
        elif isinstance(item, Container):
            self.request_entries(item.id, "")
        elif isinstance(item, Prefix):
            scope = self.stack.scope
            if scope is None:
                return
            self.request_entries(scope[0], item.prefix)
        elif isinstance(item, Entry):
            return

    def ascend(self) -> None:
        # The revealed level is always re-listed rather than trusted as cached.
        popped = self.stack.pop()
        if popped is None:
            return
        scope = popped.scope
        if scope is None or not scope[1]:
            self.request_containers()
            return
        bucket, prefix = scope
        parent = parent_prefix(prefix)
        if not self.stack.frames:
            self._detached_scope = (bucket, parent)
        self.request_entries(bucket, parent)

    def refresh(self) -> None:
        if not self.stack.frames:
            if self._detached_scope is None:
                self.request_containers()
            else:
                self.request_entries(*self._detached_scope)
            return
        scope = self.stack.scope
        if scope is None:
            self.request_containers()
        else:
            self.request_entries(*scope)

    def request_containers(self) -> FetchRequest:
        return self._spawn(FetchRequest(scope=None, origin=self.stack.position))

    def request_entries(self, bucket: str, prefix: str) -> FetchRequest:
        return self._spawn(
            FetchRequest(scope=(bucket, prefix), origin=self.stack.position)
        )

    def _spawn(self, request: FetchRequest) -> FetchRequest:
        logger.debug(
            "fetch %s from depth %d", format_scope(request.scope), request.origin[0]
        )
        task = asyncio.get_running_loop().create_task(self._fetch(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return request

    async def _fetch(self, request: FetchRequest) -> None:
        try:
            result = await fetch_listing(self.service, request.scope)
        except Exception as exc:
            self.post(FetchFailed(request=request, error=exc))
            return
        self.post(FetchCompleted(request=request, result=result))

    def _merge(self, event: FetchCompleted) -> bool:
        outcome = self.stack.merge(event.result, origin=event.request.origin)
        if outcome is MergeOutcome.DISCARDED:
            logger.debug(
                "dropped stale listing for %s; now at %s",
                format_scope(event.result.scope),
                format_scope(self.stack.scope),
            )
            return False
        self._detached_scope = None
        logger.debug("%s %s", outcome.value, format_scope(event.result.scope))
        return True

    def _report_failure(self, event: FetchFailed) -> bool:
        scope = format_scope(event.request.scope)
        logger.warning("listing %s failed: %s", scope, event.error)
        message = f"Listing {scope} failed: {event.error}"
        self.status = message
        if self._on_error is not None:
            self._on_error(message)
        return True

    def selected_uri(self) -> str:
        item = self.stack.selected()
        scope = self.stack.scope
        if isinstance(item, Container):
            return f"s3://{item.id}"
        if scope is None:
            return ""
        bucket, prefix = scope
        if isinstance(item, Prefix):
            return f"s3://{bucket}/{item.prefix}"
        if isinstance(item, Entry):
            return f"s3://{bucket}/{item.key}"
        if isinstance(item, Up):
            return f"s3://{bucket}/{prefix}"
        return ""

    def location_label(self) -> str:
        if not self.stack.frames:
            if self._detached_scope is None:
                return ""
            return format_scope(self._detached_scope)
        return format_scope(self.stack.scope)

    def copy_selected_uri(self) -> None:
        uri = self.selected_uri()
        if not uri:
            return
        if self._clipboard is None:
            self.status = "Clipboard unavailable"
            return
        try:
            self._clipboard(uri)
        except Exception as exc:
            logger.warning("clipboard copy failed: %s", exc)
            self.status = f"Copy failed: {exc}"
            return
        self.status = f"Copied {uri}"


async def fetch_listing(service, scope: Scope) -> ListingResult:
    if scope is None:
        return containers_listing(await service.list_containers())
    bucket, prefix = scope
    page = await service.list_children(bucket, prefix)
    return entries_listing(bucket, prefix, page.subprefixes, page.entries)
