from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Union

UNKNOWN_LOCATION = "unknown"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Up:
    pass


@dataclass(frozen=True)
class Container:
    id: str
    location: Optional[str] = field(default=None, compare=False)


@dataclass(frozen=True)
class Prefix:
    prefix: str


@dataclass(frozen=True)
class Entry:
    key: str
    size: Optional[int] = field(default=None, compare=False)
    last_modified: Optional[datetime] = field(default=None, compare=False)


Item = Union[Up, Container, Prefix, Entry]

UP = Up()

# Rows are grouped in this order; listing order is kept inside a group.
ITEM_TYPE_ORDER = (Up, Container, Prefix, Entry)

Scope = Optional[tuple[str, str]]


@dataclass(frozen=True)
class ContainersListing:
    containers: tuple[Container, ...] = ()

    @property
    def scope(self) -> Scope:
        return None


@dataclass(frozen=True)
class EntriesListing:
    container_id: str
    prefix: str
    subprefixes: tuple[Prefix, ...] = ()
    entries: tuple[Entry, ...] = ()

    @property
    def scope(self) -> Scope:
        return (self.container_id, self.prefix)


ListingResult = Union[ContainersListing, EntriesListing]


def containers_listing(containers: Sequence[Container]) -> ContainersListing:
    return ContainersListing(containers=tuple(containers))


def entries_listing(
    container_id: str,
    prefix: str,
    subprefixes: Sequence[Prefix] = (),
    entries: Sequence[Entry] = (),
) -> EntriesListing:
    return EntriesListing(
        container_id=container_id,
        prefix=prefix,
        subprefixes=tuple(subprefixes),
        entries=tuple(entries),
    )


def _type_rank(item: Item) -> int:
    for index, kind in enumerate(ITEM_TYPE_ORDER):
        if isinstance(item, kind):
            return index
    raise TypeError(f"not a navigation item: {item!r}")


def group_by_type(items: Sequence[Item]) -> list[Item]:
    # sorted() is stable, so listing order survives within each group.
    return sorted(items, key=_type_rank)


def derive_items(result: ListingResult) -> list[Item]:
    """Build the display-ordered item list for a listing result.

    Entries listings always start with a single ``Up`` marker followed by the
    sub-prefixes and then the entries, each in listing order. Container
    listings never carry ``Up``.
    """
    if isinstance(result, ContainersListing):
        items: list[Item] = list(result.containers)
    elif isinstance(result, EntriesListing):
        items = [UP, *result.subprefixes, *result.entries]
    else:
        raise TypeError(f"not a listing result: {result!r}")
    return group_by_type(items)


def last_path_component(key_or_prefix: str) -> str:
    if not key_or_prefix:
        return ""
    if key_or_prefix.endswith("/"):
        return key_or_prefix[:-1].rsplit("/", 1)[-1] + "/"
    return key_or_prefix.rsplit("/", 1)[-1]


def parent_prefix(prefix: str) -> str:
    trimmed = prefix.rstrip("/")
    if "/" not in trimmed:
        return ""
    return trimmed.rsplit("/", 1)[0] + "/"


def display_name(item: Item) -> str:
    if isinstance(item, Up):
        return ""
    if isinstance(item, Container):
        return item.id
    if isinstance(item, Prefix):
        return last_path_component(item.prefix)
    if isinstance(item, Entry):
        return last_path_component(item.key)
    raise TypeError(f"not a navigation item: {item!r}")


def matches(item: Item, text: str) -> bool:
    if isinstance(item, Up):
        return False
    return text in display_name(item)


def format_size(size: Optional[int]) -> str:
    if size is None:
        return ""
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PB"


def format_time(value: Optional[datetime]) -> str:
    if not value:
        return ""
    return value.strftime(TIME_FORMAT)


def as_row(item: Item) -> tuple[str, str, str]:
    if isinstance(item, Up):
        return ("..", "", "")
    if isinstance(item, Container):
        return ("", item.location or UNKNOWN_LOCATION, item.id)
    if isinstance(item, Prefix):
        return ("PRE", "", last_path_component(item.prefix))
    if isinstance(item, Entry):
        return (
            format_time(item.last_modified),
            format_size(item.size),
            last_path_component(item.key),
        )
    raise TypeError(f"not a navigation item: {item!r}")
