from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from rich.markup import escape
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import DataTable, Static

from .config import AppConfig, configure_logging, load_config
from .controller import Controller, InputMode, KeyPress, Tick, fetch_listing
from .model import ListingResult, Scope
from .navigation import project
from .s3 import S3Service

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"


def parse_s3_path(value: str) -> tuple[str, str]:
    """Split ``s3://bucket/prefix...`` into ``(bucket, prefix)``.

    A trailing segment without ``/`` names an object, so it is dropped back to
    the prefix that contains it.
    """
    if not value.startswith(S3_SCHEME):
        raise ValueError(f"s3 path must start with {S3_SCHEME}: {value}")
    path = value[len(S3_SCHEME) :]
    bucket, _, rest = path.partition("/")
    if not bucket:
        raise ValueError(f"s3 path has no bucket: {value}")
    if not rest.endswith("/"):
        if "/" in rest:
            rest = rest.rsplit("/", 1)[0] + "/"
        else:
            rest = ""
    return bucket, rest


async def load_initial_listing(service: S3Service, scope: Scope) -> ListingResult:
    return await fetch_listing(service, scope)


class ListingTable(DataTable):
    # Keys go to the app so the controller sees every press.
    can_focus = False


class S3Navigator(App):
    CSS = """
    #location {
        height: 1;
        padding: 0 1;
        color: cyan;
        border-bottom: solid $panel;
    }

    #listing {
        height: 1fr;
        scrollbar-gutter: stable;
    }

    #selected-uri {
        height: 1;
        padding: 0 1;
        background: yellow;
        color: black;
    }

    #status {
        height: 1;
        padding: 0 1;
        color: $text;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(self, controller: Controller, tick_seconds: float = 0.25) -> None:
        super().__init__()
        self.controller = controller
        self.tick_seconds = tick_seconds
        self._rendered_items: Optional[list] = None
        controller.attach(
            on_redraw=self.render_view,
            on_exit=self.exit,
            on_error=self._notify_error,
            clipboard=self.copy_to_clipboard,
        )

    def compose(self) -> ComposeResult:
        with Vertical(id="body"):
            yield Static("", id="location", markup=False)
            yield ListingTable(id="listing", show_header=False)
            yield Static("", id="selected-uri", markup=False)
            yield Static("", id="status", markup=False)

    def on_mount(self) -> None:
        self.location = self.query_one("#location", Static)
        self.listing = self.query_one("#listing", DataTable)
        self.selected_uri = self.query_one("#selected-uri", Static)
        self.status_line = self.query_one("#status", Static)
        self.listing.cursor_type = "row"
        self.listing.add_columns("modified", "size", "name")
        self.render_view()
        self.set_interval(self.tick_seconds, self._post_tick)
        self.run_worker(self.controller.run(), exclusive=True, group="controller")

    def _post_tick(self) -> None:
        self.controller.post(Tick())

    def _notify_error(self, message: str) -> None:
        self.notify(escape(message), severity="error")

    def on_key(self, event: events.Key) -> None:
        character = event.character if event.is_printable else None
        self.controller.post(KeyPress(key=event.key, character=character))
        event.stop()

    def render_view(self) -> None:
        if not hasattr(self, "listing"):
            return
        frame = self.controller.stack.top
        rows, selected = project(frame)
        items = frame.items if frame is not None else None
        if items is not self._rendered_items:
            self.listing.clear()
            for left, mid, right in rows:
                self.listing.add_row(
                    Text(left, style="magenta", justify="right", no_wrap=True),
                    Text(mid, style="blue", justify="right", no_wrap=True),
                    Text(right, no_wrap=True, overflow="ellipsis"),
                )
            self._rendered_items = items
        if selected is not None:
            self.listing.move_cursor(row=selected, animate=False)
        self.location.update(self.controller.location_label())
        self.selected_uri.update(self.controller.selected_uri())
        self.status_line.update(self._status_text())

    def _status_text(self) -> str:
        if self.controller.status:
            return self.controller.status
        if self.controller.mode is InputMode.SEARCH or self.controller.search_input:
            return self.controller.search_input
        return ""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3nav", description="Terminal browser for S3 buckets"
    )
    parser.add_argument(
        "s3_path",
        nargs="?",
        help="Start at this location (s3://bucket/prefix/); defaults to the bucket list",
    )
    parser.add_argument("--profile", help="AWS profile to use")
    parser.add_argument(
        "-e",
        "--endpoint-url",
        dest="endpoint_url",
        help="Custom S3 endpoint URL",
    )
    parser.add_argument("--region", help="AWS region override for S3 client")
    parser.add_argument("--log-file", dest="log_file", help="Write logs to this file")
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file (defaults to $XDG_CONFIG_HOME/s3nav/config.json)",
    )
    parser.add_argument("--debug", action="store_true", help="Log at debug level")
    return parser


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    return load_config(args.config).with_overrides(
        profile=args.profile,
        region=args.region,
        endpoint_url=args.endpoint_url,
        log_file=args.log_file,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    scope: Scope = None
    if args.s3_path:
        try:
            scope = parse_s3_path(args.s3_path)
        except ValueError as exc:
            parser.error(str(exc))
    config = _resolve_config(args)
    configure_logging(config.log_file, debug=args.debug)
    service = S3Service(
        profile=config.profile,
        region=config.region,
        endpoint_url=config.endpoint_url,
    )
    try:
        initial = asyncio.run(load_initial_listing(service, scope))
    except (BotoCoreError, ClientError) as exc:
        logger.error("startup listing failed: %s", exc)
        print(f"s3nav: {exc}", file=sys.stderr)
        return 1
    controller = Controller(service)
    controller.start(initial)
    app = S3Navigator(controller, tick_seconds=config.tick_seconds)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
