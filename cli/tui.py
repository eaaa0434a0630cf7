#!/usr/bin/env python3
"""Routinely TUI: browse the weekly routine and tick off activities, powered by Textual."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import datetime

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Label, Static

from routinely import (
    WEEKDAYS,
    Activity,
    DocumentStore,
    InvalidInput,
    NotFound,
    RoutinelyError,
    SchedulingService,
    configure_logging,
    load_config,
    normalize_weekday,
    resolve_timezone,
    workspace_root,
)


# ── Pure helpers ───────────────────────────────────────────────


def shift_day(day: str, step: int) -> str:
    """Move *step* days through the week, wrapping Sunday to Monday."""
    return WEEKDAYS[(WEEKDAYS.index(day) + step) % len(WEEKDAYS)]


def format_row(a: Activity) -> tuple[str, str, str, str, str]:
    mark = "[x]" if a.is_completed else "[ ]"
    return (mark, f"{a.interval.start_str()}–{a.interval.end_str()}", a.label, a.category, f"{a.duration}m")


def day_summary(activities: list[Activity]) -> str:
    if not activities:
        return "Nothing planned."
    done = sum(1 for a in activities if a.is_completed)
    minutes = sum(a.duration for a in activities)
    return f"{done}/{len(activities)} done · {minutes // 60}h{minutes % 60:02d}m planned"


# ── Stylesheet ─────────────────────────────────────────────────

CSS = """
Screen {
    background: $surface;
}

.section-title {
    text-style: bold;
    color: $accent;
    padding: 0 1;
}

#day-table {
    height: 1fr;
}

#day-summary {
    padding: 0 1;
    color: $text-muted;
}
"""


# ── Main app ───────────────────────────────────────────────────


class RoutinelyApp(App):
    """Weekly routine in the terminal."""

    TITLE = "Routinely"
    CSS = CSS

    BINDINGS = [
        Binding("left,h", "prev_day", "Prev day"),
        Binding("right,l", "next_day", "Next day"),
        Binding("space", "toggle_done", "Done/undo"),
        Binding("r", "refresh", "Refresh"),
        Binding("q", "quit", "Quit"),
    ]

    current_day: reactive[str] = reactive(WEEKDAYS[0])

    def __init__(self, user_id: str, service: SchedulingService, start_day: str | None = None) -> None:
        super().__init__()
        self.user_id = user_id
        self.service = service
        self._activities: list[Activity] = []
        self._start_day = start_day or WEEKDAYS[0]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(
            Label("", id="day-title", classes="section-title"),
            DataTable(id="day-table", cursor_type="row"),
            Static(id="day-summary"),
        )
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#day-table", DataTable)
        table.add_columns("", "Time", "Activity", "Category", "Length")
        self.current_day = self._start_day
        if self._start_day == WEEKDAYS[0]:
            self._load_day()

    def watch_current_day(self, day: str) -> None:
        self._load_day()

    def _load_day(self) -> None:
        day = self.current_day
        try:
            self._activities = self.service.list_day(self.user_id, day)
        except NotFound:
            self._activities = []
        table = self.query_one("#day-table", DataTable)
        table.clear()
        for a in self._activities:
            table.add_row(*format_row(a), key=a.id)
        self.query_one("#day-title", Label).update(day.title())
        self.query_one("#day-summary", Static).update(day_summary(self._activities))

    def action_prev_day(self) -> None:
        self.current_day = shift_day(self.current_day, -1)

    def action_next_day(self) -> None:
        self.current_day = shift_day(self.current_day, 1)

    def action_refresh(self) -> None:
        self._load_day()

    def action_toggle_done(self) -> None:
        table = self.query_one("#day-table", DataTable)
        if not self._activities:
            return
        activity = self._activities[table.cursor_row]
        self._do_toggle(activity.id, not activity.is_completed)

    @work(thread=True)
    def _do_toggle(self, activity_id: str, completed: bool) -> None:
        """Write the completion mark in a worker thread, then reload the day."""
        try:
            self.service.mark_completed(self.user_id, activity_id, completed)
        except RoutinelyError as e:
            self.call_from_thread(self.notify, e.message, title="Not saved", severity="warning")
            return
        self.call_from_thread(self._load_day)


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(prog="routinely", description="Browse your weekly routine.")
    parser.add_argument("--user", default=os.environ.get("ROUTINELY_USER", ""), help="user id (default: $ROUTINELY_USER)")
    parser.add_argument("--day", default=None, help="weekday to open (default: today)")
    args = parser.parse_args()

    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set ROUTINELY_ROOT or start the web app once to create it.")
        sys.exit(1)
    if not args.user:
        print("No user given. Pass --user or set ROUTINELY_USER.")
        sys.exit(1)

    config = load_config(root)
    configure_logging("WARNING")
    service = SchedulingService(DocumentStore.open(root), config)

    start_day = args.day
    if start_day is None:
        today = datetime.now(resolve_timezone(config.default_timezone))
        start_day = WEEKDAYS[today.weekday()]
    else:
        try:
            start_day = normalize_weekday(start_day)
        except InvalidInput as e:
            print(e.message)
            sys.exit(1)

    RoutinelyApp(args.user, service, start_day).run()


if __name__ == "__main__":
    main()
