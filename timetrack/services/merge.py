"""
Reconciliation of the local cache with the remote tables.

Records are keyed by id. Local records go in first; each remote row then
replaces its local counterpart unless the local copy has a strictly newer
`updated_at`. Ties go to the remote row.
"""

from typing import Callable, Iterable, TypeVar

from timetrack.models.clients import Client
from timetrack.models.events import CalendarEvent
from timetrack.utils.timestamps import parse_timestamp

T = TypeVar("T", Client, CalendarEvent)


def merge(local: Iterable[T], remote_rows: Iterable[dict], from_row: Callable[[dict], T]) -> list[T]:
    merged: dict[str, T] = {}
    for record in local:
        merged[record.id] = record

    for row in remote_rows:
        remote = from_row(row)
        existing = merged.get(remote.id)
        if existing is None or not parse_timestamp(existing.updated_at) > parse_timestamp(remote.updated_at):
            merged[remote.id] = remote

    # dicts keep insertion order: local first, then remote-only records
    return list(merged.values())


def merge_clients(local: Iterable[Client], remote_rows: Iterable[dict]) -> list[Client]:
    return merge(local, remote_rows, Client.from_row)


def merge_events(local: Iterable[CalendarEvent], remote_rows: Iterable[dict]) -> list[CalendarEvent]:
    return merge(local, remote_rows, CalendarEvent.from_row)
