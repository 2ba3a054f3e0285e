"""
Data layer for clients, sessions and calendar events.

Every mutation follows the same contract:
1. compute the new collection from the current one (records are immutable),
2. publish it in memory,
3. write the full collection to the local cache, then hand the changed rows
   to the remote store on a worker thread.

Remote failures are logged and reported as warnings; they never undo steps 1-2.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import date
from typing import Callable, Iterable, Optional, Union

from loguru import logger

from timetrack.config import (
    CLIENTS_CACHE_KEY,
    CLIENTS_ORDER_BY,
    CLIENTS_TAB,
    EVENTS_CACHE_KEY,
    EVENTS_ORDER_BY,
    EVENTS_TAB,
    REMOTE_WORKERS,
)
from timetrack.errors import (
    LocalCacheError,
    UnknownRecordError,
    ValidationError,
    is_missing_table_error,
)
from timetrack.models.clients import Client, Session
from timetrack.models.events import CalendarEvent, EventType
from timetrack.repositories.local_cache import LocalCache
from timetrack.repositories.remote_tables import RemoteStore
from timetrack.services.merge import merge_clients, merge_events
from timetrack.utils.hours_parser import parse_hours
from timetrack.utils.timestamps import now_utc_iso

# notify(level, title, message); level is "info", "warning" or "error"
Notifier = Callable[[str, str, str], None]


def log_notify(level: str, title: str, message: str) -> None:
    logger.log(level.upper(), f"{title}: {message}")


def _iso_day(value: Union[str, date]) -> str:
    if isinstance(value, date):
        return value.isoformat()
    s = str(value or "").strip()
    try:
        return date.fromisoformat(s).isoformat()
    except ValueError:
        raise ValidationError(f"Date must be YYYY-MM-DD, got '{value}'") from None


def _event_type(value) -> EventType:
    try:
        return EventType(value)
    except ValueError:
        raise ValidationError(f"Unknown event type '{value}'") from None


class TrackerStore:
    def __init__(
        self,
        local_cache: LocalCache,
        remote: RemoteStore,
        notify: Optional[Notifier] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._local = local_cache
        self._remote = remote
        self._notify = notify or log_notify
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=REMOTE_WORKERS, thread_name_prefix="timetrack-remote"
        )
        # Writes to one table run on a single worker, in the order they were issued
        self._writers = {
            table: ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"timetrack-{table}")
            for table in (CLIENTS_TAB, EVENTS_TAB)
        }

        self._lock = threading.RLock()
        self._clients: tuple[Client, ...] = ()
        self._events: tuple[CalendarEvent, ...] = ()
        self._listeners: list[Callable[["TrackerStore"], None]] = []
        self._pending: set[Future] = set()
        self._load_futures: list[Future] = []

    # -----------------------------
    # State
    # -----------------------------
    @property
    def clients(self) -> tuple[Client, ...]:
        return self._clients

    @property
    def events(self) -> tuple[CalendarEvent, ...]:
        return self._events

    @property
    def loading(self) -> bool:
        return any(not f.done() for f in self._load_futures)

    def subscribe(self, listener: Callable[["TrackerStore"], None]) -> Callable[[], None]:
        """Call `listener(store)` after every publish. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def get_client(self, client_id: str) -> Optional[Client]:
        return next((c for c in self._clients if c.id == client_id), None)

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        return next((e for e in self._events if e.id == event_id), None)

    def events_for_client(self, client_id: str) -> list[CalendarEvent]:
        return [e for e in self._events if e.client_id == client_id]

    def events_for_date(self, day: Union[str, date]) -> list[CalendarEvent]:
        key = day.isoformat() if isinstance(day, date) else day
        return [e for e in self._events if e.date == key]

    def _require_client(self, client_id: str) -> Client:
        client = self.get_client(client_id)
        if client is None:
            raise UnknownRecordError(f"No client with id {client_id}")
        return client

    # -----------------------------
    # Persistence
    # -----------------------------
    def _read_local(self, key: str, from_local) -> Optional[tuple]:
        try:
            raw = self._local.get(key) or []
            return tuple(from_local(d) for d in raw)
        except LocalCacheError as e:
            logger.error(f"Error reading {key} from local cache: {e}")
            self._notify("error", "Could not load local data", str(e))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed {key} in local cache: {e}")
            self._notify("error", "Could not load local data", f"{key} is malformed")
        return None

    def _write_local(self, key: str, records: Iterable) -> None:
        try:
            self._local.set(key, [r.to_local() for r in records])
        except LocalCacheError as e:
            logger.error(f"Error saving {key} to local cache: {e}")
            self._notify("error", "Could not save local data", str(e))

    def _run_remote(self, what: str, fn, *args, on_success=None, on_error=None):
        """Runs on a worker thread; outcome handling happens before the future settles."""
        try:
            result = fn(*args)
        except Exception as e:
            (on_error or self._remote_write_failed)(what, e)
            return None
        if on_success is not None:
            try:
                on_success(result)
            except Exception as e:
                self._merge_failed(what, e)
                return None
        return result

    def _submit(self, what: str, fn, *args, on_success=None, on_error=None, executor=None) -> Future:
        fut = (executor or self._executor).submit(
            self._run_remote, what, fn, *args, on_success=on_success, on_error=on_error
        )
        with self._lock:
            self._pending.add(fut)
        fut.add_done_callback(self._settled)
        return fut

    def _settled(self, fut: Future) -> None:
        with self._lock:
            self._pending.discard(fut)

    def _remote_write_failed(self, what: str, exc: Exception) -> None:
        logger.warning(f"Remote write failed for {what}: {exc}")
        self._notify("warning", "Saved locally only", f"{what} was saved locally but not to the cloud")

    def _merge_failed(self, what: str, exc: Exception) -> None:
        logger.opt(exception=exc).warning(f"Could not merge {what}: {exc}")
        self._notify("warning", "Could not merge", f"The {what} holds rows that could not be read, using local data")

    def _commit_clients(self, clients: Iterable[Client], upserts=(), deletes=()) -> None:
        with self._lock:
            self._clients = tuple(clients)
            self._write_local(CLIENTS_CACHE_KEY, self._clients)
            self._publish()
        writer = self._writers[CLIENTS_TAB]
        for c in upserts:
            self._submit(f"client '{c.name}'", self._remote.upsert, CLIENTS_TAB, c.to_row(), executor=writer)
        for client_id in deletes:
            self._submit(
                f"client deletion {client_id}", self._remote.delete, CLIENTS_TAB, client_id, executor=writer
            )

    def _commit_events(self, events: Iterable[CalendarEvent], upserts=(), deletes=()) -> None:
        with self._lock:
            self._events = tuple(events)
            self._write_local(EVENTS_CACHE_KEY, self._events)
            self._publish()
        writer = self._writers[EVENTS_TAB]
        for e in upserts:
            self._submit(f"event on {e.date}", self._remote.upsert, EVENTS_TAB, e.to_row(), executor=writer)
        for event_id in deletes:
            self._submit(
                f"event deletion {event_id}", self._remote.delete, EVENTS_TAB, event_id, executor=writer
            )

    def wait_for_remote(self, timeout: Optional[float] = None) -> bool:
        """Block until outstanding remote calls finish. False if the timeout hit first."""
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        for writer in self._writers.values():
            writer.shutdown(wait=True)
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # -----------------------------
    # Load
    # -----------------------------
    def load_clients(self) -> list[Future]:
        """
        Publish the local cache at once, then fetch both remote tables independently.
        Each fetch merges and republishes on its own, so a slow or failing
        events read never holds back the clients merge.
        """
        local_clients = self._read_local(CLIENTS_CACHE_KEY, Client.from_local)
        local_events = self._read_local(EVENTS_CACHE_KEY, CalendarEvent.from_local)

        with self._lock:
            if local_clients is not None:
                self._clients = local_clients
                logger.info(f"Loaded {len(local_clients)} clients from local cache")
            if local_events is not None:
                self._events = local_events
                logger.info(f"Loaded {len(local_events)} calendar events from local cache")
            self._publish()

        self._load_futures = [
            self._submit(
                "clients table",
                self._remote.select, CLIENTS_TAB, CLIENTS_ORDER_BY, False,
                on_success=self._merge_remote_clients,
                on_error=self._clients_read_failed,
            ),
            self._submit(
                "calendar_events table",
                self._remote.select, EVENTS_TAB, EVENTS_ORDER_BY, False,
                on_success=self._merge_remote_events,
                on_error=self._events_read_failed,
            ),
        ]
        return self._load_futures

    def refresh(self, timeout: Optional[float] = None) -> None:
        wait(self.load_clients(), timeout=timeout)
        self._notify("info", "Data refreshed", "Reloaded from the local cache and the cloud")

    def _merge_remote_clients(self, rows: list[dict]) -> None:
        if not rows:
            return
        with self._lock:
            self._clients = tuple(merge_clients(self._clients, rows))
            self._write_local(CLIENTS_CACHE_KEY, self._clients)
            self._publish()
        logger.info(f"Synced clients with remote table ({len(rows)} rows)")

    def _merge_remote_events(self, rows: list[dict]) -> None:
        if not rows:
            return
        with self._lock:
            self._events = tuple(merge_events(self._events, rows))
            self._write_local(EVENTS_CACHE_KEY, self._events)
            self._publish()
        logger.info(f"Synced calendar events with remote table ({len(rows)} rows)")

    def _clients_read_failed(self, what: str, exc: Exception) -> None:
        logger.warning(f"Error loading {what}: {exc}")
        if is_missing_table_error(exc):
            self._notify(
                "warning",
                "Tables missing",
                f"Create the '{CLIENTS_TAB}' and '{EVENTS_TAB}' tables in the spreadsheet",
            )
        else:
            self._notify("warning", "Warning", "Could not load clients from the cloud, using local data")

    def _events_read_failed(self, what: str, exc: Exception) -> None:
        if is_missing_table_error(exc):
            logger.info(f"{what} does not exist yet; using local events only")
            return
        logger.warning(f"Error loading {what}: {exc}")
        self._notify("warning", "Warning", "Could not load calendar events from the cloud, using local data")

    # -----------------------------
    # Clients and sessions
    # -----------------------------
    def add_client(self, name: str) -> Client:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required")

        client = Client.create(name=name)
        with self._lock:
            self._commit_clients((*self._clients, client), upserts=[client])
        logger.info(f"Added client {client.id} '{name}'")
        self._notify("info", "Client added", f'Client "{name}" was added')
        return client

    def delete_client(self, client_id: str) -> None:
        with self._lock:
            if self.get_client(client_id) is None:
                logger.warning(f"Client {client_id} not in memory; deleting remotely only")
            self._commit_clients(
                [c for c in self._clients if c.id != client_id], deletes=[client_id]
            )
        logger.info(f"Deleted client {client_id}")
        self._notify("info", "Client deleted", "The client was deleted")

    def add_time_session(self, client_id: str, hours, description: str = "") -> Client:
        hours = parse_hours(hours)
        session = Session.create(hours=hours, description=description or "")

        with self._lock:
            updated = self._require_client(client_id).with_session_added(session)
            self._commit_clients(
                [updated if c.id == client_id else c for c in self._clients], upserts=[updated]
            )
        logger.info(f"Added {hours:.4f}h session to client {client_id}")
        self._notify("info", "Time added", f"{hours:.2f} hours were added to the client")
        return updated

    def edit_session(
        self, client_id: str, session_id: str, hours, description: Optional[str] = None
    ) -> Client:
        hours = parse_hours(hours)

        with self._lock:
            client = self._require_client(client_id)
            old = client.find_session(session_id)
            if old is None:
                raise UnknownRecordError(f"No session {session_id} for client {client_id}")
            session = replace(
                old, hours=hours, description=old.description if description is None else description.strip()
            )
            updated = client.with_session_replaced(session)
            self._commit_clients(
                [updated if c.id == client_id else c for c in self._clients], upserts=[updated]
            )
        logger.info(f"Edited session {session_id} of client {client_id}: {old.hours}h -> {hours}h")
        self._notify("info", "Session updated", "The session details were updated")
        return updated

    def delete_session(self, client_id: str, session_id: str) -> Client:
        with self._lock:
            client = self._require_client(client_id)
            if client.find_session(session_id) is None:
                raise UnknownRecordError(f"No session {session_id} for client {client_id}")
            updated = client.with_session_removed(session_id)
            self._commit_clients(
                [updated if c.id == client_id else c for c in self._clients], upserts=[updated]
            )
        logger.info(f"Deleted session {session_id} of client {client_id}")
        self._notify("info", "Session deleted", "The session was deleted")
        return updated

    # -----------------------------
    # Calendar events
    # -----------------------------
    def add_calendar_event(
        self,
        date: Union[str, date],
        hours,
        description: str,
        type: Union[str, EventType] = EventType.SESSION,
        client_id: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> CalendarEvent:
        day = _iso_day(date)
        hours = parse_hours(hours)
        if not (description or "").strip():
            raise ValidationError("Event description is required")
        event_type = _event_type(type)

        with self._lock:
            client = self.get_client(client_id) if client_id else None
            event = CalendarEvent.create(
                date=day,
                hours=hours,
                description=description,
                type=event_type,
                client_id=client_id,
                client_name=client.name if client else None,
                start_time=start_time,
                end_time=end_time,
            )
            self._commit_events((*self._events, event), upserts=[event])
        logger.info(f"Added calendar event {event.id} on {day} ({hours}h, {event_type.value})")
        self._notify("info", "Event added", "The event was added to the calendar")
        return event

    def update_calendar_event(self, event: CalendarEvent) -> CalendarEvent:
        if not (event.description or "").strip():
            raise ValidationError("Event description is required")
        checked = replace(
            event,
            date=_iso_day(event.date),
            hours=parse_hours(event.hours),
            type=_event_type(event.type),
        )

        with self._lock:
            if self.get_event(event.id) is None:
                raise UnknownRecordError(f"No calendar event with id {event.id}")
            updated = replace(checked, updated_at=now_utc_iso())
            self._commit_events(
                [updated if e.id == event.id else e for e in self._events], upserts=[updated]
            )
        logger.info(f"Updated calendar event {event.id}")
        self._notify("info", "Event updated", "The event was updated")
        return updated

    def delete_calendar_event(self, event_id: str) -> None:
        with self._lock:
            if self.get_event(event_id) is None:
                logger.warning(f"Event {event_id} not in memory; deleting remotely only")
            self._commit_events([e for e in self._events if e.id != event_id], deletes=[event_id])
        logger.info(f"Deleted calendar event {event_id}")
        self._notify("info", "Event deleted", "The event was deleted")
