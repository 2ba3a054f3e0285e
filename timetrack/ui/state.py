# timetrack/ui/state.py
import threading
from typing import Optional

import streamlit as st

from timetrack.config import LOCAL_CACHE_PATH
from timetrack.repositories.local_cache import LocalCache
from timetrack.repositories.remote_tables import GSheetsTableStore
from timetrack.services.gsheets_client import get_spreadsheet
from timetrack.services.stopwatch import Stopwatch
from timetrack.services.tracker_store import TrackerStore

# Centralize keys to avoid typos across files
KEY_STORE = "tracker_store"
KEY_STOPWATCH = "stopwatch"
KEY_NOTICES = "notices"
KEY_DO_RESET = "_do_reset"

KEY_NEW_CLIENT_NAME = "new_client_name"
KEY_TIMER_CLIENT = "timer_client"
# per-client widget key prefixes
KEY_SESSION_HOURS = "session_hours"
KEY_SESSION_DESCRIPTION = "session_description"


class NoticeQueue:
    """
    Notifier that buffers messages until the next rerun.
    Remote calls finish on worker threads, where st.* calls have no page to draw on.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: list[tuple[str, str, str]] = []

    def __call__(self, level: str, title: str, message: str) -> None:
        with self._lock:
            self._items.append((level, title, message))

    def drain(self) -> list[tuple[str, str, str]]:
        with self._lock:
            items, self._items = self._items, []
        return items


def init_state_if_missing() -> None:
    """Call at the top of the page before rendering widgets."""
    if KEY_NOTICES not in st.session_state:
        st.session_state[KEY_NOTICES] = NoticeQueue()

    if KEY_STORE not in st.session_state:
        store = TrackerStore(
            local_cache=LocalCache(LOCAL_CACHE_PATH),
            remote=GSheetsTableStore(get_spreadsheet),
            notify=st.session_state[KEY_NOTICES],
        )
        store.load_clients()
        st.session_state[KEY_STORE] = store

    if KEY_STOPWATCH not in st.session_state:
        store = st.session_state[KEY_STORE]
        st.session_state[KEY_STOPWATCH] = Stopwatch(
            on_save=store.add_time_session,
            notify=st.session_state[KEY_NOTICES],
        )


def get_store() -> TrackerStore:
    return st.session_state[KEY_STORE]


def get_stopwatch() -> Stopwatch:
    return st.session_state[KEY_STOPWATCH]


def show_notices() -> None:
    for level, title, message in st.session_state[KEY_NOTICES].drain():
        if level == "error":
            st.error(f"**{title}**: {message}")
        elif level == "warning":
            st.warning(f"**{title}**: {message}")
        else:
            st.toast(f"{title}: {message}")


def mark_reset(values: Optional[dict] = None) -> None:
    """Widget values to apply on the next run; by default clears the new-client name."""
    st.session_state[KEY_DO_RESET] = values or {KEY_NEW_CLIENT_NAME: ""}


def apply_reset_if_marked() -> None:
    """
    'Reset on next run' pattern: call this at the very top
    of the page BEFORE creating widgets.
    """
    pending = st.session_state.get(KEY_DO_RESET)
    if pending:
        for key, value in pending.items():
            st.session_state[key] = value
        st.session_state[KEY_DO_RESET] = None
