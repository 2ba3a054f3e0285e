from dataclasses import replace
from datetime import date

import pandas as pd
import streamlit as st

from timetrack.config import EVENT_TYPES, LOG_FILE, LOG_LEVEL
from timetrack.errors import TimeTrackError
from timetrack.logger import setup_logger
from timetrack.services.calendar_view import (
    ViewMode,
    cells_for,
    shift,
)
from timetrack.services.stopwatch import StopwatchState
from timetrack.ui.state import (
    KEY_NEW_CLIENT_NAME,
    KEY_SESSION_DESCRIPTION,
    KEY_SESSION_HOURS,
    KEY_TIMER_CLIENT,
    apply_reset_if_marked,
    get_stopwatch,
    get_store,
    init_state_if_missing,
    mark_reset,
    show_notices,
)
from timetrack.utils.duration import hours_to_minutes

WEEKDAY_HEADERS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@st.cache_resource
def _configure_logging():
    setup_logger(level=LOG_LEVEL, log_file=LOG_FILE)


_configure_logging()
st.set_page_config(page_title="Time tracking", layout="wide")

init_state_if_missing()
apply_reset_if_marked()

store = get_store()
stopwatch = get_stopwatch()


def _run(action, *args, **kwargs):
    """Run a store action; input and lookup errors become an on-page message."""
    try:
        return action(*args, **kwargs)
    except TimeTrackError as e:
        st.error(str(e))
        return None


head_l, head_r = st.columns([6, 1])
with head_l:
    st.title("Time tracking")
    if store.loading:
        st.caption("Syncing with the cloud…")
with head_r:
    if st.button("Refresh", key="refresh_btn"):
        store.refresh(timeout=30)
        st.rerun()

show_notices()

tab_clients, tab_timer, tab_calendar = st.tabs(["Clients", "Timer", "Calendar"])

# -----------------------------
# Clients
# -----------------------------
with tab_clients:
    c1, c2 = st.columns([4, 1])
    with c1:
        new_name = st.text_input("New client", key=KEY_NEW_CLIENT_NAME)
    with c2:
        st.write("")
        if st.button("Add client", key="add_client_btn"):
            if _run(store.add_client, new_name):
                mark_reset()
                st.rerun()

    clients = store.clients
    if not clients:
        st.info("No clients yet.")
    else:
        overview = pd.DataFrame(
            [
                {
                    "client": c.name,
                    "total_hours": round(c.total_hours, 2),
                    "total_minutes": hours_to_minutes(c.total_hours),
                    "sessions": len(c.sessions),
                }
                for c in clients
            ]
        )
        st.dataframe(overview, use_container_width=True, hide_index=True)
        st.metric("Total hours", f"{sum(c.total_hours for c in clients):.2f}")

    for client in clients:
        with st.expander(f"{client.name} · {client.total_hours:.2f}h"):
            a1, a2, a3 = st.columns([1, 3, 1])
            with a1:
                hours = st.text_input("Hours", key=f"{KEY_SESSION_HOURS}_{client.id}")
            with a2:
                description = st.text_input("Description", key=f"{KEY_SESSION_DESCRIPTION}_{client.id}")
            with a3:
                st.write("")
                if st.button("Add session", key=f"add_session_{client.id}"):
                    if _run(store.add_time_session, client.id, hours, description):
                        st.rerun()

            for s in client.sessions:
                s1, s2, s3, s4, s5 = st.columns([2, 1, 4, 1, 1])
                with s1:
                    st.write(s.date)
                with s2:
                    edit_hours = st.text_input(
                        "Hours", value=f"{s.hours:g}", key=f"edit_h_{s.id}", label_visibility="collapsed"
                    )
                with s3:
                    edit_desc = st.text_input(
                        "Description", value=s.description, key=f"edit_d_{s.id}", label_visibility="collapsed"
                    )
                with s4:
                    if st.button("Save", key=f"save_{s.id}"):
                        if _run(store.edit_session, client.id, s.id, edit_hours, edit_desc):
                            st.rerun()
                with s5:
                    if st.button("Delete", key=f"del_{s.id}"):
                        if _run(store.delete_session, client.id, s.id):
                            st.rerun()

            client_events = sorted(store.events_for_client(client.id), key=lambda e: e.date, reverse=True)
            if client_events:
                st.caption("Calendar events")
                st.dataframe(
                    pd.DataFrame(
                        [
                            {"date": e.date, "hours": e.hours, "type": e.type.value, "description": e.description}
                            for e in client_events
                        ]
                    ),
                    use_container_width=True,
                    hide_index=True,
                )
                this_year = cells_for(date.today(), ViewMode.YEAR, client_events)
                st.bar_chart(
                    pd.DataFrame(
                        {"hours": [m.total_hours for m in this_year]},
                        index=pd.Index([m.month for m in this_year], name="month"),
                    )
                )

            if st.button("Delete client", key=f"delete_client_{client.id}", type="secondary"):
                store.delete_client(client.id)
                st.rerun()

# -----------------------------
# Timer
# -----------------------------
with tab_timer:
    client_names = {c.id: c.name for c in store.clients}

    @st.fragment(run_every="1s")
    def _stopwatch_panel():
        st.header(stopwatch.display)
        st.caption(stopwatch.state.value)

    options = [""] + list(client_names)
    if st.session_state.get(KEY_TIMER_CLIENT, "") not in options:
        st.session_state[KEY_TIMER_CLIENT] = ""
    selected = st.selectbox(
        "Client",
        options,
        format_func=lambda cid: client_names.get(cid, "Select a client…"),
        key=KEY_TIMER_CLIENT,
    )
    if not stopwatch.running:
        stopwatch.select_client(selected)

    _stopwatch_panel()

    b1, b2, b3, b4 = st.columns(4)
    with b1:
        if not stopwatch.running:
            if st.button("Start", key="timer_start"):
                _run(stopwatch.start)
                st.rerun()
        elif st.button("Pause", key="timer_pause"):
            stopwatch.pause()
            st.rerun()
    with b2:
        if st.button("Reset", key="timer_reset"):
            stopwatch.reset()
            st.rerun()
    with b3:
        if st.button("Save", key="timer_save", disabled=stopwatch.state is StopwatchState.IDLE):
            stopwatch.save()
            mark_reset({KEY_TIMER_CLIENT: ""})
            st.rerun()
    with b4:
        last = stopwatch.last_session
        if last is not None and st.button(
            f"Restart {client_names.get(last.client_id, 'last client')}", key="timer_restart"
        ):
            if stopwatch.restart_last():
                mark_reset({KEY_TIMER_CLIENT: last.client_id})
            st.rerun()

# -----------------------------
# Calendar
# -----------------------------
with tab_calendar:
    if "calendar_ref" not in st.session_state:
        st.session_state["calendar_ref"] = date.today()

    mode = ViewMode(
        st.radio("View", [m.value for m in ViewMode], index=2, horizontal=True, key="calendar_mode")
    )
    ref: date = st.session_state["calendar_ref"]

    n1, n2, n3, n4 = st.columns([1, 1, 1, 5])
    with n1:
        if st.button("◀", key="cal_prev"):
            st.session_state["calendar_ref"] = shift(ref, mode, -1)
            st.rerun()
    with n2:
        if st.button("Today", key="cal_today"):
            st.session_state["calendar_ref"] = date.today()
            st.rerun()
    with n3:
        if st.button("▶", key="cal_next"):
            st.session_state["calendar_ref"] = shift(ref, mode, 1)
            st.rerun()
    with n4:
        st.subheader(ref.strftime("%B %Y") if mode is not ViewMode.DAY else ref.isoformat())

    cells = cells_for(ref, mode, store.events)
    if mode is ViewMode.YEAR:
        st.dataframe(
            pd.DataFrame(
                [
                    {"month": date(ref.year, m.month, 1).strftime("%b"), "hours": m.total_hours, "events": m.event_count}
                    for m in cells
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    elif mode is ViewMode.DAY:
        cell = cells[0]
        st.write(f"Total hours: {cell.total_hours:.1f}")
        for e in cell.events:
            st.write(f"{e.hours}h · {e.type.value} · {e.client_name or '-'} · {e.description}")
    else:
        header = st.columns(7)
        for col, name in zip(header, WEEKDAY_HEADERS):
            col.markdown(f"**{name}**")
        for week_start in range(0, len(cells), 7):
            row = st.columns(7)
            for col, cell in zip(row, cells[week_start:week_start + 7]):
                label = f"**{cell.day.day}**" if cell.in_month else str(cell.day.day)
                if cell.is_today:
                    label = f":blue[{label}]"
                col.markdown(label)
                if cell.total_hours > 0:
                    col.caption(f"{cell.total_hours:.1f}h · {len(cell.events)}")

    st.divider()
    st.subheader("Events")
    event_day = st.date_input("Day", value=ref, key="event_day")
    client_names = {c.id: c.name for c in store.clients}

    with st.form("add_event", clear_on_submit=True):
        f1, f2, f3 = st.columns(3)
        with f1:
            ev_hours = st.text_input("Hours")
            ev_type = st.selectbox("Type", EVENT_TYPES)
        with f2:
            ev_client = st.selectbox(
                "Client", [""] + list(client_names), format_func=lambda cid: client_names.get(cid, "-")
            )
            ev_start = st.text_input("Start (HH:MM)")
        with f3:
            ev_end = st.text_input("End (HH:MM)")
        ev_desc = st.text_area("Description")
        if st.form_submit_button("Add event"):
            if _run(
                store.add_calendar_event,
                event_day,
                ev_hours,
                ev_desc,
                type=ev_type,
                client_id=ev_client or None,
                start_time=ev_start,
                end_time=ev_end,
            ):
                st.rerun()

    for e in store.events_for_date(event_day):
        e1, e2, e3, e4 = st.columns([1, 4, 1, 1])
        with e1:
            new_hours = st.text_input("Hours", value=f"{e.hours:g}", key=f"ev_h_{e.id}", label_visibility="collapsed")
        with e2:
            new_desc = st.text_input("Description", value=e.description, key=f"ev_d_{e.id}", label_visibility="collapsed")
        with e3:
            if st.button("Save", key=f"ev_save_{e.id}"):
                if _run(store.update_calendar_event, replace(e, hours=new_hours, description=new_desc)):
                    st.rerun()
        with e4:
            if st.button("Delete", key=f"ev_del_{e.id}"):
                store.delete_calendar_event(e.id)
                st.rerun()
