"""Dashboard wiring, driven through streamlit's AppTest with a store backed by the fake remote."""

import pytest
from streamlit.testing.v1 import AppTest

from timetrack.services.stopwatch import Stopwatch, StopwatchState
from timetrack.ui.state import KEY_STOPWATCH, KEY_STORE, KEY_TIMER_CLIENT

APP = "../streamlit_app.py"


@pytest.fixture
def stopwatch(store, notices):
    sw = Stopwatch(store.add_time_session, notify=notices, interval=3600.0)
    yield sw
    sw.close()


@pytest.fixture
def app(store, stopwatch):
    at = AppTest.from_file(APP, default_timeout=30)
    at.session_state[KEY_STORE] = store
    at.session_state[KEY_STOPWATCH] = stopwatch
    return at


class TestTimerTab:
    def test_save_is_available_while_running(self, app, store, stopwatch):
        client = store.add_client("Acme")
        app.run()
        assert app.button(key="timer_save").disabled

        app.selectbox(key=KEY_TIMER_CLIENT).select(client.id).run()
        app.button(key="timer_start").click().run()
        assert stopwatch.state is StopwatchState.RUNNING
        assert not app.button(key="timer_save").disabled

    def test_save_clears_the_client_selection(self, app, store, stopwatch):
        client = store.add_client("Acme")
        app.run()
        app.selectbox(key=KEY_TIMER_CLIENT).select(client.id).run()
        app.button(key="timer_start").click().run()
        for _ in range(1800):
            stopwatch.tick()

        app.button(key="timer_save").click().run()
        assert store.get_client(client.id).total_hours == 0.5
        assert stopwatch.client_id is None
        assert app.selectbox(key=KEY_TIMER_CLIENT).value == ""


class TestClientsTab:
    def test_client_panel_lists_its_events(self, app, store):
        acme = store.add_client("Acme")
        store.add_client("Globex")
        store.add_calendar_event("2025-03-04", 1.5, "kickoff", type="meeting", client_id=acme.id)
        app.run()

        assert "Calendar events" in [c.value for c in app.caption]
        descriptions = [
            d for df in (el.value for el in app.dataframe) if "description" in df.columns for d in df["description"]
        ]
        assert descriptions == ["kickoff"]
