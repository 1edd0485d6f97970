import pytest

from drawing import DrawingSurface
from engine import AppState
from store import Identity, MemoryStore


@pytest.fixture
def store():
    return MemoryStore("test-app", "user-1")


@pytest.fixture
def state():
    st = AppState(surface=DrawingSurface())
    st.mark_ready(Identity(uid="user-1", persistent=False), degraded=True)
    return st


@pytest.fixture
def live(store, state):
    """Keep state in sync with the store like a mounted page does."""
    subs = []

    def _bind(resource, key=None):
        def on_change(records):
            state.apply_records(resource, records)
        if key is None:
            subs.append(store.subscribe(resource, on_change))
        else:
            subs.append(store.subscribe_singleton(resource, key, on_change))

    yield _bind
    for sub in subs:
        sub.cancel()
