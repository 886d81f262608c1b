"""
Pytest Configuration for examguard Tests
"""
import os
import sys
import pytest
import numpy as np
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from examguard.config import Settings


class FakeClock:
    """Manually advanced clock returning epoch milliseconds"""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class RecordingSink:
    """Event sink that keeps every submitted entry"""

    def __init__(self):
        self.entries = []
        self.closed = False

    def submit(self, entry):
        self.entries.append(entry)

    async def aclose(self):
        self.closed = True


class StubModel:
    """Perception model returning queued results (last one repeats)"""

    def __init__(self, *results):
        self.results = list(results) or [[]]
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        index = min(self.calls - 1, len(self.results) - 1)
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture(scope='function')
def test_settings(tmp_path):
    """Settings isolated to a temporary directory, models disabled"""
    return Settings(
        LOAD_MODELS=False,
        EVENT_SINK_URL=None,
        VIDEO_UPLOAD_URL=None,
        LOGS_FILE=str(tmp_path / "logs.json"),
        UPLOADS_DIR=str(tmp_path / "uploads")
    )


@pytest.fixture(scope='function')
def clock():
    return FakeClock()


@pytest.fixture(scope='function')
def sink():
    return RecordingSink()


@pytest.fixture(scope='function')
def frame():
    """Dark 640x480 BGR frame"""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture(scope='function')
def centered_face():
    """Face box centered in a 640x480 frame"""
    return {"box": [270, 190, 100, 100]}


@pytest.fixture(scope='function')
def app(test_settings, monkeypatch):
    """FastAPI app wired to a temporary event store and session manager"""
    from examguard import main
    from examguard.main import app
    from examguard.proctor import log_api
    from examguard.proctor.dependencies import get_event_mirror, get_event_store, get_session_manager
    from examguard.proctor.manager import SessionManager
    from examguard.proctor.sinks import EventLogStore

    store = EventLogStore(test_settings.LOGS_FILE)
    manager = SessionManager(store=store, config=test_settings)

    monkeypatch.setattr(log_api, "settings", test_settings)
    monkeypatch.setattr(main, "get_session_manager", lambda: manager)
    monkeypatch.setattr(main, "get_event_mirror", lambda: None)
    app.dependency_overrides[get_event_store] = lambda: store
    app.dependency_overrides[get_session_manager] = lambda: manager
    app.dependency_overrides[get_event_mirror] = lambda: None
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def client(app):
    """FastAPI test client; one event loop serves every request of a test"""
    with TestClient(app) as test_client:
        yield test_client
