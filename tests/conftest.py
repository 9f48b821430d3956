from datetime import date

import pytest
from fastapi.testclient import TestClient

from db.database import Database
from errors import ExternalServiceError
from hub.broadcast import Broadcaster
from hub.resources import ResourceRegistry
from hub.speeches import SpeechFeed
from hub.stats import StatsTracker
from hub.timer import TimerService
from server.app import create_app


class FakeObjectStore:
    base = "https://storage.example/public/user-uploads"

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.configured = True

    @property
    def is_configured(self):
        return self.configured

    def upload(self, path, data, content_type):
        if not self.configured:
            raise ExternalServiceError("Object storage is not configured")
        self.objects[path] = data
        return path

    def public_url(self, path):
        if not self.configured:
            raise ExternalServiceError("Object storage is not configured")
        return f"{self.base}/{path}"

    def delete(self, path):
        self.deleted.append(path)
        self.objects.pop(path, None)


class Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "hub.db")
    yield database
    database.close()


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.fixture
def inbox(broadcaster):
    return broadcaster.subscribe()


@pytest.fixture
def timer(db, broadcaster):
    return TimerService(db, broadcaster, tick_interval=0)


@pytest.fixture
def feed(db, broadcaster):
    return SpeechFeed(db, broadcaster)


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def registry(db, store):
    return ResourceRegistry(db, store)


@pytest.fixture
def clock():
    return Clock(date(2026, 10, 19))


@pytest.fixture
def stats(db, clock):
    return StatsTracker(db, today=clock)


@pytest.fixture
def static_dir(tmp_path):
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_text("<html>debate hub shell</html>", encoding="utf-8")
    (root / "app.js").write_text("console.log('hub')", encoding="utf-8")
    return root


@pytest.fixture
def app(timer, feed, registry, stats, broadcaster, static_dir):
    return create_app(timer, feed, registry, stats, broadcaster, static_dir=static_dir)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
