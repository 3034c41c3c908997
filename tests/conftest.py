import os
import tempfile

# Pin the environment before smartcanteen reads its settings
_tmpdir = tempfile.mkdtemp(prefix="smartcanteen-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmpdir}/test.db"
os.environ["FORECAST_PROVIDER"] = "offline"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["SEED_DEMO_DATA"] = "false"

import pytest
from fastapi.testclient import TestClient

from smartcanteen import ai_insights
from smartcanteen.database import Base, SessionLocal, engine, init_db
from smartcanteen.forecast import guard
from smartcanteen.schemas import DailyEntry, MenuItem
from smartcanteen.store import CanteenState


@pytest.fixture(autouse=True)
def fresh_store():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ai_insights.reset_client()
    guard._running.clear()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from smartcanteen.app import app

    with TestClient(app) as c:
        yield c


def make_item(item_id="1", name=None, base_quantity=100, carbon_grams=1200, **kw):
    return MenuItem(
        id=item_id,
        name=name or f"Item {item_id}",
        base_quantity=base_quantity,
        carbon_grams=carbon_grams,
        **kw,
    )


def make_entry(item_id="1", prepared=100, consumed=85, day="2023-10-23", entry_id=None, **kw):
    return DailyEntry(
        id=entry_id or f"{item_id}-{day}-{prepared}-{consumed}",
        date=day,
        menu_item_id=item_id,
        prepared=prepared,
        consumed=consumed,
        **kw,
    )


@pytest.fixture
def state():
    return CanteenState(catalog=[make_item("1", "Chicken Curry & Rice"), make_item("2", "Vegetable Pasta", 80, 350)])


class FakeMessages:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.reply)


class FakeBlock:
    def __init__(self, text):
        self.text = text


class FakeResponse:
    def __init__(self, text):
        self.content = [FakeBlock(text)]


class FakeClient:
    def __init__(self, reply=None, error=None):
        self.messages = FakeMessages(reply, error)


@pytest.fixture
def fake_service(monkeypatch):
    """Install a fake text-generation client; returns a factory taking reply/error."""

    def install(reply=None, error=None):
        fake = FakeClient(reply, error)
        monkeypatch.setattr(ai_insights, "get_client", lambda: fake)
        return fake

    return install
