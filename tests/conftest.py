"""
Общие фикстуры: SQLite во временном каталоге, управляемые часы, поддельный транспорт.
"""

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from analytics import Analytics
from grant_repo import GrantRepository
from main import make_engine
from models import init_db
from promo_repo import PromoRepository
from services.entitlement_service import EntitlementService
from user_repo import UserRepository


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingAnalytics(Analytics):
    def __init__(self):
        self.events = []

    def track(self, event, distinct_id, properties=None):
        self.events.append((event, distinct_id, dict(properties or {})))

    def names(self):
        return [e[0] for e in self.events]


class FakeTransport:
    """Записывает всё, что бот «отправил»; скачивание можно уронить."""

    def __init__(self, voice_bytes: bytes = b"OggS-fake"):
        self.texts = []
        self.audios = []
        self.actions = []
        self.downloads = []
        self.voice_bytes = voice_bytes
        self.download_error = None

    async def send_text(self, user_id, text, reply_markup=None, parse_mode=None):
        self.texts.append((user_id, text, reply_markup, parse_mode))

    async def send_audio(self, user_id, data):
        self.audios.append((user_id, data))

    async def send_action(self, user_id, action="record_voice"):
        self.actions.append((user_id, action))

    async def download_voice(self, file_id):
        self.downloads.append(file_id)
        if self.download_error is not None:
            raise self.download_error
        return self.voice_bytes


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 15, 13, 45, 10))


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def users(engine, clock):
    return UserRepository(engine, clock=clock)


@pytest.fixture
def grants(engine, clock):
    return GrantRepository(engine, clock=clock)


@pytest.fixture
def promos(engine, clock):
    return PromoRepository(engine, clock=clock)


@pytest.fixture
def analytics():
    return RecordingAnalytics()


@pytest.fixture
def entitlements(users, grants, promos, analytics):
    return EntitlementService(users, grants, promos, analytics)


@pytest.fixture
def transport():
    return FakeTransport()
