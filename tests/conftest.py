import pytest

from repositories.indexes import ensure_indexes
from services.container import build_variant_services
from services.variants import VARIANTS
from tests.fakes import (
    AsyncMongoDatabase,
    FakeClock,
    InMemoryStorage,
    RecordingNotifier,
    make_settings,
)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db():
    database = AsyncMongoDatabase()
    await ensure_indexes(database, VARIANTS.values())
    return database


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def services(db, settings, notifier, storage, clock):
    return build_variant_services(
        db, settings, notifier=notifier, storage=storage, clock=clock
    )
