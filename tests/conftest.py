"""
Shared fixtures.

Every engine in the tests runs on a ManualScheduler (virtual clock), an
in-memory key-value store and an in-memory remote, so no test touches the
network or the wall clock.
"""

from datetime import datetime

import pytest

from organizer.config import Settings, SyncSettings
from organizer.engine import create_organizer
from organizer.services.storage import InMemoryRemoteStore, MemoryKeyValueStore
from organizer.sync.scheduler import ManualScheduler


# Monday
START = datetime(2024, 1, 1, 9, 0)

DAILY = [0, 1, 2, 3, 4, 5, 6]


@pytest.fixture
def scheduler():
    return ManualScheduler(START)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def sync_settings():
    return SyncSettings(
        remote_key="glow-up-organizer-data",
        max_retries=3,
        drain_pause_seconds=0,
        poll_interval_seconds=30,
        hidden_poll_interval_seconds=300,
        failure_backoff_threshold=3,
        max_poll_interval_seconds=900,
    )


@pytest.fixture
def make_organizer(scheduler, kv, remote, sync_settings):
    """Build an engine over the shared fixtures (remote can be overridden)."""
    def _make(remote_store=remote, online=True, visible=True):
        return create_organizer(
            Settings(),
            scheduler=scheduler,
            kv_store=kv,
            remote=remote_store,
            sync_settings=sync_settings,
            online=online,
            visible=visible,
        )
    return _make


@pytest.fixture
def organizer(make_organizer):
    return make_organizer()


@pytest.fixture
def store(organizer):
    return organizer.store
