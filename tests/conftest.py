"""
Shared fixtures: in-memory stores and the core services wired to them.
"""

import itertools
from typing import List, Optional

import pytest

from event_waitlist.config import DispatchConfig
from event_waitlist.integrations.memory_store import InMemoryDatabase, create_memory_stores
from event_waitlist.models.user_profile import UserProfile
from event_waitlist.services.notification_dispatcher import NotificationDispatcher
from event_waitlist.services.waitlist_manager import WaitlistManager


@pytest.fixture
def db() -> InMemoryDatabase:
    """In-memory database with predictable document ids."""
    counter = itertools.count(1)
    return InMemoryDatabase(id_factory=lambda: f"doc-{next(counter)}")


@pytest.fixture
def stores(db):
    return create_memory_stores(db)


@pytest.fixture
def manager(stores) -> WaitlistManager:
    return WaitlistManager(stores.entries, stores.decisions, stores.profiles)


@pytest.fixture
def dispatcher(stores) -> NotificationDispatcher:
    return NotificationDispatcher(
        stores.profiles,
        stores.notifications,
        stores.decisions,
        stores.entries,
        config=DispatchConfig(),
    )


@pytest.fixture
def seed_profile(stores):
    """Write a profile document directly."""

    async def _seed(
        user_id: str,
        registered_event_ids: Optional[List[str]] = None,
        opt_out: Optional[bool] = None
    ) -> UserProfile:
        profile = UserProfile(
            user_id=user_id,
            registered_event_ids=registered_event_ids or [],
            notification_opt_out=bool(opt_out),
        )
        await stores.profiles.put(user_id, profile)
        return profile

    return _seed
