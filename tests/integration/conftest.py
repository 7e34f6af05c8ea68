"""Integration test fixtures.

The AppState comes from tests/conftest.py (in-memory SQLite, real fetcher
behind respx, Pillow codec, fake renderer). These helpers age stored
records so tests can exercise the revalidation paths without waiting.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from ogpcache.models.cache import ValidatorSet
    from ogpcache.protocols import ImageTable
    from ogpcache.state import AppState


def _aged(validators: ValidatorSet) -> ValidatorSet:
    past = datetime.now(UTC) - timedelta(hours=2)
    return validators.model_copy(
        update={"issued_at": past, "expires_at": past + timedelta(hours=1)}
    )


@pytest.fixture()
def expire_metadata(app_state: AppState) -> Callable[[str], Awaitable[None]]:
    """Push a stored metadata record's expiry into the past."""

    async def expire(origin: str) -> None:
        record = await app_state.store.get_metadata(origin)
        assert record is not None
        await app_state.store.upsert_metadata(
            record.model_copy(update={"validators": _aged(record.validators)})
        )

    return expire


@pytest.fixture()
def expire_image(app_state: AppState) -> Callable[[ImageTable, str], Awaitable[None]]:
    """Push a stored image record's expiry into the past."""

    async def expire(table: ImageTable, address: str) -> None:
        record = await app_state.store.get_image(table, address)
        assert record is not None
        await app_state.store.upsert_image(
            table, record.model_copy(update={"validators": _aged(record.validators)})
        )

    return expire
