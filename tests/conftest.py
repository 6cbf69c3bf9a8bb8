"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from worksync.core import db_client
from worksync.core.config import constants, settings


logger = logging.getLogger(__name__)


@pytest.fixture
async def sqlite_db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> AsyncIterator[Path]:
    """A fresh SQLite database with the full schema in a temporary folder.

    File storage also moves under the temporary folder and password hashing
    is made cheap.
    """
    db_path = tmp_path / "worksync.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))
    monkeypatch.setattr(settings, "file_storage_root", str(tmp_path / "storage"))
    monkeypatch.setattr(constants, "PASSWORD_HASH_ITERATIONS", 1000)

    await db_client.init_db()
    logger.info("Test database ready", extra={"db_path": str(db_path)})

    yield db_path

    await db_client.close_connection()
