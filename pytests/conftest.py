from __future__ import annotations

import os
import tempfile

import pytest

# Per-module log files are opened at import time; keep them out of the tree.
os.environ.setdefault("PROBLEMSET_LOG_DIR", tempfile.mkdtemp(prefix="problemset-logs-"))

from pytests.common import create_empty_sqlite_db  # noqa: E402


@pytest.fixture()
def primary_db(tmp_path):
    """(session_factory, engine) for an empty primary store."""

    session_factory, engine = create_empty_sqlite_db(tmp_path / "primary.sqlite")
    yield session_factory, engine
    engine.dispose()


@pytest.fixture()
def replica_db(tmp_path):
    """(session_factory, engine) for an empty replica store."""

    session_factory, engine = create_empty_sqlite_db(tmp_path / "replica.sqlite")
    yield session_factory, engine
    engine.dispose()
