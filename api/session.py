from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import sessionmaker

SESSION_FACTORY_KEY = "problemset_session_factory"


def get_session_factory() -> sessionmaker:
    """Session factory registered by `create_app` for the current app."""

    return current_app.extensions[SESSION_FACTORY_KEY]
