"""Flask settings.

Flask loads this module on startup via ``app.config.from_pyfile(...)``.

Database URLs and job tunables live in `config.SyncConfig` (environment
driven); only web-process settings belong here.
"""

SETTINGS: dict[str, object] = {
    # Flask
    "SECRET_KEY": "dev-not-secret",
    # Requests slower than this are logged at WARNING; 0 disables.
    "SLOW_REQUEST_MS": 250,
    # Upper bound for list endpoints.
    "MAX_PAGE_SIZE": 500,
}

SECRET_KEY = SETTINGS["SECRET_KEY"]
SLOW_REQUEST_MS = SETTINGS["SLOW_REQUEST_MS"]
MAX_PAGE_SIZE = SETTINGS["MAX_PAGE_SIZE"]
