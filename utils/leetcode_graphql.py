from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass

import requests

from config import DEFAULT_GRAPHQL_URL, DEFAULT_USER_AGENT
from logging_utils import get_logger

logger = get_logger(__name__)


class GraphQLApiError(RuntimeError):
    pass


@dataclass(frozen=True)
class GraphQLResponse:
    url: str
    status_code: int
    content: bytes


def _safe_preview_bytes(data: bytes | None, *, limit: int = 2000) -> str:
    """Log-safe preview of a response body (truncated, decoded with replacement)."""

    if not data:
        return ""
    return data[:limit].decode("utf-8", errors="replace")


def extract_slug(url: str | None) -> str | None:
    """Extract the title slug from a problem URL.

    Example: "https://leetcode.com/problems/word-search/" -> "word-search"
    """

    if not url:
        return None
    marker = "/problems/"
    if marker not in url:
        return None
    s = url.split(marker, 1)[1]
    # drop trailing path parts, query params and fragments
    s = s.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0].strip()
    return s or None


def build_batch_query(slugs: Sequence[str]) -> str:
    """Build one GraphQL document with aliases q0..qN, one per slug."""

    lines = ["query {"]
    for i, slug in enumerate(slugs):
        # JSON string literals are valid GraphQL string literals.
        lines.append(f"  q{i}: question(titleSlug: {json.dumps(slug)}) {{")
        lines.append("    questionId")
        lines.append("    topicTags { name slug }")
        lines.append("  }")
    lines.append("}")
    return "\n".join(lines) + "\n"


def _post(
    *,
    url: str,
    query: str,
    session: requests.Session | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout_seconds: float = 20.0,
) -> GraphQLResponse:
    """POST a GraphQL query once (no retries).

    GraphQL servers commonly answer 200 even for query errors, so only 429 and
    5xx are treated as failures here.
    """

    owns_session = session is None
    s = session or requests.Session()
    headers = {"Content-Type": "application/json", "User-Agent": user_agent}

    try:
        resp = s.post(
            url, data=json.dumps({"query": query}), headers=headers, timeout=timeout_seconds
        )
    except requests.RequestException as e:
        raise GraphQLApiError(f"GraphQL request failed url={url} err={e}") from e
    finally:
        if owns_session:
            s.close()

    if resp.status_code == 429 or resp.status_code >= 500:
        logger.warning(
            "GraphQL non-success response | status=%s url=%s body_preview=%s",
            resp.status_code,
            url,
            _safe_preview_bytes(getattr(resp, "content", b"")),
        )
        raise GraphQLApiError(
            f"GraphQL request failed status={resp.status_code} url={url}"
        )

    return GraphQLResponse(url=url, status_code=resp.status_code, content=resp.content)


def fetch_topic_tags(
    slugs: Sequence[str],
    *,
    session: requests.Session | None = None,
    url: str = DEFAULT_GRAPHQL_URL,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout_seconds: float = 20.0,
) -> dict[str, list[str] | None]:
    """Fetch topic tag names for a batch of title slugs.

    Returns `{slug: [tag names]}`. A slug maps to None when the service did not
    resolve it; callers treat that as "no change".

    Raises:
        GraphQLApiError: transport failure, 429/5xx, or a body that is not JSON.
    """

    if not slugs:
        return {}

    r = _post(
        url=url,
        query=build_batch_query(slugs),
        session=session,
        user_agent=user_agent,
        timeout_seconds=timeout_seconds,
    )

    try:
        payload = json.loads(r.content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise GraphQLApiError(f"GraphQL response is not JSON url={url}") from e

    if not isinstance(payload, dict):
        raise GraphQLApiError(f"GraphQL response has unexpected shape url={url}")

    errors = payload.get("errors")
    if errors:
        # Partial data is still usable; log and continue.
        logger.warning("GraphQL errors | url=%s batch=%s errors=%s", url, len(slugs), errors)

    data = payload.get("data") or {}
    out: dict[str, list[str] | None] = {}
    for i, slug in enumerate(slugs):
        entry = data.get(f"q{i}") if isinstance(data, dict) else None
        if not isinstance(entry, dict) or not entry.get("questionId"):
            out[slug] = None
            continue
        names: list[str] = []
        for t in entry.get("topicTags") or []:
            if not isinstance(t, dict):
                continue
            name = t.get("name")
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
        out[slug] = names
    return out
