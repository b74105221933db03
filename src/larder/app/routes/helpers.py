from __future__ import annotations

from quart import abort, request, session

from larder.settings import settings


def current_user_id() -> str | None:
    """Return the acting user from the identity header or the session."""

    header = str(settings.AUTH.user_header or "X-User-Id")
    user_id = (request.headers.get(header) or "").strip()
    if user_id:
        return user_id
    session_user = session.get("user_id")
    if session_user:
        return str(session_user)
    return None


def require_user_id() -> str:
    """Return the acting user or abort with a 401 error."""

    user_id = current_user_id()
    if not user_id:
        abort(401, description="Authentication required")
        raise AssertionError("unreachable")
    return user_id


def parse_positive_int(raw: str | None, *, default: int, maximum: int) -> int:
    """Parse a small positive integer query parameter or abort with 400."""

    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        abort(400, description="Expected an integer")
        raise AssertionError("unreachable") from exc
    if value < 1 or value > maximum:
        abort(400, description=f"Expected a value between 1 and {maximum}")
    return value
