from fastapi import Request

from leaderboard_sync.core.session_store import SessionStore


def get_session_store(request: Request) -> SessionStore | None:
    return getattr(request.app.state, "session_store", None)
