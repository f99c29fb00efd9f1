"""Authentication: sessions and caller identities."""

from tasksync.auth.session import (
    CallerIdentity,
    Session,
    SessionProvider,
    StaticSessionProvider,
    create_session_token,
    decode_session_token,
)

__all__ = [
    "CallerIdentity",
    "Session",
    "SessionProvider",
    "StaticSessionProvider",
    "create_session_token",
    "decode_session_token",
]
