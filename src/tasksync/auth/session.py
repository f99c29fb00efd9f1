"""User sessions carried as signed bearer tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

from jose import ExpiredSignatureError, JWTError, jwt

from tasksync.config import Settings, get_settings
from tasksync.core.exceptions import UnauthenticatedError
from tasksync.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling.

    ``user_id`` is the external identity a snapshot is recorded under.
    ``owner_id`` is the internal id written into owner columns; it differs
    from ``user_id`` only when an account was recreated under the same
    external identity.
    """

    user_id: str
    owner_id: Optional[str] = None

    @property
    def owner(self) -> str:
        """Id to stamp on rows owned by this caller."""
        return self.owner_id or self.user_id


@dataclass(frozen=True)
class Session:
    """An authenticated session."""

    access_token: str
    identity: CallerIdentity
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Whether the session is past its expiry."""
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class SessionProvider(Protocol):
    """Source of the current session."""

    def current_session(self) -> Optional[Session]:
        """Return the current session, or None when signed out."""
        ...


class StaticSessionProvider:
    """Session provider holding one session (per request, or per device)."""

    def __init__(self, session: Optional[Session] = None):
        self._session = session

    def current_session(self) -> Optional[Session]:
        return self._session

    def set_session(self, session: Optional[Session]) -> None:
        """Replace the held session (None signs out)."""
        self._session = session


def create_session_token(
    user_id: str,
    owner_id: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
    settings: Optional[Settings] = None,
) -> str:
    """Sign a session token for ``user_id``."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if owner_id:
        claims["owner_id"] = owner_id
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str, settings: Optional[Settings] = None) -> Session:
    """
    Verify a bearer token and turn it into a session.

    Args:
        token: Encoded token
        settings: Settings holding the signing key

    Returns:
        The verified session

    Raises:
        UnauthenticatedError: the token is expired, invalid or has no subject
    """
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except ExpiredSignatureError as e:
        raise UnauthenticatedError("Session expired") from e
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise UnauthenticatedError("Invalid session token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise UnauthenticatedError("Session token has no subject")

    exp = claims.get("exp")
    return Session(
        access_token=token,
        identity=CallerIdentity(user_id=user_id, owner_id=claims.get("owner_id")),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )
