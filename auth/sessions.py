"""
auth/sessions.py -- Session issuance, verification and revocation.

Security design decisions:
  Hybrid model. Each session is an HS256 JWT (python-jose) signed with
  SECRET_KEY and carrying sub (account id), jti (random), iat and exp, plus a
  mirrored row in SessionStore. The signature gives tamper evidence; the row
  gives revocation. verify() demands both, so deleting the row on logout ends
  the session even though the token would otherwise decode until exp.

  Expiry is fixed at issuance (session_ttl_seconds, 7 days by default) and is
  never extended by use. Expiry is checked against the injected clock rather
  than jose's wall-clock check, so the boundary is testable and the token's
  exp and the row's expires_at agree to the second.

  The jti claim makes every credential unique even when the same account
  signs in twice within one second.

Layer rule: no imports from api/ or contacts/.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import InvalidSessionError
from auth.models import Session
from auth.store import SessionStore, isoformat_utc

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

logger = logging.getLogger("safeconnect.auth")

_ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 7 * 24 * 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionIssuer:
    """Issue and check session credentials backed by a SessionStore.

    Usage:
        issuer = SessionIssuer(SessionStore(engine), settings.secret_key)
        session = issuer.issue(account.id)
        issuer.verify(session.credential)   # -> account.id
        issuer.revoke(session.credential)
    """

    def __init__(
        self,
        store: SessionStore,
        secret_key: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._secret_key = secret_key
        self._clock = clock

    def issue(self, account_id: int, conn: Connection | None = None) -> Session:
        """Sign a new credential for account_id and persist its session row.

        Pass conn to write the row inside the caller's transaction.
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=self.ttl_seconds)
        payload = {
            "sub": str(account_id),
            "jti": secrets.token_urlsafe(16),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        credential = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        return self.store.put(
            Session(
                account_id=account_id,
                credential=credential,
                issued_at=isoformat_utc(issued_at),
                expires_at=isoformat_utc(expires_at),
            ),
            conn=conn,
        )

    def verify(self, credential: str | None) -> int:
        """Return the account id behind a live credential.

        Raises InvalidSessionError if the credential is empty or its signature
        does not verify, the token or its row has expired, the row is gone
        (logged out), or the row belongs to a different account than the
        token claims.
        """
        if not credential:
            raise InvalidSessionError()
        try:
            claims = jwt.decode(
                credential,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
            account_id = int(claims["sub"])
            exp = int(claims["exp"])
        except (JWTError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Rejected session credential: bad signature or claims")
            raise InvalidSessionError() from exc

        now = self._clock()
        if now.timestamp() >= exp:
            logger.debug("Rejected session credential for account %s: token expired", account_id)
            raise InvalidSessionError()

        session = self.store.get_by_credential(credential)
        if session is None:
            logger.debug("Rejected session credential for account %s: no session row", account_id)
            raise InvalidSessionError()
        if session.account_id != account_id or now >= datetime.fromisoformat(session.expires_at):
            logger.debug("Rejected session credential for account %s: row mismatch or expired", account_id)
            raise InvalidSessionError()
        return account_id

    def revoke(self, credential: str) -> bool:
        """Delete the session row. Returns False if it was already gone."""
        return self.store.delete_by_credential(credential)

    def purge_expired(self) -> int:
        """Remove every session row whose expiry has passed. Returns rows removed."""
        return self.store.purge_expired(self._clock())
