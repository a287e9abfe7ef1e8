"""Signed, time-limited identity tokens.

Access and refresh tokens share one shape and one HMAC secret; only the TTL
chosen by the caller (and the cookie they end up in) tells them apart. There
is no server-side session store, so a token stays valid until ``exp``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from docvault.core.auth import Role, parse_role
from docvault.core.errors import InvalidTokenError

REQUIRED_CLAIMS = ["sub", "role", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TokenPayload:
    subject_id: str
    role: Role
    first_name: str
    last_name: str
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    def to_claims(self) -> dict[str, Any]:
        return {
            "sub": self.subject_id,
            "role": self.role.value,
            "firstName": self.first_name,
            "lastName": self.last_name,
        }


class TokenService:
    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("token secret must be a non-empty string")
        self.secret = secret
        self.algorithm = algorithm
        self._now = now

    def issue(self, payload: TokenPayload, ttl: timedelta) -> str:
        issued_at = self._now()
        claims = payload.to_claims()
        claims["iat"] = int(issued_at.timestamp())
        claims["exp"] = int((issued_at + ttl).timestamp())
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenPayload:
        if not token:
            raise InvalidTokenError("empty token")

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS, "verify_iat": False},
                leeway=0,
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"invalid token: {exc}") from exc

        # PyJWT checks exp against the wall clock; an injected clock must agree too.
        expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        if expires_at <= self._now():
            raise InvalidTokenError("token expired")

        role = parse_role(claims.get("role"))
        if role is None:
            raise InvalidTokenError("token carries an unknown role")

        subject_id = claims.get("sub")
        if not isinstance(subject_id, str) or not subject_id:
            raise InvalidTokenError("token carries no subject")

        return TokenPayload(
            subject_id=subject_id,
            role=role,
            first_name=str(claims.get("firstName") or ""),
            last_name=str(claims.get("lastName") or ""),
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
            expires_at=expires_at,
        )
