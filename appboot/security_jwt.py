from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Optional

import jwt
from jwt.exceptions import InvalidTokenError
from jwt.types import Options

from appboot.security_principals import Principal

JWT_ALGORITHM = "HS256"
JWT_SECRET_MIN_BYTES = 32


class TokenError(Exception):
    pass


class JwtTokenManager:
    def __init__(
        self,
        secret: str,
        *,
        issuer: Optional[str] = None,
        timeout_minutes: int = 60,
        leeway_seconds: int = 0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        secret = (secret or "").strip()
        if len(secret.encode("utf-8")) < JWT_SECRET_MIN_BYTES:
            raise ValueError(f"token signature key must be at least {JWT_SECRET_MIN_BYTES} bytes")
        if timeout_minutes <= 0:
            raise ValueError("token timeout must be greater than 0")
        self._secret = secret
        self._issuer = (issuer or "").strip() or None
        self._timeout_seconds = int(timeout_minutes) * 60
        self._leeway_seconds = max(0, int(leeway_seconds))
        self._clock = clock or time.time

    def generate(self, principal: Principal) -> str:
        now = int(self._clock())
        claims: dict[str, Any] = {
            "sub": principal.username,
            "iat": now,
            "nbf": now,
            "exp": now + self._timeout_seconds,
        }
        if principal.role:
            claims["role"] = principal.role
        if self._issuer:
            claims["iss"] = self._issuer
        return jwt.encode(claims, self._secret, algorithm=JWT_ALGORITHM)

    def validate(self, token: str) -> dict[str, Any]:
        options: Options = {
            "require": ["sub", "exp"],
            "verify_signature": True,
            "verify_exp": True,
            "verify_nbf": True,
            "verify_iss": self._issuer is not None,
        }
        try:
            payload = jwt.decode(
                token,
                key=self._secret,
                algorithms=[JWT_ALGORITHM],
                options=options,
                issuer=self._issuer,
                leeway=self._leeway_seconds,
            )
        except (InvalidTokenError, TypeError, ValueError) as exc:
            raise TokenError("invalid token") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("sub"), str):
            raise TokenError("invalid token")
        return payload
