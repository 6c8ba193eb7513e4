"""
JWT token signer adapter - Implements TokenSigner protocol.

Issues HS256 JWTs for three purposes, told apart by the ``type`` claim:

- access         1 hour, handed to the client right after registration
- refresh        24 hours, exchanged later for new access tokens
- verification   1 hour, embedded in the verification email link and
                 carrying ``userId`` and ``email``

A token of one type is never accepted where another is expected.
"""

import secrets
import time
from typing import Any

import jwt

from src.domain.exceptions import AuthTokenInvalid, InvalidOrExpiredToken

_ALGORITHM = "HS256"


class JwtTokenSigner:
    """
    Implements TokenSigner protocol via PyJWT.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        secret: str,
        issuer: str,
        access_ttl_seconds: int = 3600,
        refresh_ttl_seconds: int = 86400,
        verification_ttl_seconds: int = 3600,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._access_ttl = access_ttl_seconds
        self._refresh_ttl = refresh_ttl_seconds
        self._verification_ttl = verification_ttl_seconds

    def issue_access_token(self, account_id: str, email: str) -> tuple[str, int]:
        token = self._encode(
            {"sub": account_id, "email": email, "type": "access"}, self._access_ttl
        )
        return token, self._access_ttl

    def issue_refresh_token(self, account_id: str) -> tuple[str, int]:
        token = self._encode(
            {"sub": account_id, "type": "refresh", "jti": secrets.token_urlsafe(16)},
            self._refresh_ttl,
        )
        return token, self._refresh_ttl

    def decode_access_token(self, token: str) -> dict[str, Any]:
        try:
            claims = self._decode(token)
        except jwt.PyJWTError as exc:
            raise AuthTokenInvalid() from exc
        if claims.get("type") != "access":
            raise AuthTokenInvalid()
        return claims

    def issue_verification_token(self, account_id: str, email: str) -> str:
        return self._encode(
            {"userId": account_id, "email": email, "type": "verification"},
            self._verification_ttl,
        )

    def decode_verification_token(self, token: str) -> tuple[str, str]:
        try:
            claims = self._decode(token)
        except jwt.PyJWTError as exc:
            raise InvalidOrExpiredToken() from exc
        account_id = claims.get("userId")
        email = claims.get("email")
        if claims.get("type") != "verification" or not account_id or not email:
            raise InvalidOrExpiredToken()
        return account_id, email

    def _encode(self, claims: dict[str, Any], ttl_seconds: int) -> str:
        now = int(time.time())
        payload = {"iss": self._issuer, "iat": now, "exp": now + ttl_seconds, **claims}
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def _decode(self, token: str) -> dict[str, Any]:
        return jwt.decode(
            token,
            self._secret,
            algorithms=[_ALGORITHM],
            issuer=self._issuer,
            options={"require": ["exp", "iat", "iss"]},
        )
