"""TOTP adapter - Implements OneTimePasswords protocol via pyotp."""

import pyotp


class TotpGenerator:
    """
    Time-based one-time passwords (RFC 6238, 30 second step, 6 digits).

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, issuer: str, valid_window: int = 1) -> None:
        self._issuer = issuer
        # Number of adjacent 30 s steps accepted to absorb clock drift.
        self._valid_window = valid_window

    def generate_secret(self) -> str:
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_name: str) -> str:
        return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=self._issuer)

    def verify(self, secret: str, code: str) -> bool:
        code = code.strip()
        if not code.isdigit():
            return False
        return pyotp.TOTP(secret).verify(code, valid_window=self._valid_window)
