"""
Email verification domain service.

Checks a signed verification token, resolves the account it names, and
flips the email-verified flag. Accounts holding a 2FA secret, confirmed or
still pending in the token store, must also present a valid one-time code;
a pending secret is confirmed onto the account, and 2FA switched on, in the
same update. An account whose enrollment never reached the token store, or
has lapsed from it, verifies without a code and stays without 2FA.

Every failure (bad signature, expiry, unknown account, email mismatch,
missing or wrong 2FA code) raises the same InvalidOrExpiredToken so the
caller cannot tell which check failed. Verifying an already verified
account is a successful no-op.
"""

import logging
from dataclasses import dataclass

from .exceptions import InvalidOrExpiredToken
from .guards import TwoFactorEnrollment
from .ports import AccountRepository, OneTimePasswords, TokenSigner, VerifyResult

logger = logging.getLogger(__name__)


@dataclass
class EmailVerificationService:
    """Domain service for confirming account email addresses."""

    repository: AccountRepository
    token_signer: TokenSigner
    otp: OneTimePasswords
    two_factor: TwoFactorEnrollment

    def verify(self, token: str | None, two_factor_code: str | None = None) -> VerifyResult:
        """
        Verify an email address from a signed token.

        Raises:
            InvalidOrExpiredToken: On any failed check
        """
        if not token:
            raise InvalidOrExpiredToken()

        account_id, email = self.token_signer.decode_verification_token(token)
        account = self.repository.get_account(account_id)
        if account is None or account.email != email:
            logger.warning("Verification token names unknown account account_id=%s", account_id)
            raise InvalidOrExpiredToken()

        if account.email_verified:
            return VerifyResult.ALREADY_VERIFIED

        confirmed_secret = None
        secret = account.two_factor_secret
        if secret is None:
            secret = self.two_factor.pending_secret(account_id) or None
            confirmed_secret = secret
        if secret:
            if not two_factor_code or not self.otp.verify(secret, two_factor_code):
                logger.warning("2FA code rejected during verification account_id=%s", account_id)
                raise InvalidOrExpiredToken()

        if not self.repository.mark_email_verified(account_id, confirmed_secret):
            # Lost a race with a concurrent verification of the same token.
            return VerifyResult.ALREADY_VERIFIED

        if confirmed_secret is not None:
            self.two_factor.discard(account_id)
        logger.info("Email verified account_id=%s", account_id)
        return VerifyResult.VERIFIED
