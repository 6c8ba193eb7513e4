"""
reCAPTCHA v3 verifier adapter - Implements CaptchaVerifier protocol.

Posts the client's challenge-response token to the siteverify endpoint and
accepts it when the service reports success with a score at or above the
configured minimum. Transport failures and timeouts surface as
InfrastructureUnavailable rather than as a rejected token.
"""

import logging

import httpx

from src.domain.exceptions import InfrastructureUnavailable

logger = logging.getLogger(__name__)


class RecaptchaVerifier:
    """
    Implements CaptchaVerifier protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The httpx client (and its timeout) is owned by the hosting process.
    """

    def __init__(
        self,
        client: httpx.Client,
        secret: str,
        verify_url: str,
        min_score: float = 0.5,
    ) -> None:
        self._client = client
        self._secret = secret
        self._verify_url = verify_url
        self._min_score = min_score

    def verify(self, token: str, remote_ip: str | None = None) -> bool:
        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = self._client.post(self._verify_url, data=data)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.error("CAPTCHA verification request failed: %s", exc)
            raise InfrastructureUnavailable("CAPTCHA service unavailable") from exc
        except ValueError as exc:
            logger.error("CAPTCHA verification returned invalid JSON: %s", exc)
            raise InfrastructureUnavailable("CAPTCHA service unavailable") from exc

        if not payload.get("success"):
            logger.info("CAPTCHA rejected: %s", payload.get("error-codes", []))
            return False

        score = payload.get("score")
        if score is not None and float(score) < self._min_score:
            logger.info("CAPTCHA score %.2f below threshold %.2f", float(score), self._min_score)
            return False
        return True
