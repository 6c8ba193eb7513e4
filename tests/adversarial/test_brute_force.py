"""
Adversarial tests for brute force attack prevention.

Verifies that an attacker hammering the registration endpoint is stopped
by the per-IP rate limit, the per IP+email failed-attempt lockout and the
IP-bound CSRF token.

Security rationale:
- Registration reveals whether an email exists (409), so unlimited
  attempts would allow account enumeration
- Stolen CSRF tokens must not work from another address
- Guessing verification tokens must never succeed
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.config.settings import Settings, get_settings

pytestmark = pytest.mark.adversarial

ATTACKER = "192.0.2.66"


def attempt(client: TestClient, payload: dict, ip: str = ATTACKER, token: str | None = None):
    headers = {"x-forwarded-for": ip}
    if token is None:
        token = client.get("/csrf-token", headers=headers).json()["token"]
    headers["x-csrf-token"] = token
    return client.post("/users", json={**payload, "recaptchaToken": "valid-captcha"}, headers=headers)


class TestBruteForceAttacks:
    """Adversarial tests simulating automated registration abuse."""

    def test_enumeration_stopped_by_rate_limit(
        self, client: TestClient, repository, individual_payload: dict
    ) -> None:
        """
        Attack scenario: attacker probes many emails from one address.

        Expected defense: after five requests in the window every further
        request is refused with 429 before any account lookup.
        """
        statuses = []
        for i in range(20):
            payload = {**individual_payload, "email": f"probe{i}@example.com"}
            statuses.append(attempt(client, payload).status_code)

        assert statuses[:5] == [201] * 5
        assert set(statuses[5:]) == {429}
        assert repository.count() == 5

    def test_repeated_failures_lock_email(
        self, app: FastAPI, client: TestClient, settings: Settings, individual_payload: dict
    ) -> None:
        """
        Attack scenario: attacker retries one email with invalid data
        while rotating nothing but the payload.

        Expected defense: the IP+email pair locks after five failures and
        stays locked even for a valid payload.
        """
        relaxed = settings.model_copy(update={"rate_limit_max_requests": 1000})
        app.dependency_overrides[get_settings] = lambda: relaxed
        bad = {**individual_payload, "password": "short", "confirmPassword": "short"}

        statuses = [attempt(client, bad).status_code for _ in range(8)]

        assert statuses[:5] == [400] * 5
        assert set(statuses[5:]) == {429}
        locked = attempt(client, individual_payload)
        assert locked.status_code == 429
        assert locked.json()["kind"] == "too_many_failed_attempts"

    def test_stolen_csrf_token_useless_elsewhere(
        self, client: TestClient, individual_payload: dict
    ) -> None:
        """
        Attack scenario: attacker replays a victim's CSRF token.

        Expected defense: the token is bound to the victim's IP.
        """
        victim_token = client.get("/csrf-token", headers={"x-forwarded-for": "192.0.2.10"}).json()["token"]

        response = attempt(client, individual_payload, token=victim_token)
        assert response.status_code == 403

    def test_guessed_verification_tokens_rejected(self, client: TestClient) -> None:
        """
        Attack scenario: attacker submits fabricated verification tokens.

        Expected defense: every guess is rejected with the same generic error.
        """
        guesses = ["", "a", "eyJhbGciOiJIUzI1NiJ9.e30.", "x" * 200]
        for guess in guesses:
            response = client.get("/users/verify-email", params={"token": guess})
            assert response.status_code == 400
            assert response.json()["kind"] == "invalid_or_expired_token"
