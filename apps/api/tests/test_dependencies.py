"""FastAPI dependency and settings tests."""

from __future__ import annotations

import os
import time
import unittest
from pathlib import Path
from typing import Any

import httpx
import jwt
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from token_strategies.core.config import (
    APPLE_ISSUER,
    AppleStrategyOptions,
    InstagramStrategyOptions,
    Settings,
    get_settings,
)
from token_strategies.errors import register_error_handler
from token_strategies.routes import get_token_strategy, require_authenticated_user
from token_strategies.schemas.outcome import AuthenticatedUser
from token_strategies.services.strategy import (
    TokenStrategy,
    apple_token_strategy,
    instagram_token_strategy,
)

PROFILE_BODY = (Path(__file__).parent / "fixtures" / "instagram_profile.json").read_text(encoding="utf-8")


def _profile_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text=PROFILE_BODY)


def _create_app(strategy: TokenStrategy) -> FastAPI:
    app = FastAPI()
    register_error_handler(app)
    authenticated = require_authenticated_user(strategy)

    @app.post("/auth/token")
    async def token_login(request: Request, auth: AuthenticatedUser = Depends(authenticated)) -> dict[str, Any]:
        return {
            "user": auth.user,
            "info": auth.info,
            "provider": auth.provider,
            "state_user": request.state.auth_user.user,
        }

    return app


class _StaticKeyResolver:
    def __init__(self, key: Any) -> None:
        self.key = key

    async def get_signing_key(self, kid: str) -> Any:
        return self.key


class InstagramDependencyTests(unittest.TestCase):
    def _client(self, verify, handler=_profile_handler) -> TestClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        strategy = instagram_token_strategy(
            InstagramStrategyOptions(client_id="123", client_secret="secret"),
            verify,
            http_client=http_client,
        )
        return TestClient(_create_app(strategy))

    def test_accepted_user_is_returned_and_attached_to_request_state(self) -> None:
        def verify(access_token, refresh_token, profile):
            return {"id": profile.id, "token": access_token}, {"scope": "basic"}

        client = self._client(verify)

        response = client.post("/auth/token", json={"access_token": "access-1"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "user": {"id": "1234567", "token": "access-1"},
                "info": {"scope": "basic"},
                "provider": "instagram",
                "state_user": {"id": "1234567", "token": "access-1"},
            },
        )

    def test_token_is_read_from_every_request_part(self) -> None:
        def verify(access_token, refresh_token, profile):
            return {"token": access_token, "refresh": refresh_token}, None

        client = self._client(verify)
        requests = {
            "json_body": {"json": {"access_token": "access-1", "refresh_token": "refresh-1"}},
            "form_body": {"data": {"access_token": "access-1", "refresh_token": "refresh-1"}},
            "query": {"params": {"access_token": "access-1", "refresh_token": "refresh-1"}},
            "headers": {"headers": {"access_token": "access-1", "refresh_token": "refresh-1"}},
        }
        for part, kwargs in requests.items():
            with self.subTest(part=part):
                response = client.post("/auth/token", **kwargs)

                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.json()["user"], {"token": "access-1", "refresh": "refresh-1"})

    def test_missing_token_returns_unauthorized(self) -> None:
        client = self._client(lambda *args: ({"id": 1}, None))

        response = client.post("/auth/token", json={})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(),
            {"code": "UNAUTHORIZED", "message": "You should provide access_token"},
        )

    def test_invalid_json_body_is_treated_as_empty(self) -> None:
        client = self._client(lambda *args: ({"id": 1}, None))

        response = client.post(
            "/auth/token",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "You should provide access_token")

    def test_form_body_with_invalid_encoding_is_treated_as_empty(self) -> None:
        client = self._client(lambda *args: ({"id": 1}, None))
        bodies = {
            "raw_bytes": b"access_token=\xff\xfe",
            "percent_escapes": b"access_token=%FF%FE",
        }
        for label, body in bodies.items():
            with self.subTest(body=label):
                response = client.post(
                    "/auth/token",
                    content=body,
                    headers={"content-type": "application/x-www-form-urlencoded"},
                )

                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json()["message"], "You should provide access_token")

    def test_falsy_user_returns_unauthorized_with_callback_message(self) -> None:
        client = self._client(lambda *args: (None, {"message": "Account is disabled"}))

        response = client.post("/auth/token", json={"access_token": "access-1"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"code": "UNAUTHORIZED", "message": "Account is disabled"})

    def test_falsy_user_without_message_uses_generic_message(self) -> None:
        client = self._client(lambda *args: (False, None))

        response = client.post("/auth/token", json={"access_token": "access-1"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid credentials")

    def test_provider_error_returns_bad_gateway(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"meta": {"code": 400, "error_message": "The access_token provided is invalid."}},
            )

        client = self._client(lambda *args: ({"id": 1}, None), handler)

        response = client.post("/auth/token", json={"access_token": "access-1"})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(
            response.json(),
            {
                "code": "PROVIDER_UNAVAILABLE",
                "message": "The access_token provided is invalid.",
                "details": {"provider_code": 400},
            },
        )

    def test_callback_error_returns_internal_error_without_leaking_message(self) -> None:
        def verify(*args):
            raise RuntimeError("database password is hunter2")

        client = self._client(verify)

        response = client.post("/auth/token", json={"access_token": "access-1"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(),
            {"code": "AUTHENTICATION_ERROR", "message": "Authentication failed"},
        )

    def test_pass_req_to_callback_receives_fastapi_request(self) -> None:
        seen: list[Any] = []

        def verify(request, access_token, refresh_token, profile):
            seen.append(request)
            return {"path": request.url.path}, None

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(_profile_handler))
        strategy = instagram_token_strategy(
            InstagramStrategyOptions(client_id="123", client_secret="secret", pass_req_to_callback=True),
            verify,
            http_client=http_client,
        )
        client = TestClient(_create_app(strategy))

        response = client.post("/auth/token", params={"access_token": "access-1"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"], {"path": "/auth/token"})
        self.assertIsInstance(seen[0], Request)


class AppleDependencyTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def _client(self) -> TestClient:
        strategy = apple_token_strategy(
            AppleStrategyOptions(client_id="com.example.app"),
            lambda access_token, refresh_token, profile: ({"sub": profile.id}, None),
            key_resolver=_StaticKeyResolver(self.private_key.public_key()),
        )
        return TestClient(_create_app(strategy))

    def _token(self, audience: str) -> str:
        now = int(time.time())
        claims = {"iss": APPLE_ISSUER, "aud": audience, "sub": "apple-subject", "iat": now, "exp": now + 600}
        return jwt.encode(claims, self.private_key, algorithm="RS256", headers={"kid": "kid-1"})

    def test_valid_identity_token_is_accepted(self) -> None:
        response = self._client().post("/auth/token", data={"id_token": self._token("com.example.app")})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"], {"sub": "apple-subject"})
        self.assertEqual(response.json()["provider"], "apple")

    def test_verification_failure_returns_unauthorized(self) -> None:
        response = self._client().post("/auth/token", data={"id_token": self._token("com.other.app")})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(),
            {"code": "UNAUTHORIZED", "message": "Failed to validate identity token"},
        )

    def test_identity_token_in_headers_is_ignored(self) -> None:
        response = self._client().post(
            "/auth/token",
            headers={"id_token": self._token("com.example.app")},
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "You should provide id_token")


class _SettingsEnvCase(unittest.TestCase):
    _env_keys = (
        "TOKEN_STRATEGIES_AUTH_PROVIDER",
        "TOKEN_STRATEGIES_INSTAGRAM_CLIENT_ID",
        "TOKEN_STRATEGIES_INSTAGRAM_CLIENT_SECRET",
        "TOKEN_STRATEGIES_INSTAGRAM_ENABLE_PROOF",
        "TOKEN_STRATEGIES_APPLE_CLIENT_ID",
        "TOKEN_STRATEGIES_PASS_REQ_TO_CALLBACK",
    )

    def setUp(self) -> None:
        self._old_env = {k: os.environ.get(k) for k in self._env_keys}
        for key in self._env_keys:
            os.environ.pop(key, None)
        get_settings.cache_clear()

    def tearDown(self) -> None:
        for key, value in self._old_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        get_settings.cache_clear()


class SettingsTests(_SettingsEnvCase):
    def test_instagram_is_the_default_provider(self) -> None:
        os.environ["TOKEN_STRATEGIES_INSTAGRAM_CLIENT_ID"] = "123"
        os.environ["TOKEN_STRATEGIES_INSTAGRAM_CLIENT_SECRET"] = "secret"

        strategy = get_token_strategy(get_settings(), lambda *args: ({"id": 1}, None))

        self.assertEqual(strategy.name, "instagram-token")
        self.assertEqual(strategy.source.options.client_secret, "secret")

    def test_apple_provider_is_selected_from_environment(self) -> None:
        os.environ["TOKEN_STRATEGIES_AUTH_PROVIDER"] = "apple"
        os.environ["TOKEN_STRATEGIES_APPLE_CLIENT_ID"] = "com.example.app"
        os.environ["TOKEN_STRATEGIES_PASS_REQ_TO_CALLBACK"] = "true"

        settings = get_settings()
        strategy = get_token_strategy(settings, lambda *args: ({"id": 1}, None))

        self.assertEqual(strategy.name, "apple-token")
        self.assertEqual(settings.apple_options().client_id, "com.example.app")
        self.assertTrue(settings.apple_options().pass_req_to_callback)

    def test_proof_can_be_disabled_from_environment(self) -> None:
        os.environ["TOKEN_STRATEGIES_INSTAGRAM_ENABLE_PROOF"] = "false"

        options = get_settings().instagram_options()

        self.assertFalse(options.enable_proof)
        self.assertIsNone(options.client_secret)

    def test_settings_are_cached(self) -> None:
        self.assertIs(get_settings(), get_settings())

    def test_unknown_provider_is_rejected(self) -> None:
        os.environ["TOKEN_STRATEGIES_AUTH_PROVIDER"] = "myspace"

        with self.assertRaises(ValueError):
            Settings()


if __name__ == "__main__":
    unittest.main()
