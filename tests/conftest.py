"""
Shared fixtures for the TPP simulator tests.

The sandbox is replaced by a small FastAPI app mounted through
httpx.ASGITransport. It verifies client assertions with the test public key,
so every test that gets a token has also proven the assertion was signed
correctly.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient

from tpp_simulator.api.dependencies import get_sandbox_client
from tpp_simulator.config import Settings
from tpp_simulator.main import create_app
from tpp_simulator.services.sandbox_client import SandboxClient

CLIENT_ID = "test-software-id"
SANDBOX_HOST = "priora.test"
CLIENT_GRANT_TOKEN = "sandbox-client-token"
PSU_TOKEN = "sandbox-psu-token"
AUTH_CODE = "good-code"

# Provider codes that make the fake sandbox misbehave
PROVIDER_NO_ENDPOINTS = "no_endpoints_bank"
PROVIDER_REJECTING = "rejecting_bank"
PROVIDER_NO_CONSENT_ID = "no_consent_id_bank"


@dataclass(frozen=True)
class KeyPair:
    private_pem: str
    public_pem: str


@pytest.fixture(scope="session")
def rsa_keys() -> KeyPair:
    """A throwaway RSA key pair for signing and verifying JWTs."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()

    return KeyPair(private_pem=private_pem, public_pem=public_pem)


@pytest.fixture
def test_settings(rsa_keys) -> Settings:
    return Settings(
        _env_file=None,
        ob_software_id=CLIENT_ID,
        ob_private_key=rsa_keys.private_pem,
        ob_private_key_path=None,
        ob_provider_code="test_bank",
        redirect_uri="https://tpp.example.com/callback",
        priora_url=SANDBOX_HOST,
        protocol="https",
        enable_account_routes=False,
    )


class FakeSandbox:
    """In-memory stand-in for the Priora sandbox."""

    def __init__(self, public_key: str):
        self.public_key = public_key
        self.consents: dict[str, dict] = {}
        self.token_requests: list[dict] = []
        self.consent_requests: list[dict] = []
        self.app = self._build_app()

    def _unauthorized(self, request: Request, token: str) -> Optional[JSONResponse]:
        if request.headers.get("Authorization") != f"Bearer {token}":
            return JSONResponse(status_code=401, content={"message": "Invalid access token"})
        return None

    def _store(self, prefix: str, data: dict, risk: Optional[dict] = None) -> dict:
        consent_id = f"{prefix}-{uuid.uuid4()}"
        resource = {
            "Data": {"ConsentId": consent_id, "Status": "AwaitingAuthorisation", **data},
            "Risk": risk or {},
        }
        self.consents[consent_id] = resource
        return resource

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/.well-known/openid-configuration/{provider_code}")
        async def discovery(provider_code: str):
            if provider_code == PROVIDER_NO_ENDPOINTS:
                return {"issuer": f"https://{SANDBOX_HOST}"}
            return {
                "issuer": f"https://{SANDBOX_HOST}",
                "authorization_endpoint": f"https://bank.{SANDBOX_HOST}/{provider_code}/authorize",
                "token_endpoint": f"https://{SANDBOX_HOST}/api/oidc/{provider_code}/tokens",
            }

        @app.post("/api/oidc/{provider_code}/tokens")
        async def tokens(provider_code: str, request: Request):
            body = await request.json()
            self.token_requests.append(body)

            try:
                jwt.decode(
                    body["client_assertion"],
                    self.public_key,
                    algorithms=["RS256"],
                    audience=str(request.url),
                )
            except jwt.InvalidTokenError as e:
                return JSONResponse(
                    status_code=401,
                    content={"error": "invalid_client", "error_description": str(e)},
                )

            if provider_code == PROVIDER_REJECTING:
                return JSONResponse(status_code=400, content={"error": "unauthorized_client"})

            if body["grant_type"] == "authorization_code":
                if body.get("code") != AUTH_CODE:
                    return JSONResponse(status_code=400, content={"error": "invalid_grant"})
                return {
                    "access_token": PSU_TOKEN,
                    "token_type": "bearer",
                    "expires_in": 3600,
                    "scope": "openid accounts",
                }

            return {"access_token": CLIENT_GRANT_TOKEN, "token_type": "bearer", "expires_in": 600}

        base = "/api/{provider_code}/open-banking/v3.1"

        @app.post(base + "/aisp/account-access-consents", status_code=201)
        async def create_ais_consent(provider_code: str, request: Request):
            denied = self._unauthorized(request, CLIENT_GRANT_TOKEN)
            if denied:
                return denied
            body = await request.json()
            self.consent_requests.append(body)
            if provider_code == PROVIDER_NO_CONSENT_ID:
                return {"Data": {"Status": "AwaitingAuthorisation"}}
            return self._store("aisp", body["Data"])

        @app.get(base + "/aisp/account-access-consents/{consent_id}")
        async def get_ais_consent(provider_code: str, consent_id: str, request: Request):
            denied = self._unauthorized(request, CLIENT_GRANT_TOKEN)
            if denied:
                return denied
            if consent_id not in self.consents:
                return JSONResponse(status_code=404, content={"message": "Consent not found"})
            return self.consents[consent_id]

        @app.delete(base + "/aisp/account-access-consents/{consent_id}")
        async def delete_ais_consent(provider_code: str, consent_id: str, request: Request):
            denied = self._unauthorized(request, CLIENT_GRANT_TOKEN)
            if denied:
                return denied
            if self.consents.pop(consent_id, None) is None:
                return JSONResponse(status_code=404, content={"message": "Consent not found"})
            return Response(status_code=204)

        @app.post(base + "/pisp/{payment_product}", status_code=201)
        async def create_pis_consent(provider_code: str, payment_product: str, request: Request):
            denied = self._unauthorized(request, CLIENT_GRANT_TOKEN)
            if denied:
                return denied
            body = await request.json()
            self.consent_requests.append(body)
            return self._store(f"pisp-{payment_product}", body["Data"], body.get("Risk"))

        @app.get(base + "/pisp/{payment_product}/{consent_id}")
        async def get_pis_consent(
            provider_code: str, payment_product: str, consent_id: str, request: Request
        ):
            denied = self._unauthorized(request, CLIENT_GRANT_TOKEN)
            if denied:
                return denied
            if not consent_id.startswith(f"pisp-{payment_product}") or consent_id not in self.consents:
                return JSONResponse(status_code=404, content={"message": "Consent not found"})
            return self.consents[consent_id]

        @app.get(base + "/aisp/accounts")
        async def accounts(provider_code: str, request: Request):
            denied = self._unauthorized(request, PSU_TOKEN)
            if denied:
                return denied
            return {"Data": {"Account": [{"AccountId": "acc-1", "Currency": "GBP"}]}}

        @app.post(base + "/aisp/accounts/refresh", status_code=202)
        async def refresh(provider_code: str, request: Request):
            denied = self._unauthorized(request, PSU_TOKEN)
            if denied:
                return denied
            body = await request.json()
            return {"Data": {"Status": "InProgress", "InitiatedByCustomer": body["InitiatedByCustomer"]}}

        @app.get(base + "/aisp/accounts/refresh/status")
        async def refresh_status(provider_code: str, request: Request):
            denied = self._unauthorized(request, PSU_TOKEN)
            if denied:
                return denied
            return {"Data": {"Status": "Completed"}}

        @app.get(base + "/aisp/accounts/{account_id}/{resource}")
        async def account_resource(provider_code: str, account_id: str, resource: str, request: Request):
            denied = self._unauthorized(request, PSU_TOKEN)
            if denied:
                return denied
            if resource not in ("transactions", "balances", "standing-orders"):
                return JSONResponse(status_code=404, content={"message": "Unknown resource"})
            return {"Data": {"AccountId": account_id, "Resource": resource}}

        return app


@pytest.fixture
def fake_sandbox(rsa_keys) -> FakeSandbox:
    return FakeSandbox(rsa_keys.public_pem)


@pytest.fixture
def sandbox_client(test_settings, fake_sandbox) -> SandboxClient:
    return SandboxClient(test_settings, transport=httpx.ASGITransport(app=fake_sandbox.app))


def build_test_client(settings: Settings, fake_sandbox: FakeSandbox) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[get_sandbox_client] = lambda: SandboxClient(
        settings, transport=httpx.ASGITransport(app=fake_sandbox.app)
    )
    return TestClient(app)


@pytest.fixture
def client(test_settings, fake_sandbox) -> TestClient:
    """Test client for the simulator, wired to the fake sandbox."""
    return build_test_client(test_settings, fake_sandbox)
