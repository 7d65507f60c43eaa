"""Client for the SaltEdge Priora sandbox: OIDC discovery, tokens and REST calls."""
import json
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from tpp_simulator import metrics
from tpp_simulator.config import Settings
from tpp_simulator.errors import (
    DiscoveryError,
    NetworkError,
    RemoteApiError,
    SimulatorError,
    TokenExchangeError,
)
from tpp_simulator.logging import get_logger
from tpp_simulator.services.signing import JwtSigner

logger = get_logger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
OPEN_BANKING_VERSION = "v3.1"


@dataclass(frozen=True)
class OidcEndpoints:
    """Endpoints advertised by a provider's discovery document."""
    authorization_endpoint: str
    token_endpoint: str


@dataclass(frozen=True)
class AccessToken:
    """Result of an authorization-code exchange."""
    access_token: str
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None


def encode_path(value: str) -> str:
    """Percent-encode a single path segment."""
    return quote(value, safe="")


def response_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body, the raw text, or None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def remote_error_message(response: httpx.Response) -> str:
    """Pick the most useful message out of a failed sandbox response."""
    body = response_body(response)

    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value)

    if body:
        return body if isinstance(body, str) else json.dumps(body)

    return f"Request failed with status code {response.status_code}"


class SandboxClient:
    """Client for the Priora sandbox's OIDC and Open Banking endpoints."""

    def __init__(
        self,
        settings: Settings,
        signer: Optional[JwtSigner] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the sandbox client.

        Args:
            settings: Application settings
            signer: JWT signer (defaults to one built from settings)
            transport: httpx transport override, used to mount a fake sandbox
        """
        self.settings = settings
        self.signer = signer or JwtSigner(settings)
        self.transport = transport

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            transport=self.transport,
        )

    def discovery_url(self, provider_code: str) -> str:
        return f"{self.base_url}/.well-known/openid-configuration/{encode_path(provider_code)}"

    def token_endpoint(self, provider_code: str) -> str:
        return f"{self.base_url}/api/oidc/{encode_path(provider_code)}/tokens"

    def open_banking_url(self, provider_code: str, api: str, *segments: str) -> str:
        """
        Build an Open Banking resource URL.

        Args:
            provider_code: Sandbox provider code
            api: "aisp" or "pisp"
            segments: Resource path segments, each percent-encoded
        """
        path = "/".join(encode_path(segment) for segment in segments)
        return (
            f"{self.base_url}/api/{encode_path(provider_code)}"
            f"/open-banking/{OPEN_BANKING_VERSION}/{api}/{path}"
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        failure: str,
        authorization: Optional[str] = None,
        json_body: Optional[dict] = None,
        error_cls: type[SimulatorError] = RemoteApiError,
        network_error_cls: type[SimulatorError] = NetworkError,
    ) -> httpx.Response:
        """
        Send one request to the sandbox.

        Args:
            method: HTTP method
            url: Absolute sandbox URL
            operation: Short name used in logs and metrics
            failure: Prefix of the error message raised on failure
            authorization: Value of the Authorization header, if any
            json_body: JSON request body, if any
            error_cls: Error raised for non-2xx responses
            network_error_cls: Error raised when the sandbox is unreachable

        Returns:
            The successful (2xx) response

        Raises:
            SimulatorError: error_cls or network_error_cls
        """
        headers = {}
        if authorization:
            headers["Authorization"] = authorization

        start_time = time.perf_counter()

        logger.info("sandbox_request_started", operation=operation, method=method, url=url)

        async with self._client() as client:
            try:
                response = await client.request(method, url, headers=headers, json=json_body)
                response.raise_for_status()

            except httpx.HTTPStatusError as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                body = response_body(e.response)

                logger.error(
                    "sandbox_http_error",
                    operation=operation,
                    status_code=e.response.status_code,
                    response_body=body,
                    duration_ms=round(duration_ms, 2),
                    outcome="error",
                )
                metrics.record_sandbox_call(operation, False, duration_ms / 1000, "http_error")

                raise error_cls(
                    f"{failure}: {remote_error_message(e.response)}",
                    status_code=e.response.status_code,
                    details=body,
                ) from e

            except httpx.RequestError as e:
                duration_ms = (time.perf_counter() - start_time) * 1000

                logger.error(
                    "sandbox_request_error",
                    operation=operation,
                    duration_ms=round(duration_ms, 2),
                    error=str(e),
                    outcome="error",
                )
                metrics.record_sandbox_call(
                    operation, False, duration_ms / 1000, metrics.error_type_for(e)
                )

                raise network_error_cls(f"{failure}: {str(e) or type(e).__name__}") from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "sandbox_request_completed",
            operation=operation,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            outcome="success",
        )
        metrics.record_sandbox_call(operation, True, duration_ms / 1000)

        return response

    @staticmethod
    def json_object(
        response: httpx.Response,
        failure: str,
        error_cls: type[SimulatorError] = RemoteApiError,
    ) -> dict:
        """Decode a successful response that must hold a JSON object."""
        body = response_body(response)
        if not isinstance(body, dict):
            raise error_cls(f"{failure}: Expected a JSON object in response", details=body)
        return body

    async def discover_oidc(self, provider_code: str) -> OidcEndpoints:
        """
        Fetch the authorization and token endpoints for a provider.

        Raises:
            DiscoveryError: If the document is unreachable or incomplete
        """
        failure = "OIDC discovery failed"
        response = await self.request(
            "GET",
            self.discovery_url(provider_code),
            operation="discovery",
            failure=failure,
            error_cls=DiscoveryError,
            network_error_cls=DiscoveryError,
        )
        data = self.json_object(response, failure, DiscoveryError)

        authorization_endpoint = data.get("authorization_endpoint")
        token_endpoint = data.get("token_endpoint")
        if not authorization_endpoint or not token_endpoint:
            raise DiscoveryError(
                f"{failure}: OIDC discovery missing required endpoints", details=data
            )

        return OidcEndpoints(
            authorization_endpoint=authorization_endpoint,
            token_endpoint=token_endpoint,
        )

    async def _token_request(
        self,
        provider_code: str,
        redirect_uri: str,
        grant_type: str,
        failure: str,
        **extra: str,
    ) -> dict:
        token_endpoint = self.token_endpoint(provider_code)

        try:
            body = {
                "provider_code": provider_code,
                "grant_type": grant_type,
                **extra,
                "client_assertion_type": CLIENT_ASSERTION_TYPE,
                "client_assertion": self.signer.build_client_assertion(token_endpoint),
                "redirect_uri": redirect_uri,
                "client_id": self.settings.client_id(),
            }
            response = await self.request(
                "POST",
                token_endpoint,
                operation="token",
                failure=failure,
                json_body=body,
                error_cls=TokenExchangeError,
            )
            data = self.json_object(response, failure, TokenExchangeError)
            if not data.get("access_token"):
                raise TokenExchangeError(f"{failure}: No access_token in response", details=data)
        except SimulatorError:
            metrics.record_token_exchange(grant_type, success=False)
            raise

        metrics.record_token_exchange(grant_type, success=True)
        return data

    async def get_client_grant_token(self, provider_code: str, redirect_uri: str) -> str:
        """
        Obtain a client-credentials access token via a signed client assertion.

        Returns:
            Authorization header value ("Bearer <token>")

        Raises:
            TokenExchangeError: If the token endpoint rejects the assertion
        """
        data = await self._token_request(
            provider_code,
            redirect_uri,
            "client_credentials",
            "Failed to get client grant token",
        )
        return f"Bearer {data['access_token']}"

    async def exchange_code_for_token(
        self,
        provider_code: str,
        code: str,
        redirect_uri: str,
    ) -> AccessToken:
        """
        Exchange an authorization code for an AIS access token.

        The redirect URI must match the one used when creating the consent.
        """
        data = await self._token_request(
            provider_code,
            redirect_uri,
            "authorization_code",
            "Failed to exchange code for token",
            code=code,
        )
        return AccessToken(
            access_token=f"Bearer {data['access_token']}",
            token_type=data.get("token_type"),
            expires_in=data.get("expires_in"),
            scope=data.get("scope"),
        )
