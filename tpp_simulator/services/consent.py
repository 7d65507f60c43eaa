"""Consent flow shared by the AIS and PIS services."""
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from tpp_simulator import metrics
from tpp_simulator.config import Settings
from tpp_simulator.errors import RemoteApiError, SimulatorError
from tpp_simulator.logging import get_logger, log_consent_created
from tpp_simulator.services.authorization import build_authorization_url
from tpp_simulator.services.sandbox_client import SandboxClient

logger = get_logger(__name__)

# Requested for both AIS and PIS authorizations
CONSENT_SCOPE = "openid accounts payments"


@dataclass(frozen=True)
class ConsentCreated:
    """A consent created on the sandbox, ready for PSU authorization."""
    consent_id: str
    authorization_url: str
    status: Optional[str] = None


def iso_timestamp(offset: timedelta = timedelta(0)) -> str:
    """UTC ISO 8601 timestamp with milliseconds, e.g. 2025-01-01T10:00:00.000Z."""
    moment = datetime.now(timezone.utc) + offset
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConsentService:
    """
    Base for consent services.

    Subclasses set `service` ("ais"/"pis") and `api` ("aisp"/"pisp") and
    provide the resource path and request body.
    """

    service = ""
    api = ""

    def __init__(self, settings: Settings, sandbox: Optional[SandboxClient] = None):
        """
        Initialize the consent service.

        Args:
            settings: Application settings
            sandbox: Sandbox client (defaults to a new instance)
        """
        self.settings = settings
        self.sandbox = sandbox or SandboxClient(settings)

    @property
    def label(self) -> str:
        return self.service.upper()

    def _resource_url(self, provider_code: str, resource: str, *segments: str) -> str:
        return self.sandbox.open_banking_url(provider_code, self.api, resource, *segments)

    async def _create_consent(
        self,
        provider_code: str,
        redirect_uri: str,
        resource: str,
        body: dict,
    ) -> ConsentCreated:
        """
        Run the full creation flow.

        Discovers OIDC endpoints, obtains a client grant token, posts the
        consent, then binds the returned ConsentId into a signed request
        object and the authorization URL.
        """
        start_time = time.perf_counter()
        failure = f"Failed to create {self.label} consent"

        logger.info(
            "consent_create_started",
            service=self.service,
            provider_code=provider_code,
            resource=resource,
        )

        try:
            endpoints = await self.sandbox.discover_oidc(provider_code)
            authorization = await self.sandbox.get_client_grant_token(provider_code, redirect_uri)

            response = await self.sandbox.request(
                "POST",
                self._resource_url(provider_code, resource),
                operation=f"{self.service}_consent_create",
                failure=failure,
                authorization=authorization,
                json_body=body,
            )
            data = self.sandbox.json_object(response, failure)

            consent_data = data.get("Data") or {}
            consent_id = consent_data.get("ConsentId")
            if not consent_id:
                raise RemoteApiError(f"{failure}: No ConsentId in response", details=data)

            request_jwt = self.sandbox.signer.build_request_object_jwt(
                token_endpoint=endpoints.token_endpoint,
                consent_id=consent_id,
                redirect_uri=redirect_uri,
                scope=CONSENT_SCOPE,
            )
            authorization_url = build_authorization_url(
                endpoints.authorization_endpoint,
                client_id=self.settings.client_id(),
                redirect_uri=redirect_uri,
                scope=CONSENT_SCOPE,
                request_jwt=request_jwt,
            )

        except SimulatorError:
            metrics.record_consent_operation(self.service, "create", success=False)
            raise

        metrics.record_consent_operation(self.service, "create", success=True)

        result = ConsentCreated(
            consent_id=consent_id,
            authorization_url=authorization_url,
            status=consent_data.get("Status"),
        )
        log_consent_created(
            logger,
            service=self.service,
            provider_code=provider_code,
            consent_id=consent_id,
            status=result.status,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return result

    async def _client_grant(self, provider_code: str) -> str:
        return await self.sandbox.get_client_grant_token(provider_code, self.settings.redirect_uri)

    async def _fetch_consent(self, provider_code: str, resource: str, consent_id: str) -> dict:
        """GET a consent resource and return the sandbox's JSON unchanged."""
        failure = f"Failed to fetch {self.label} consent details"

        try:
            authorization = await self._client_grant(provider_code)
            response = await self.sandbox.request(
                "GET",
                self._resource_url(provider_code, resource, consent_id),
                operation=f"{self.service}_consent_get",
                failure=failure,
                authorization=authorization,
            )
            data = self.sandbox.json_object(response, failure)
        except SimulatorError:
            metrics.record_consent_operation(self.service, "get", success=False)
            raise

        metrics.record_consent_operation(self.service, "get", success=True)
        return data
