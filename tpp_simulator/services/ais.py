"""
AIS (Account Information Services) operations against the sandbox.

Covers the account-access-consent lifecycle (create, fetch, revoke) and the
account data calls made with a PSU access token once a consent has been
authorised.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from tpp_simulator import metrics
from tpp_simulator.config import Settings
from tpp_simulator.errors import SimulatorError
from tpp_simulator.logging import get_logger
from tpp_simulator.services.consent import ConsentCreated, ConsentService, iso_timestamp
from tpp_simulator.services.sandbox_client import AccessToken, SandboxClient, response_body

logger = get_logger(__name__)

ACCOUNT_ACCESS_CONSENTS = "account-access-consents"

# Permissions valid for UK Open Banking v3.1, in the order they are requested
DEFAULT_AIS_PERMISSIONS: tuple[str, ...] = (
    "ReadAccountsBasic",
    "ReadAccountsDetail",
    "ReadBalances",
    "ReadBeneficiariesBasic",
    "ReadBeneficiariesDetail",
    "ReadTransactionsBasic",
    "ReadTransactionsCredits",
    "ReadTransactionsDebits",
    "ReadTransactionsDetail",
    "ReadPAN",
    "ReadParty",
    "ReadDirectDebits",
    "ReadStandingOrdersBasic",
    "ReadStandingOrdersDetail",
)

DEFAULT_CONSENT_LIFETIME = timedelta(days=30)


@dataclass(frozen=True)
class AISConsentParams:
    """Fully resolved inputs of an AIS consent creation."""
    provider_code: str
    redirect_uri: str
    permissions: tuple[str, ...]
    expiration_date_time: str


def resolve_ais_params(
    settings: Settings,
    provider_code: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    permissions: Optional[Sequence[str]] = None,
    expiration_date_time: Optional[str] = None,
) -> AISConsentParams:
    """Apply caller-supplied values over the configured and built-in defaults."""
    return AISConsentParams(
        provider_code=provider_code or settings.ob_provider_code,
        redirect_uri=redirect_uri or settings.redirect_uri,
        permissions=tuple(permissions) if permissions is not None else DEFAULT_AIS_PERMISSIONS,
        expiration_date_time=expiration_date_time or iso_timestamp(DEFAULT_CONSENT_LIFETIME),
    )


class AISConsentService(ConsentService):
    """Creates, fetches and revokes account-access-consents."""

    service = "ais"
    api = "aisp"

    async def create_consent(self, params: AISConsentParams) -> ConsentCreated:
        """Create an account-access-consent and return its authorization URL."""
        body = {
            "Data": {
                "ExpirationDateTime": params.expiration_date_time,
                "Permissions": list(params.permissions),
            }
        }
        return await self._create_consent(
            params.provider_code,
            params.redirect_uri,
            ACCOUNT_ACCESS_CONSENTS,
            body,
        )

    async def get_consent_details(self, provider_code: str, consent_id: str) -> dict:
        """Return the sandbox's view of an account-access-consent."""
        return await self._fetch_consent(provider_code, ACCOUNT_ACCESS_CONSENTS, consent_id)

    async def revoke_consent(self, provider_code: str, consent_id: str) -> bool:
        """
        Delete an account-access-consent.

        Returns:
            True once the sandbox answers with any 2xx (normally 204)

        Raises:
            RemoteApiError: If the sandbox rejects the deletion
        """
        failure = "Failed to revoke AIS consent"

        try:
            authorization = await self._client_grant(provider_code)
            await self.sandbox.request(
                "DELETE",
                self._resource_url(provider_code, ACCOUNT_ACCESS_CONSENTS, consent_id),
                operation="ais_consent_revoke",
                failure=failure,
                authorization=authorization,
            )
        except SimulatorError:
            metrics.record_consent_operation(self.service, "revoke", success=False)
            raise

        metrics.record_consent_operation(self.service, "revoke", success=True)
        logger.info("consent_revoked", service=self.service, consent_id=consent_id)
        return True


class AccountDataService:
    """Account information calls authenticated with a PSU access token."""

    def __init__(self, settings: Settings, sandbox: Optional[SandboxClient] = None):
        self.settings = settings
        self.sandbox = sandbox or SandboxClient(settings)

    async def exchange_code_for_token(
        self,
        provider_code: str,
        code: str,
        redirect_uri: Optional[str] = None,
    ) -> AccessToken:
        return await self.sandbox.exchange_code_for_token(
            provider_code, code, redirect_uri or self.settings.redirect_uri
        )

    async def _get(
        self,
        provider_code: str,
        access_token: str,
        operation: str,
        failure: str,
        *segments: str,
    ) -> dict:
        response = await self.sandbox.request(
            "GET",
            self.sandbox.open_banking_url(provider_code, "aisp", *segments),
            operation=operation,
            failure=failure,
            authorization=access_token,
        )
        return self.sandbox.json_object(response, failure)

    async def get_accounts(self, provider_code: str, access_token: str) -> dict:
        return await self._get(
            provider_code, access_token, "accounts", "Failed to fetch accounts", "accounts"
        )

    async def get_account_transactions(
        self, provider_code: str, account_id: str, access_token: str
    ) -> dict:
        return await self._get(
            provider_code, access_token, "transactions", "Failed to fetch transactions",
            "accounts", account_id, "transactions",
        )

    async def get_account_balances(
        self, provider_code: str, account_id: str, access_token: str
    ) -> dict:
        return await self._get(
            provider_code, access_token, "balances", "Failed to fetch balances",
            "accounts", account_id, "balances",
        )

    async def get_account_standing_orders(
        self, provider_code: str, account_id: str, access_token: str
    ) -> dict:
        return await self._get(
            provider_code, access_token, "standing_orders", "Failed to fetch standing orders",
            "accounts", account_id, "standing-orders",
        )

    async def refresh_accounts(self, provider_code: str, access_token: str) -> dict:
        """Ask the ASPSP to refresh account data."""
        failure = "Failed to refresh accounts"
        response = await self.sandbox.request(
            "POST",
            self.sandbox.open_banking_url(provider_code, "aisp", "accounts", "refresh"),
            operation="accounts_refresh",
            failure=failure,
            authorization=access_token,
            json_body={"InitiatedByCustomer": False},
        )
        return response_body(response) or {}

    async def get_refresh_status(self, provider_code: str, access_token: str) -> dict:
        return await self._get(
            provider_code, access_token, "accounts_refresh_status",
            "Failed to get refresh status", "accounts", "refresh", "status",
        )
