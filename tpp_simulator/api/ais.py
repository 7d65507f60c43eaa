"""AIS (Account Information Services) route handlers, designed for curl access."""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from tpp_simulator.api.dependencies import (
    as_bearer,
    get_access_token,
    get_account_data_service,
    get_ais_service,
    get_settings,
)
from tpp_simulator.config import Settings
from tpp_simulator.errors import SimulatorError
from tpp_simulator.logging import TimedOperation, get_logger, set_request_context
from tpp_simulator.schemas import (
    AccountDataResponse,
    AISConsentRequest,
    ConsentCreatedResponse,
    ConsentDetailsResponse,
    ConsentRevokedResponse,
    RefreshRequest,
    TokenRequest,
    TokenResponse,
)
from tpp_simulator.services import AccountDataService, AISConsentService
from tpp_simulator.services.ais import resolve_ais_params

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ais", tags=["ais"])

# Token exchange and account data; mounted only when ENABLE_ACCOUNT_ROUTES is set
accounts_router = APIRouter(prefix="/api/ais", tags=["ais-accounts"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


@router.post("/consent", response_model=ConsentCreatedResponse)
async def create_consent(
    request: Request,
    request_body: Optional[AISConsentRequest] = None,
    settings: Settings = Depends(get_settings),
    service: AISConsentService = Depends(get_ais_service),
):
    """
    Create an AIS consent and return the authorization URL.

    This is the main entry point: one curl command with an empty body
    creates a consent using the configured provider and redirect URI.
    """
    request_body = request_body or AISConsentRequest()
    params = resolve_ais_params(
        settings,
        provider_code=request_body.provider_code,
        redirect_uri=request_body.redirect_uri,
        permissions=request_body.permissions,
        expiration_date_time=request_body.expiration_date_time,
    )
    set_request_context(_request_id(request), provider_code=params.provider_code)

    with TimedOperation(
        "ais_consent_creation",
        logger,
        redirect_uri=params.redirect_uri,
        permission_count=len(params.permissions),
    ):
        result = await service.create_consent(params)

    return ConsentCreatedResponse(
        consent_id=result.consent_id,
        authorization_url=result.authorization_url,
        status=result.status,
    )


@router.get("/consent/{consent_id}", response_model=ConsentDetailsResponse)
async def get_consent(
    consent_id: str,
    request: Request,
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    settings: Settings = Depends(get_settings),
    service: AISConsentService = Depends(get_ais_service),
):
    """Fetch an AIS consent's current state from the sandbox."""
    provider_code = provider_code or settings.ob_provider_code
    set_request_context(_request_id(request), provider_code=provider_code, consent_id=consent_id)

    logger.info("ais_consent_fetch_requested")
    consent = await service.get_consent_details(provider_code, consent_id)

    return ConsentDetailsResponse(data=consent)


@router.delete("/consent/{consent_id}", response_model=ConsentRevokedResponse)
async def revoke_consent(
    consent_id: str,
    request: Request,
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    settings: Settings = Depends(get_settings),
    service: AISConsentService = Depends(get_ais_service),
):
    """Revoke an AIS consent."""
    provider_code = provider_code or settings.ob_provider_code
    set_request_context(_request_id(request), provider_code=provider_code, consent_id=consent_id)

    logger.info("ais_consent_revoke_requested")
    await service.revoke_consent(provider_code, consent_id)

    return ConsentRevokedResponse(consent_id=consent_id)


@accounts_router.post("/token", response_model=TokenResponse)
async def exchange_token(
    request_body: TokenRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    """Exchange the authorization code from the redirect for an access token."""
    provider_code = request_body.provider_code or settings.ob_provider_code
    set_request_context(_request_id(request), provider_code=provider_code)

    with TimedOperation("ais_token_exchange", logger):
        token = await service.exchange_code_for_token(
            provider_code, request_body.code, request_body.redirect_uri
        )

    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        scope=token.scope,
    )


@accounts_router.get("/accounts", response_model=AccountDataResponse)
async def get_accounts(
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    access_token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    data = await service.get_accounts(provider_code or settings.ob_provider_code, access_token)
    return AccountDataResponse(data=data)


@accounts_router.get("/accounts/refresh/status", response_model=AccountDataResponse)
async def get_refresh_status(
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    access_token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    data = await service.get_refresh_status(provider_code or settings.ob_provider_code, access_token)
    return AccountDataResponse(data=data)


@accounts_router.post("/accounts/refresh", response_model=AccountDataResponse)
async def refresh_accounts(
    request_body: Optional[RefreshRequest] = None,
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    """Trigger an account data refresh at the ASPSP."""
    request_body = request_body or RefreshRequest()
    token = request_body.access_token or authorization
    if not token:
        raise SimulatorError("accessToken is required", status_code=400)

    data = await service.refresh_accounts(
        request_body.provider_code or settings.ob_provider_code, as_bearer(token)
    )
    return AccountDataResponse(data=data)


@accounts_router.get("/accounts/{account_id}/transactions", response_model=AccountDataResponse)
async def get_transactions(
    account_id: str,
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    access_token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    data = await service.get_account_transactions(
        provider_code or settings.ob_provider_code, account_id, access_token
    )
    return AccountDataResponse(data=data)


@accounts_router.get("/accounts/{account_id}/balances", response_model=AccountDataResponse)
async def get_balances(
    account_id: str,
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    access_token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    data = await service.get_account_balances(
        provider_code or settings.ob_provider_code, account_id, access_token
    )
    return AccountDataResponse(data=data)


@accounts_router.get("/accounts/{account_id}/standing-orders", response_model=AccountDataResponse)
async def get_standing_orders(
    account_id: str,
    provider_code: Optional[str] = Query(None, alias="providerCode"),
    access_token: str = Depends(get_access_token),
    settings: Settings = Depends(get_settings),
    service: AccountDataService = Depends(get_account_data_service),
):
    data = await service.get_account_standing_orders(
        provider_code or settings.ob_provider_code, account_id, access_token
    )
    return AccountDataResponse(data=data)
