"""PIS (Payment Initiation Services) route handlers, designed for curl access."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from tpp_simulator.api.dependencies import get_pis_service, get_settings
from tpp_simulator.config import Settings
from tpp_simulator.logging import TimedOperation, get_logger, set_request_context
from tpp_simulator.schemas import (
    ConsentCreatedResponse,
    ConsentDetailsResponse,
    PISConsentRequest,
)
from tpp_simulator.services import PISConsentService
from tpp_simulator.services.pis import DEFAULT_PAYMENT_PRODUCT, resolve_pis_params

logger = get_logger(__name__)

router = APIRouter(prefix="/api/pis", tags=["pis"])


@router.post("/consent", response_model=ConsentCreatedResponse)
async def create_consent(
    request: Request,
    request_body: Optional[PISConsentRequest] = None,
    settings: Settings = Depends(get_settings),
    service: PISConsentService = Depends(get_pis_service),
):
    """
    Create a PIS consent and return the authorization URL.

    Initiation, authorisation, SCA support data and risk each fall back
    to example UK domestic payment values when omitted.
    """
    request_body = request_body or PISConsentRequest()
    params = resolve_pis_params(
        settings,
        provider_code=request_body.provider_code,
        redirect_uri=request_body.redirect_uri,
        payment_product=request_body.payment_product,
        initiation=request_body.initiation,
        authorisation=request_body.authorisation,
        sca_support_data=request_body.sca_support_data,
        risk=request_body.risk,
    )
    set_request_context(
        getattr(request.state, "request_id", "unknown"),
        provider_code=params.provider_code,
    )

    with TimedOperation(
        "pis_consent_creation",
        logger,
        payment_product=params.payment_product,
        redirect_uri=params.redirect_uri,
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
    payment_product: str = Query(DEFAULT_PAYMENT_PRODUCT, alias="paymentProduct"),
    settings: Settings = Depends(get_settings),
    service: PISConsentService = Depends(get_pis_service),
):
    """Fetch a PIS consent's current state from the sandbox."""
    provider_code = provider_code or settings.ob_provider_code
    set_request_context(
        getattr(request.state, "request_id", "unknown"),
        provider_code=provider_code,
        consent_id=consent_id,
    )

    logger.info("pis_consent_fetch_requested", payment_product=payment_product)
    consent = await service.get_consent_details(provider_code, consent_id, payment_product)

    return ConsentDetailsResponse(data=consent)
