"""FastAPI dependencies wiring settings into the service layer."""
from typing import Optional

from fastapi import Depends, Header, Query, Request

from tpp_simulator.config import Settings
from tpp_simulator.errors import SimulatorError
from tpp_simulator.services import (
    AccountDataService,
    AISConsentService,
    PISConsentService,
    SandboxClient,
)


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_sandbox_client(settings: Settings = Depends(get_settings)) -> SandboxClient:
    return SandboxClient(settings)


def get_ais_service(
    settings: Settings = Depends(get_settings),
    sandbox: SandboxClient = Depends(get_sandbox_client),
) -> AISConsentService:
    return AISConsentService(settings, sandbox)


def get_pis_service(
    settings: Settings = Depends(get_settings),
    sandbox: SandboxClient = Depends(get_sandbox_client),
) -> PISConsentService:
    return PISConsentService(settings, sandbox)


def get_account_data_service(
    settings: Settings = Depends(get_settings),
    sandbox: SandboxClient = Depends(get_sandbox_client),
) -> AccountDataService:
    return AccountDataService(settings, sandbox)


def as_bearer(token: str) -> str:
    """Prefix a raw token with "Bearer " unless it already carries a scheme."""
    return token if token.lower().startswith("bearer ") else f"Bearer {token}"


def get_access_token(
    access_token: Optional[str] = Query(None, alias="accessToken"),
    authorization: Optional[str] = Header(None),
) -> str:
    """PSU access token from the accessToken query parameter or Authorization header."""
    token = access_token or authorization
    if not token:
        raise SimulatorError("accessToken is required", status_code=400)
    return as_bearer(token)
