"""Pydantic schemas for request/response validation."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts both the camelCase wire names and the Python field names."""
    model_config = ConfigDict(populate_by_name=True)


class AISConsentRequest(CamelModel):
    """Request body for POST /api/ais/consent. Every field is optional."""
    provider_code: Optional[str] = Field(None, alias="providerCode", description="Sandbox provider code")
    redirect_uri: Optional[str] = Field(None, alias="redirectUri", description="OAuth redirect URI")
    permissions: Optional[list[str]] = Field(None, description="AIS permissions to request")
    expiration_date_time: Optional[str] = Field(
        None, alias="expirationDateTime", description="ISO 8601 consent expiry"
    )


class PISConsentRequest(CamelModel):
    """Request body for POST /api/pis/consent. Every field is optional."""
    provider_code: Optional[str] = Field(None, alias="providerCode")
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")
    payment_product: Optional[str] = Field(None, alias="paymentProduct")
    initiation: Optional[dict[str, Any]] = None
    authorisation: Optional[dict[str, Any]] = None
    sca_support_data: Optional[dict[str, Any]] = Field(None, alias="scaSupportData")
    risk: Optional[dict[str, Any]] = None


class ConsentCreatedResponse(CamelModel):
    """Response body for consent creation."""
    consent_id: str = Field(..., alias="consentId")
    authorization_url: str = Field(..., alias="authorizationUrl")
    status: Optional[str] = None


class ConsentDetailsResponse(BaseModel):
    """Raw consent resource as returned by the sandbox."""
    success: bool = True
    data: dict[str, Any]


class ConsentRevokedResponse(CamelModel):
    """Response body for DELETE /api/ais/consent/{consentId}."""
    success: bool = True
    message: str = "Consent revoked successfully"
    consent_id: str = Field(..., alias="consentId")


class TokenRequest(CamelModel):
    """Request body for POST /api/ais/token."""
    code: str = Field(..., min_length=1, description="Authorization code from the redirect")
    provider_code: Optional[str] = Field(None, alias="providerCode")
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")


class TokenResponse(CamelModel):
    """Response body for POST /api/ais/token."""
    success: bool = True
    access_token: str = Field(..., alias="accessToken")
    token_type: Optional[str] = Field(None, alias="tokenType")
    expires_in: Optional[int] = Field(None, alias="expiresIn")
    scope: Optional[str] = None


class RefreshRequest(CamelModel):
    """Request body for POST /api/ais/accounts/refresh."""
    access_token: Optional[str] = Field(None, alias="accessToken")
    provider_code: Optional[str] = Field(None, alias="providerCode")


class AccountDataResponse(BaseModel):
    """Account data as returned by the sandbox."""
    success: bool = True
    data: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    service: str


class ErrorResponse(BaseModel):
    """Uniform error body for every failed request."""
    success: bool = False
    error: str
    details: Any = None
