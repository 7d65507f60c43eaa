"""
PIS (Payment Initiation Services) operations against the sandbox.

Every part of the consent body (Initiation, Authorisation, SCASupportData and
Risk) can be supplied by the caller; omitted parts fall back to example UK
Faster Payments structures.
"""
import time
from dataclasses import dataclass
from typing import Optional

from tpp_simulator.config import Settings
from tpp_simulator.services.consent import ConsentCreated, ConsentService, iso_timestamp

DEFAULT_PAYMENT_PRODUCT = "domestic-payment-consents"


def default_initiation() -> dict:
    """Example domestic Faster Payments initiation of GBP 20.00."""
    return {
        "InstructionIdentification": "ANSM023",
        "EndToEndIdentification": f"FRESCO.{int(time.time() * 1000)}.GFX.37",
        "LocalInstrument": "UK.OBIE.FPS",
        "InstructedAmount": {
            "Amount": "20.00",
            "Currency": "GBP",
        },
        "DebtorAccount": {
            "SchemeName": "UK.OBIE.SortCodeAccountNumber",
            "Identification": "11280001234567",
            "Name": "Andrea Smith",
            "SecondaryIdentification": "0002",
        },
        "CreditorAccount": {
            "SchemeName": "UK.OBIE.SortCodeAccountNumber",
            "Identification": "08080021325698",
            "Name": "Bob Clements",
            "SecondaryIdentification": "0003",
        },
        "CreditorPostalAddress": {
            "AddressLine": ["10 Downing St, Westminster, London SW1A 2AA, United Kingdom"],
            "AddressType": "Address with house number and street",
            "Department": "Prime Minister's Office",
            "SubDepartment": "Cabinet Office",
            "StreetName": "Sir George Downing",
            "BuildingNumber": "10",
            "PostCode": "SW1A 2AA",
            "TownName": "City of Westminster London,",
            "CountrySubDivision": "London",
            "Country": "GB",
        },
        "RemittanceInformation": {
            "Reference": "FRESCO-037",
            "Unstructured": "Internal ops code 5120103",
        },
        "SupplementaryData": {},
    }


def default_authorisation() -> dict:
    return {
        "AuthorisationType": "Auth",
        "CompletionDateTime": iso_timestamp(),
    }


def default_sca_support_data() -> dict:
    return {
        "AppliedAuthenticationApproach": "AppliedAuthenticationApproach",
        "ReferencePaymentOrderId": "156452",
        "RequestedScaExemptionType": "RequestedScaExemptionType",
    }


def default_risk() -> dict:
    return {
        "PaymentContextCode": "EcommerceGoods",
        "MerchantCategoryCode": "5967",
        "MerchantCustomerIdentification": "053598653254",
        "DeliveryAddress": {
            "AddressLine": ["Flat 7", "Acacia Lodge"],
            "StreetName": "Acacia Avenue",
            "BuildingNumber": "27",
            "PostCode": "GU31 2ZZ",
            "TownName": "Sparsholt",
            "CountrySubDivision": "Wessex",
            "Country": "GB",
        },
    }


@dataclass(frozen=True)
class PISConsentParams:
    """Fully resolved inputs of a PIS consent creation."""
    provider_code: str
    redirect_uri: str
    payment_product: str
    initiation: dict
    authorisation: dict
    sca_support_data: dict
    risk: dict

    def consent_body(self) -> dict:
        return {
            "Data": {
                "Initiation": self.initiation,
                "Authorisation": self.authorisation,
                "SCASupportData": self.sca_support_data,
            },
            "Risk": self.risk,
        }


def resolve_pis_params(
    settings: Settings,
    provider_code: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    payment_product: Optional[str] = None,
    initiation: Optional[dict] = None,
    authorisation: Optional[dict] = None,
    sca_support_data: Optional[dict] = None,
    risk: Optional[dict] = None,
) -> PISConsentParams:
    """Apply caller-supplied values over the configured and built-in defaults."""
    return PISConsentParams(
        provider_code=provider_code or settings.ob_provider_code,
        redirect_uri=redirect_uri or settings.redirect_uri,
        payment_product=payment_product or DEFAULT_PAYMENT_PRODUCT,
        initiation=initiation if initiation is not None else default_initiation(),
        authorisation=authorisation if authorisation is not None else default_authorisation(),
        sca_support_data=(
            sca_support_data if sca_support_data is not None else default_sca_support_data()
        ),
        risk=risk if risk is not None else default_risk(),
    )


class PISConsentService(ConsentService):
    """Creates and fetches payment consents. The sandbox flow has no PIS revoke."""

    service = "pis"
    api = "pisp"

    async def create_consent(self, params: PISConsentParams) -> ConsentCreated:
        """Create a payment consent and return its authorization URL."""
        return await self._create_consent(
            params.provider_code,
            params.redirect_uri,
            params.payment_product,
            params.consent_body(),
        )

    async def get_consent_details(
        self,
        provider_code: str,
        consent_id: str,
        payment_product: str = DEFAULT_PAYMENT_PRODUCT,
    ) -> dict:
        """Return the sandbox's view of a payment consent."""
        return await self._fetch_consent(provider_code, payment_product, consent_id)
