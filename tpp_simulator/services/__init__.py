"""Service layer for the TPP API simulator."""
from tpp_simulator.services.ais import AccountDataService, AISConsentService
from tpp_simulator.services.pis import PISConsentService
from tpp_simulator.services.sandbox_client import SandboxClient
from tpp_simulator.services.signing import JwtSigner

__all__ = [
    "AccountDataService",
    "AISConsentService",
    "JwtSigner",
    "PISConsentService",
    "SandboxClient",
]
