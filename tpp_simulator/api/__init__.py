"""HTTP routers for the TPP API simulator."""
from tpp_simulator.api.ais import accounts_router, router as ais_router
from tpp_simulator.api.pis import router as pis_router

__all__ = ["accounts_router", "ais_router", "pis_router"]
