"""
FastAPI routers for the AAS lookup service.
"""

from aas_lookup.routers import assets, shells

__all__ = ["shells", "assets"]
