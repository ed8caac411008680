"""
Pydantic schemas for API responses.
"""

from aas_lookup.schemas.shells import (
    CarbonFootprintSchema,
    PagingMetadata,
    PagingResult,
    ReferenceChainSchema,
    ShellDescriptor,
    SpecificAssetIdSchema,
)

__all__ = [
    "ShellDescriptor",
    "SpecificAssetIdSchema",
    "PagingResult",
    "PagingMetadata",
    "ReferenceChainSchema",
    "CarbonFootprintSchema",
]
