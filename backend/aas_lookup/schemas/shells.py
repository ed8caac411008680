"""
Pydantic models for shell and submodel responses.

AAS objects themselves are serialized with the BaSyx JSON encoder; these
models cover the lightweight views the store derives from them.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class SpecificAssetIdSchema(BaseModel):
    """Name/value pair identifying an asset."""

    name: str
    value: str
    externalSubjectId: str | None = None


class ShellDescriptor(BaseModel):
    """
    Lightweight description of a shell.

    Derived from a registered shell without any submodel content.
    """

    id: str
    idShort: str | None = None
    description: dict[str, str] | None = None
    displayName: dict[str, str] | None = None
    administration: dict[str, Any] | None = None
    assetKind: str | None = None
    assetType: str | None = None
    globalAssetId: str | None = None
    specificAssetIds: list[SpecificAssetIdSchema] = Field(default_factory=list)


class PagingMetadata(BaseModel):
    """Paging cursor; always empty since results are never paged."""

    cursor: str | None = None


class PagingResult(BaseModel, Generic[T]):
    """Result list wrapper in the shape of the AAS repository API."""

    result: list[T] = Field(default_factory=list)
    paging_metadata: PagingMetadata = Field(default_factory=PagingMetadata)


class ReferenceChainSchema(BaseModel):
    """A referenced global asset id with the idShort path leading to it."""

    globalAssetId: str
    path: list[str]
    idShortPath: str


class CarbonFootprintSchema(BaseModel):
    """A carbon footprint submodel with the assets it references."""

    assetId: str
    submodelId: str
    footprint: dict[str, Any]
    contains: list[ReferenceChainSchema] = Field(default_factory=list)
