"""
Errors raised by the asset store and the codec service.

Lookup misses are never errors: queries return ``None`` instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aas_lookup.services.codec import AssetFormat


class AssetStoreError(Exception):
    """Base class for all asset store errors."""


class DecodeError(AssetStoreError):
    """No codec could turn the given bytes into an environment."""

    def __init__(self, codec: "AssetFormat | None", message: str | None = None):
        self.codec = codec
        if message is None:
            if codec is None:
                message = "Input could not be deserialized to a valid environment"
            else:
                message = f"Input could not be deserialized as {codec.value}"
        super().__init__(message)


class DuplicateShellError(AssetStoreError):
    """A shell id or global asset id is already registered."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"An asset administration shell is already registered under {key!r}")


class DuplicateInstanceSubmodelError(AssetStoreError):
    """Two submodels with the same id, at least one an INSTANCE, under one owner."""

    def __init__(self, owner: str, submodel_id: str, owner_id: str | None = None):
        self.owner = owner
        self.submodel_id = submodel_id
        self.owner_id = owner_id
        super().__init__(
            f"The submodel INSTANCE with ID {submodel_id} is already registered "
            f"for asset {owner} (id={owner_id})"
        )


class FetchError(AssetStoreError):
    """An external environment could not be downloaded."""

    def __init__(self, url: str, status_code: int | None = None, message: str | None = None):
        self.url = url
        self.status_code = status_code
        if message is None:
            message = f"Fetching {url} failed with status {status_code}"
        super().__init__(message)
