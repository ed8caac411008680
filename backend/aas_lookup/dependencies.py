"""
FastAPI dependency injection setup.

Provides the store and service instances used across routes. The store is
created by the application lifespan and kept on ``app.state``.
"""

import base64
import binascii

from fastapi import HTTPException, Request, status

from aas_lookup.services.fetcher import ExternalShellFetcher
from aas_lookup.services.store import AssetStore


def get_store(request: Request) -> AssetStore:
    """Get the application's asset store."""
    return request.app.state.store


def get_fetcher(request: Request) -> ExternalShellFetcher:
    """Get the application's external shell fetcher."""
    return request.app.state.fetcher


def decode_identifier(value: str) -> str:
    """
    Decode a base64url-encoded UTF-8 identifier from a path segment.

    Padding is optional.

    Raises:
        HTTPException: 400 if the value is not valid base64url or UTF-8
    """
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Identifier is not valid base64url: {value}",
        ) from exc
