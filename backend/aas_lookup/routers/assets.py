"""
Asset listing endpoints.

Unlike the shell repository endpoints these take plain, unencoded ids.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from aas_lookup.dependencies import get_store
from aas_lookup.services.store import AssetStore
from aas_lookup.utils.serialization import aas_json_response

router = APIRouter(prefix="/asset", tags=["assets"])


@router.get("/all")
async def available_assets(
    store: Annotated[AssetStore, Depends(get_store)],
) -> dict[str, str | None]:
    """Get the ids (and idShorts) of all listed assets."""
    return store.visible_shell_ids()


@router.get("/{aasIdentifier}/submodel/all")
async def available_submodels(
    aasIdentifier: str,
    store: Annotated[AssetStore, Depends(get_store)],
) -> list[str]:
    """Get the ids of all submodels of an asset."""
    if not store.has_shell(aasIdentifier):
        raise HTTPException(status_code=404, detail="Asset not found")
    return sorted(store.available_submodel_ids(aasIdentifier))


@router.get("/{aasIdentifier}/submodel/{submodelId}")
async def get_submodel(
    aasIdentifier: str,
    submodelId: str,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Get a submodel by the shell's (global) id and the submodel's id."""
    submodel = store.submodel(aasIdentifier, submodelId)
    if submodel is None:
        raise HTTPException(status_code=404, detail="Submodel not found")
    return aas_json_response(submodel)
