"""
Shell repository endpoints.

Identifiers in path segments are base64url-encoded UTF-8 strings and are
decoded here before the store is queried.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import Response

from aas_lookup.dependencies import decode_identifier, get_fetcher, get_store
from aas_lookup.exceptions import (
    DecodeError,
    DuplicateInstanceSubmodelError,
    DuplicateShellError,
    FetchError,
)
from aas_lookup.schemas.shells import (
    CarbonFootprintSchema,
    PagingResult,
    ReferenceChainSchema,
    ShellDescriptor,
)
from aas_lookup.services.chains import ReferenceChain
from aas_lookup.services.fetcher import ExternalShellFetcher
from aas_lookup.services.store import AssetStore
from aas_lookup.utils.serialization import aas_json_response, to_jsonable

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shells"])

AasIdentifier = Annotated[
    str,
    Path(description="The Asset Administration Shell's unique id (UTF8-BASE64-URL-encoded)"),
]
SubmodelIdentifier = Annotated[
    str,
    Path(description="The Submodel's unique id (UTF8-BASE64-URL-encoded)"),
]
IdShortPath = Annotated[str, Path(description="idShortPath with ./[]-notation")]


def _chain_schema(chain: ReferenceChain) -> ReferenceChainSchema:
    return ReferenceChainSchema(
        globalAssetId=chain.global_asset_id,
        path=list(chain.path),
        idShortPath=chain.id_short_path,
    )


@router.get("/shells/{aasIdentifier}")
async def get_shell(
    aasIdentifier: AasIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Returns a specific Asset Administration Shell."""
    shell = store.shell(decode_identifier(aasIdentifier))
    if shell is None:
        raise HTTPException(status_code=404, detail="Asset Administration Shell not found")
    return aas_json_response(shell)


@router.get("/shells/{aasIdentifier}/submodels/{submodelIdentifier}")
async def get_shell_submodel(
    aasIdentifier: AasIdentifier,
    submodelIdentifier: SubmodelIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Returns a Submodel of a shell."""
    submodel = store.submodel(
        decode_identifier(aasIdentifier), decode_identifier(submodelIdentifier)
    )
    if submodel is None:
        raise HTTPException(status_code=404, detail="Submodel not found")
    return aas_json_response(submodel)


@router.get(
    "/shells/{aasIdentifier}/submodels/{submodelIdentifier}/submodel-elements/{idShortPath}"
)
async def get_shell_submodel_element(
    aasIdentifier: AasIdentifier,
    submodelIdentifier: SubmodelIdentifier,
    idShortPath: IdShortPath,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Get the Submodel Element at an idShortPath."""
    element = store.submodel_element(
        decode_identifier(aasIdentifier),
        decode_identifier(submodelIdentifier),
        idShortPath,
    )
    if element is None:
        raise HTTPException(status_code=404, detail="Submodel element not found")
    return aas_json_response(element)


@router.get(
    "/shells/{aasIdentifier}/submodels/{submodelIdentifier}/submodel-elements/{idShortPath}/attachment"
)
async def get_shell_submodel_element_attachment(
    aasIdentifier: AasIdentifier,
    submodelIdentifier: SubmodelIdentifier,
    idShortPath: IdShortPath,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Get the attachment of a File or Blob Submodel Element."""
    attachment = store.submodel_element_attachment(
        decode_identifier(aasIdentifier),
        decode_identifier(submodelIdentifier),
        idShortPath,
    )
    if attachment is None:
        raise HTTPException(status_code=404, detail="Attachment not found")
    return Response(
        content=attachment.data,
        media_type=attachment.content_type or "application/octet-stream",
    )


@router.get(
    "/shells/{aasIdentifier}/submodels/{submodelIdentifier}/reference-chains",
    response_model=list[ReferenceChainSchema],
)
async def get_reference_chains(
    aasIdentifier: AasIdentifier,
    submodelIdentifier: SubmodelIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> list[ReferenceChainSchema]:
    """Global asset ids referenced in a Submodel, with the idShort paths leading to them."""
    chains = store.reference_chains(
        decode_identifier(aasIdentifier), decode_identifier(submodelIdentifier)
    )
    if chains is None:
        raise HTTPException(status_code=404, detail="Submodel not found")
    return [_chain_schema(chain) for chain in chains]


@router.get("/shells/{aasIdentifier}/submodel-refs")
async def get_submodel_refs(
    aasIdentifier: AasIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Returns the Submodel references of a shell."""
    references = store.submodel_references(decode_identifier(aasIdentifier))
    if references is None:
        raise HTTPException(status_code=404, detail="Asset Administration Shell not found")
    return aas_json_response({"result": references, "paging_metadata": {}})


@router.get("/shells/{aasIdentifier}/asset-information/thumbnail")
async def get_thumbnail(
    aasIdentifier: AasIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> Response:
    """Returns the thumbnail file."""
    thumbnail = store.thumbnail(decode_identifier(aasIdentifier))
    if thumbnail is None:
        raise HTTPException(status_code=404, detail="Thumbnail does not exist")
    return Response(
        content=thumbnail.data,
        media_type=thumbnail.content_type or "application/octet-stream",
    )


@router.get(
    "/shells/{aasIdentifier}/carbon-footprints",
    response_model=list[CarbonFootprintSchema],
)
async def get_carbon_footprints(
    aasIdentifier: AasIdentifier,
    store: Annotated[AssetStore, Depends(get_store)],
) -> list[CarbonFootprintSchema]:
    """Carbon footprint submodels of a shell with the assets they reference."""
    footprints = store.carbon_footprints(decode_identifier(aasIdentifier))
    if footprints is None:
        raise HTTPException(status_code=404, detail="Asset Administration Shell not found")
    return [
        CarbonFootprintSchema(
            assetId=footprint.asset_id,
            submodelId=footprint.footprint.id,
            footprint=to_jsonable(footprint.footprint),
            contains=[_chain_schema(chain) for chain in footprint.contains],
        )
        for footprint in footprints
    ]


@router.get("/shell-descriptors", response_model=PagingResult[ShellDescriptor])
async def get_shell_descriptors(
    store: Annotated[AssetStore, Depends(get_store)],
) -> PagingResult[ShellDescriptor]:
    """Returns all Asset Administration Shell Descriptors."""
    return PagingResult[ShellDescriptor](result=store.descriptors())


@router.get("/external-shells/{url}")
async def get_external_shells(
    url: Annotated[
        str,
        Path(description="url where the shell can be downloaded (UTF8-BASE64-URL-encoded)"),
    ],
    fetcher: Annotated[ExternalShellFetcher, Depends(get_fetcher)],
) -> Response:
    """
    Returns all Asset Administration Shells contained in an environment from a url.

    Fetched shells are registered hidden: they are addressable afterwards but
    not listed.
    """
    decoded_url = decode_identifier(url)
    try:
        shells = await fetcher.fetch_shells(decoded_url)
    except (ValueError, DecodeError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except FetchError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (DuplicateShellError, DuplicateInstanceSubmodelError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not shells:
        raise HTTPException(status_code=404, detail="File was not found or empty")
    return aas_json_response(shells)
