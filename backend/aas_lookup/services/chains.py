"""
Reference chain extraction.

Walks the element tree of a submodel and collects every global asset id it
references, paired with the idShort path that leads to the reference.
"""

import logging
from typing import NamedTuple

from basyx.aas import model

from aas_lookup.utils.references import global_reference_values

logger = logging.getLogger(__name__)

CARBON_FOOTPRINT_ID_SHORT = "CarbonFootprint"

_MANAGED_ENTITY_TYPES = (
    model.EntityType.CO_MANAGED_ENTITY,
    model.EntityType.SELF_MANAGED_ENTITY,
)


class ReferenceChain(NamedTuple):
    """A referenced global asset id and the idShort path leading to it."""

    global_asset_id: str
    path: tuple[str, ...]

    @property
    def id_short_path(self) -> str:
        """The path in ``.``/``[n]`` notation, resolvable by the path resolver."""
        joined = ""
        for segment in self.path:
            if joined and not segment.startswith("["):
                joined += "."
            joined += segment
        return joined


def extract_chains(submodel: model.Submodel) -> list[ReferenceChain]:
    """
    Get all global asset ids referenced in a submodel with their paths.

    Emission order is depth-first in document order; an entity's own global
    asset id comes after everything found below it.
    """
    chains: list[ReferenceChain] = []
    for element in submodel.submodel_element:
        _collect(chains, element, (element.id_short,))
    return chains


def referenced_global_asset_ids(submodel: model.Submodel) -> set[str]:
    """Distinct global asset ids referenced anywhere in a submodel."""
    return {chain.global_asset_id for chain in extract_chains(submodel)}


def is_carbon_footprint(submodel: model.Submodel) -> bool:
    """Check if a submodel represents a carbon footprint."""
    return submodel.id_short == CARBON_FOOTPRINT_ID_SHORT


def _collect(
    chains: list[ReferenceChain],
    element: model.SubmodelElement,
    path: tuple[str, ...],
) -> None:
    if isinstance(element, model.Entity):
        if element.entity_type not in _MANAGED_ENTITY_TYPES:
            return
        for statement in element.statement:
            _collect(chains, statement, path + (statement.id_short,))
        if element.global_asset_id is not None:
            chains.append(ReferenceChain(element.global_asset_id, path))
        elif element.entity_type == model.EntityType.SELF_MANAGED_ENTITY:
            logger.warning(
                "SELF_MANAGED_ENTITY %s does not have a global asset ID.",
                element.id_short,
            )

    elif isinstance(element, model.ReferenceElement):
        _add_global_references(chains, element.value, path)

    elif isinstance(element, model.SubmodelElementCollection):
        for child in element.value:
            _collect(chains, child, path + (child.id_short,))

    elif isinstance(element, model.SubmodelElementList):
        # List items carry no idShort
        for index, child in enumerate(element.value):
            _collect(chains, child, path + (f"[{index}]",))

    elif isinstance(element, model.RelationshipElement):
        _add_global_references(chains, element.first, path)
        _add_global_references(chains, element.second, path)


def _add_global_references(
    chains: list[ReferenceChain],
    reference: model.Reference | None,
    path: tuple[str, ...],
) -> None:
    for value in global_reference_values(reference):
        chains.append(ReferenceChain(value, path))
