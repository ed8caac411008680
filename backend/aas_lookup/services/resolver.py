"""
idShort path resolution.

Resolves paths like ``"Components.Parts[2].Weight"`` against the element
tree of a submodel. Resolution is total: every failure yields None.
"""

import logging
import re
from typing import Iterable

from basyx.aas import model

logger = logging.getLogger(__name__)

_INDEX_TOKEN_SPLIT = re.compile(r"(\[[0-9]+\])")
_INDEX_TOKEN = re.compile(r"\[([0-9]+)\]")


def split_id_short_path(path: str) -> list[str]:
    """
    Split an idShort path into its tokens.

    Bracketed list indices become tokens of their own, brackets included.
    Consecutive separators produce empty tokens, which never resolve.
    """
    tokens: list[str] = []
    for position, part in enumerate(path.split(".")):
        pieces = _INDEX_TOKEN_SPLIT.split(part)
        # An index right after a dot, or an empty part, leaves an empty idShort
        if pieces[0] == "" and (position > 0 or part == ""):
            tokens.append("")
        tokens.extend(piece for piece in pieces if piece)
    return tokens


def _find_by_id_short(
    elements: Iterable[model.SubmodelElement], id_short: str
) -> model.SubmodelElement | None:
    """First element with the given idShort, in document order."""
    for element in elements:
        if element.id_short == id_short:
            return element
    return None


def resolve(submodel: model.Submodel, path: str) -> model.SubmodelElement | None:
    """
    Resolve an idShort path within a submodel.

    Args:
        submodel: Submodel whose element tree is searched
        path: idShort path with ``.`` and ``[n]`` notation

    Returns:
        The addressed element, or None if any step of the path fails
    """
    if not isinstance(path, str) or not path:
        return None

    tokens = split_id_short_path(path)
    if not tokens[0]:
        logger.warning("idShortPath %s has empty element, returning None", path)
        return None

    element = _find_by_id_short(submodel.submodel_element, tokens[0])

    for token in tokens[1:]:
        if element is None:
            return None
        if not token:
            logger.warning("idShortPath %s has empty element, returning None", path)
            return None

        index_match = _INDEX_TOKEN.fullmatch(token)
        if index_match is not None:
            if not isinstance(element, model.SubmodelElementList):
                logger.warning(
                    "Expected %s (from %s) to be a SubmodelElementList, not %s, returning None",
                    token,
                    path,
                    type(element).__name__,
                )
                return None
            index = int(index_match.group(1))
            items = list(element.value)
            if index >= len(items):
                return None
            element = items[index]
        elif isinstance(element, model.SubmodelElementCollection):
            element = _find_by_id_short(element.value, token)
        else:
            logger.warning(
                "Expected %s (from %s) to be a SubmodelElementCollection, not %s, returning None",
                token,
                path,
                type(element).__name__,
            )
            return None

    return element
