"""
Attachment extraction.

Blobs carry their bytes inline. Files and Resources point into the source
package of their shell and are read from its zip container.
"""

import logging
import zipfile
from pathlib import Path
from typing import NamedTuple

from basyx.aas import model

logger = logging.getLogger(__name__)


class Attachment(NamedTuple):
    """Raw attachment bytes with their declared content type."""

    data: bytes
    content_type: str | None


def read_package_entry(source: Path | None, path: str | None) -> bytes | None:
    """
    Read an entry of a zip-based package.

    Args:
        source: Path of the package file
        path: Entry path inside the package, one leading "/" is stripped

    Returns:
        The entry's bytes, or None if the package or the entry is unavailable
    """
    if source is None or not path:
        return None
    if not source.is_file():
        logger.error("File %s does not exist or is not a valid file.", source)
        return None

    if path.startswith("/"):
        path = path[1:]

    try:
        with zipfile.ZipFile(source) as package:
            try:
                return package.read(path)
            except KeyError:
                logger.error("File %s not found in the zip archive %s.", path, source)
                return None
    except (OSError, zipfile.BadZipFile) as exc:
        logger.error("An error occurred while processing the zip file %s: %s", source, exc)
        return None


def extract_attachment(
    element: model.SubmodelElement | model.Resource | None,
    source: Path | None,
) -> Attachment | None:
    """
    Resolve an attachment-bearing element to its bytes.

    Args:
        element: Blob, File or Resource
        source: Source package of the shell owning the element

    Returns:
        The attachment, or None if the element carries none or it is unavailable
    """
    if isinstance(element, model.Blob):
        if element.value is None:
            return None
        return Attachment(bytes(element.value), element.content_type)

    if isinstance(element, model.File):
        data = read_package_entry(source, element.value)
    elif isinstance(element, model.Resource):
        data = read_package_entry(source, element.path)
    else:
        return None

    if data is None:
        return None
    return Attachment(data, element.content_type)
