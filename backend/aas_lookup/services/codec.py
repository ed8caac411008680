"""
Codec Service for format-agnostic environment deserialization.

Turns raw bytes plus a declared or "auto" format hint into an Environment.
For auto-detection the codecs are tried in the fixed order
JSON -> XML -> AASX until one succeeds.
"""

import io
import logging
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Callable

from basyx.aas import model
from basyx.aas.adapter import aasx
from basyx.aas.adapter.json import read_aas_json_file
from lxml import etree

from aas_lookup.exceptions import DecodeError
from aas_lookup.utils.aasx_reader import SafeAASXReader, read_xml_with_namespace_fallback

logger = logging.getLogger(__name__)


class AssetFormat(str, Enum):
    """Serialization format of an AAS environment."""

    JSON = "json"
    XML = "xml"
    AASX = "aasx"
    AUTO = "auto"


# File suffix used for retained copies of the original bytes
FORMAT_SUFFIXES: dict[AssetFormat, str] = {
    AssetFormat.JSON: ".json",
    AssetFormat.XML: ".xml",
    AssetFormat.AASX: ".aasx",
    AssetFormat.AUTO: ".aasx",
}

_SUFFIX_FORMATS: dict[str, AssetFormat] = {
    ".json": AssetFormat.JSON,
    ".xml": AssetFormat.XML,
    ".aas": AssetFormat.XML,
    ".aasx": AssetFormat.AASX,
}


@dataclass
class Environment:
    """
    Transient result of deserialization.

    Holds the shells and submodels of one document in document order until
    they are absorbed by the asset store.
    """

    shells: list[model.AssetAdministrationShell] = field(default_factory=list)
    submodels: list[model.Submodel] = field(default_factory=list)
    format: AssetFormat = AssetFormat.AUTO

    @classmethod
    def from_object_store(
        cls, object_store: model.DictObjectStore, fmt: AssetFormat
    ) -> "Environment":
        """Collect shells and submodels from a BaSyx object store."""
        env = cls(format=fmt)
        for obj in object_store:
            if isinstance(obj, model.AssetAdministrationShell):
                env.shells.append(obj)
            elif isinstance(obj, model.Submodel):
                env.submodels.append(obj)
        return env


def _decode_json(data: bytes) -> model.DictObjectStore:
    return read_aas_json_file(io.TextIOWrapper(BytesIO(data), encoding="utf-8-sig"))


def _decode_xml(data: bytes) -> model.DictObjectStore:
    # The SDK's failsafe reader returns an empty store on syntax errors
    etree.parse(BytesIO(data), etree.XMLParser(resolve_entities=False, no_network=True))
    return read_xml_with_namespace_fallback(data)


def _decode_aasx(data: bytes) -> model.DictObjectStore:
    object_store: model.DictObjectStore[model.Identifiable] = model.DictObjectStore()
    file_store = aasx.DictSupplementaryFileContainer()
    with SafeAASXReader(BytesIO(data)) as reader:
        reader.read_into(object_store, file_store)
    return object_store


_CODECS: dict[AssetFormat, Callable[[bytes], model.DictObjectStore]] = {
    AssetFormat.JSON: _decode_json,
    AssetFormat.XML: _decode_xml,
    AssetFormat.AASX: _decode_aasx,
}

AUTO_ORDER: tuple[AssetFormat, ...] = (AssetFormat.JSON, AssetFormat.XML, AssetFormat.AASX)


def decode(data: bytes, fmt: AssetFormat = AssetFormat.AUTO) -> Environment:
    """
    Deserialize an AAS environment.

    Args:
        data: Raw document bytes
        fmt: Declared format, or AUTO to try JSON, XML and AASX in order

    Returns:
        The parsed environment

    Raises:
        DecodeError: If the declared codec fails, or no codec succeeds in
            AUTO mode (``codec`` is None then)
    """
    fmt = AssetFormat(fmt)
    if fmt != AssetFormat.AUTO:
        logger.info("Parsing as %s", fmt.value.upper())
        try:
            object_store = _CODECS[fmt](data)
        except Exception as exc:
            raise DecodeError(fmt, f"Input could not be deserialized as {fmt.value}: {exc}") from exc
        return Environment.from_object_store(object_store, fmt)

    for candidate in AUTO_ORDER:
        logger.info("Parsing as %s", candidate.value.upper())
        try:
            object_store = _CODECS[candidate](data)
        except Exception as exc:
            logger.info("Could not auto-parse AAS as %s: %s", candidate.value.upper(), exc)
            continue
        return Environment.from_object_store(object_store, candidate)

    raise DecodeError(None)


def detect_format(filename: str | Path | None) -> AssetFormat:
    """Guess the format from a file name suffix, AUTO if unknown."""
    if not filename:
        return AssetFormat.AUTO
    return _SUFFIX_FORMATS.get(Path(filename).suffix.lower(), AssetFormat.AUTO)


def retain_source(
    data: bytes,
    fmt: AssetFormat = AssetFormat.AUTO,
    directory: Path | None = None,
) -> Path:
    """
    Write a copy of the original bytes to a temporary file.

    Attachment lookups need the original package bytes rather than the
    parsed tree, so the returned path is handed to the asset store as the
    shells' source.

    Returns:
        Path of the temporary file; the caller owns its deletion.
    """
    if directory is not None:
        directory.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        prefix="aas",
        suffix=FORMAT_SUFFIXES[AssetFormat(fmt)],
        dir=directory,
        delete=False,
    ) as handle:
        handle.write(data)
    return Path(handle.name)
