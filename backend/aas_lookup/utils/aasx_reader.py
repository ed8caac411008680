"""
Safe AAS readers.

Provides an AASX reader that tolerates missing supplementary file parts and
an XML reader that retries AAS 3.1 documents with the 3.0 namespace the SDK
understands, so slightly non-conforming packages still load.
"""

from __future__ import annotations

import io
import logging
from io import BytesIO

from basyx.aas import model
from basyx.aas.adapter import aasx
from basyx.aas.adapter.json import read_aas_json_file
from basyx.aas.adapter.xml import read_aas_xml_file
from basyx.aas.util import traversal

logger = logging.getLogger(__name__)

AAS_3_0_NAMESPACE = b"https://admin-shell.io/aas/3/0"
AAS_3_1_NAMESPACE = b"https://admin-shell.io/aas/3/1"


def _is_aas_3_1_only(raw: bytes) -> bool:
    return AAS_3_1_NAMESPACE in raw and AAS_3_0_NAMESPACE not in raw


def read_xml_with_namespace_fallback(
    raw: bytes, source: str = "<bytes>", **kwargs
) -> model.DictObjectStore:
    """
    Read an AAS XML document, retrying 3.1 documents as 3.0.

    Args:
        raw: XML document bytes
        source: Name of the document, for log messages only
        **kwargs: Passed on to ``read_aas_xml_file``

    Returns:
        Object store with the parsed identifiables
    """
    try:
        parsed = read_aas_xml_file(BytesIO(raw), **kwargs)
    except Exception:
        if _is_aas_3_1_only(raw):
            logger.warning(
                "Detected AAS 3.1 namespace in %s, retrying with 3.0 namespace mapping",
                source,
            )
            return read_aas_xml_file(
                BytesIO(raw.replace(AAS_3_1_NAMESPACE, AAS_3_0_NAMESPACE)), **kwargs
            )
        raise

    if not parsed and _is_aas_3_1_only(raw):
        logger.warning(
            "Parsed no objects for %s, retrying with 3.0 namespace mapping",
            source,
        )
        return read_aas_xml_file(
            BytesIO(raw.replace(AAS_3_1_NAMESPACE, AAS_3_0_NAMESPACE)), **kwargs
        )

    return parsed


class SafeAASXReader(aasx.AASXReader):
    """AASXReader that skips missing supplementary files instead of raising."""

    def _parse_aas_part(self, part_name: str, **kwargs) -> model.DictObjectStore:
        content_type = self.reader.get_content_type(part_name)
        extension = part_name.split("/")[-1].split(".")[-1]
        is_xml = content_type.split(";")[0] in ("text/xml", "application/xml") or (
            content_type == "" and extension == "xml"
        )
        is_json = content_type.split(";")[0] in ("text/json", "application/json") or (
            content_type == "" and extension == "json"
        )

        if is_xml:
            logger.debug("Parsing AAS objects from XML stream in OPC part %s ...", part_name)
            with self.reader.open_part(part_name) as part:
                raw = part.read()
            return read_xml_with_namespace_fallback(raw, part_name, **kwargs)

        if is_json:
            logger.debug("Parsing AAS objects from JSON stream in OPC part %s ...", part_name)
            with self.reader.open_part(part_name) as part:
                return read_aas_json_file(io.TextIOWrapper(part, encoding="utf-8-sig"), **kwargs)

        logger.error(
            "Could not determine part format of AASX part %s (Content Type: %s, extension: %s)",
            part_name,
            content_type,
            extension,
        )
        return model.DictObjectStore()

    def _collect_supplementary_files(
        self,
        part_name: str,
        submodel: model.Submodel,
        file_store: "aasx.AbstractSupplementaryFileContainer",
    ) -> None:
        for element in traversal.walk_submodel(submodel):
            if not isinstance(element, model.File) or element.value is None:
                continue
            if element.value.startswith("//") or ":" in element.value.split("/")[0]:
                logger.info(
                    "Skipping supplementary file %s, since it seems to be an absolute URI or network-path URI reference",
                    element.value,
                )
                continue

            absolute_name = aasx.pyecma376_2.package_model.part_realpath(
                element.value,
                part_name,
            )
            try:
                with self.reader.open_part(absolute_name) as part:
                    file_store.add_file(
                        absolute_name,
                        part,
                        self.reader.get_content_type(absolute_name),
                    )
            except KeyError:
                logger.warning(
                    "Supplementary file missing in AASX package: %s (referenced by %s)",
                    absolute_name,
                    element.value,
                )
                continue

            # Must match the zip entry name
            element.value = absolute_name
