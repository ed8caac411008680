"""
Utility modules for the AAS lookup service.
"""

from aas_lookup.utils.aasx_reader import SafeAASXReader, read_xml_with_namespace_fallback
from aas_lookup.utils.references import (
    global_reference_values,
    only_key_value,
    submodel_id_from_reference,
)

__all__ = [
    "SafeAASXReader",
    "read_xml_with_namespace_fallback",
    "only_key_value",
    "submodel_id_from_reference",
    "global_reference_values",
]
