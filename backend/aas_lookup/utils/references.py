"""
Reference and key helpers.

Malformed references are tolerated everywhere except where the caller asserts
the key shape with ``only_key_value``.
"""

from typing import Any, Iterable

from basyx.aas import model


def only_key_value(
    reference: model.Reference,
    expected_type: model.KeyTypes | None = None,
) -> str:
    """
    Get the value of the only key of a reference.

    Args:
        reference: Reference to read the key from
        expected_type: Key type the key must have, any type if None

    Returns:
        The key's value

    Raises:
        ValueError: If the reference has more or less than one key, or the
            key is not of ``expected_type``
    """
    keys = reference.key
    if len(keys) != 1 or (expected_type is not None and keys[0].type != expected_type):
        raise ValueError(f"Wrong key: Expected exactly one key of type {expected_type}")
    return keys[0].value


def submodel_id_from_reference(reference: model.Reference) -> str:
    """Get the submodel id a submodel reference points to."""
    return only_key_value(reference, model.KeyTypes.SUBMODEL)


def global_reference_values(reference: model.Reference | None) -> list[str]:
    """Values of all GLOBAL_REFERENCE keys of a reference, in key order."""
    if reference is None:
        return []
    return [
        key.value for key in reference.key if key.type == model.KeyTypes.GLOBAL_REFERENCE
    ]


def serialize_reference(ref: model.Reference | None) -> str | None:
    """Serialize a Reference to the value of its first key."""
    if ref is None:
        return None
    if ref.key:
        return ref.key[0].value
    return str(ref)


def serialize_administration(
    admin: model.AdministrativeInformation | None,
) -> dict[str, Any] | None:
    """Serialize AdministrativeInformation."""
    if admin is None:
        return None
    return {
        "version": admin.version,
        "revision": admin.revision,
        "creator": serialize_reference(admin.creator),
        "templateId": admin.template_id,
    }


def serialize_specific_asset_ids(
    specific_asset_ids: Iterable[model.SpecificAssetId],
) -> list[dict[str, Any]]:
    """Serialize SpecificAssetIds to name/value pairs."""
    return [
        {
            "name": aid.name,
            "value": aid.value,
            "externalSubjectId": serialize_reference(aid.external_subject_id),
        }
        for aid in specific_asset_ids or ()
    ]


def lang_string_dict(value) -> dict[str, str] | None:
    """Convert a multi-language string set to a plain dict, None if empty."""
    return dict(value) if value else None
