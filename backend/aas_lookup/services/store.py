"""
Asset Store: the in-memory shell and submodel repository.

Shells are indexed under both their id and their global asset id.
Submodels are not treated as globally unique: they are indexed per owning
shell (again under both of its keys) and then by submodel id.

The repository is append-only. Readers work on an immutable snapshot of
the index maps and never lock; writers serialize on a lock, stage their
changes on copies and publish them with a single reference swap, so a
registration becomes visible as a whole or not at all.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from basyx.aas import model

from aas_lookup.exceptions import DuplicateInstanceSubmodelError, DuplicateShellError
from aas_lookup.schemas.shells import ShellDescriptor, SpecificAssetIdSchema
from aas_lookup.services.attachments import Attachment, extract_attachment
from aas_lookup.services.chains import ReferenceChain, extract_chains, is_carbon_footprint
from aas_lookup.services.codec import AssetFormat, Environment, decode, detect_format, retain_source
from aas_lookup.services.resolver import resolve
from aas_lookup.utils.references import (
    lang_string_dict,
    serialize_administration,
    serialize_specific_asset_ids,
    submodel_id_from_reference,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShellRecord:
    """A registered shell with its visibility and source package."""

    shell: model.AssetAdministrationShell
    global_asset_id: str
    hidden: bool = False
    source: Path | None = None

    @property
    def id(self) -> str:
        return self.shell.id


@dataclass(frozen=True)
class CarbonFootprint:
    """A carbon footprint submodel of an asset with the assets it references."""

    footprint: model.Submodel
    asset_id: str
    contains: list[ReferenceChain] = field(default_factory=list)


@dataclass(frozen=True)
class _Index:
    # id and global asset id -> record
    shells: Mapping[str, ShellRecord]
    # owner id or global asset id -> submodel id -> submodel;
    # inner maps are copied on write and never mutated once published
    submodels: Mapping[str, Mapping[str, model.Submodel]]
    # shell id -> idShort, in registration order
    id_shorts: Mapping[str, str | None]


_EMPTY_INDEX = _Index(MappingProxyType({}), MappingProxyType({}), MappingProxyType({}))


class _Transaction:
    """Changes staged on copies of an index, published by ``commit``."""

    def __init__(self, index: _Index):
        self.shells = dict(index.shells)
        self.submodels = dict(index.submodels)
        self.id_shorts = dict(index.id_shorts)
        self._copied_owners: set[str] = set()
        self._backfills: list[tuple[model.AssetAdministrationShell, str]] = []

    def add_shell(
        self,
        shell: model.AssetAdministrationShell,
        source: Path | None,
        hidden: bool,
    ) -> ShellRecord:
        global_id = shell.asset_information.global_asset_id
        if global_id is None:
            global_id = f"autogenerated_{shell.id}_{shell.id_short}_{uuid.uuid4()}"
            self._backfills.append((shell, global_id))

        for key in (shell.id, global_id):
            if key in self.shells:
                raise DuplicateShellError(key)

        logger.info("Adding asset with ID %s / global ID %s", shell.id, global_id)
        record = ShellRecord(shell, global_id, hidden, source)
        self.shells[shell.id] = record
        self.shells[global_id] = record
        self.id_shorts[shell.id] = shell.id_short
        return record

    def add_submodel(self, owner: str, submodel: model.Submodel) -> None:
        if owner not in self._copied_owners:
            self.submodels[owner] = dict(self.submodels.get(owner, {}))
            self._copied_owners.add(owner)
        submodels = self.submodels[owner]

        registered = submodels.get(submodel.id)
        if registered is not None:
            owner_record = self.shells.get(owner)
            owner_id = owner_record.id if owner_record is not None else None
            if (
                submodel.kind == model.ModellingKind.TEMPLATE
                and registered.kind == model.ModellingKind.TEMPLATE
            ):
                logger.info(
                    "The submodel TEMPLATE with ID %s is already registered for asset %s (id=%s). "
                    "Skipping and assuming that the registered template is the same.",
                    submodel.id,
                    owner,
                    owner_id,
                )
                return
            raise DuplicateInstanceSubmodelError(owner, submodel.id, owner_id)

        submodels[submodel.id] = submodel

    def commit(self) -> _Index:
        for shell, global_id in self._backfills:
            shell.asset_information.global_asset_id = global_id
        return _Index(
            shells=MappingProxyType(self.shells),
            submodels=MappingProxyType(self.submodels),
            id_shorts=MappingProxyType(self.id_shorts),
        )


def _warn_dangling_references(
    shell: model.AssetAdministrationShell, submodel_ids: set[str]
) -> None:
    for reference in shell.submodel:
        try:
            submodel_id = submodel_id_from_reference(reference)
        except ValueError:
            logger.warning("Shell %s has a malformed submodel reference: %s", shell.id, reference)
            continue
        if submodel_id not in submodel_ids:
            logger.warning(
                "Submodel %s referenced by shell %s is not contained in its environment",
                submodel_id,
                shell.id,
            )


def _owner_keys(owner_global_asset_id: str, owner_id: str | None) -> list[str]:
    keys = [owner_id] if owner_id else []
    if owner_global_asset_id not in keys:
        keys.append(owner_global_asset_id)
    return keys


class AssetStore:
    """
    In-memory repository of asset administration shells and their submodels.

    Features:
    - Shells addressable by id and by global asset id
    - Hidden shells: addressable, but not listed
    - Per-shell submodels with template deduplication
    - idShort path, reference chain and attachment queries
    """

    def __init__(self, temp_dir: Path | None = None):
        self.temp_dir = temp_dir
        self._index = _EMPTY_INDEX
        self._lock = threading.Lock()
        self._owned_sources: list[Path] = []

    def __enter__(self) -> "AssetStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Delete the temporary source files created by this store."""
        with self._lock:
            owned, self._owned_sources = self._owned_sources, []
        for path in owned:
            path.unlink(missing_ok=True)
        if owned:
            logger.info(f"Removed {len(owned)} retained source files")

    # Registration

    def register_shell(
        self,
        shell: model.AssetAdministrationShell,
        source: Path | None = None,
        hidden: bool = False,
    ) -> ShellRecord:
        """
        Register a single shell.

        A missing global asset id is synthesized once from the shell's id,
        idShort and a random component and written back onto the shell.

        Raises:
            DuplicateShellError: If the id or global asset id is taken
        """
        with self._lock:
            transaction = _Transaction(self._index)
            record = transaction.add_shell(shell, source, hidden)
            self._index = transaction.commit()
        return record

    def register_submodel(
        self,
        owner_global_asset_id: str,
        owner_id: str | None,
        submodel: model.Submodel,
    ) -> None:
        """
        Bind a submodel to an owning shell.

        The submodel is indexed under the owner's global asset id and, if it
        differs, the owner's id.

        Raises:
            DuplicateInstanceSubmodelError: If the owner already has a
                submodel with this id and either of the two is an INSTANCE
        """
        with self._lock:
            transaction = _Transaction(self._index)
            for key in _owner_keys(owner_global_asset_id, owner_id):
                transaction.add_submodel(key, submodel)
            self._index = transaction.commit()

    def register_environment(
        self,
        env: Environment,
        source: Path | None = None,
        hidden: bool = False,
    ) -> list[str]:
        """
        Register all shells of an environment and bind its submodels to them.

        Every submodel of the environment is bound to every shell of it.
        Registration is all-or-nothing: if any shell or submodel is rejected,
        nothing of the environment is registered.

        Returns:
            Ids of the registered shells
        """
        with self._lock:
            transaction = _Transaction(self._index)
            records = [transaction.add_shell(shell, source, hidden) for shell in env.shells]
            for record in records:
                for submodel in env.submodels:
                    for key in _owner_keys(record.global_asset_id, record.id):
                        transaction.add_submodel(key, submodel)
            self._index = transaction.commit()

        submodel_ids = {submodel.id for submodel in env.submodels}
        for shell in env.shells:
            _warn_dangling_references(shell, submodel_ids)
        return [record.id for record in records]

    def load(
        self,
        data: bytes,
        fmt: AssetFormat = AssetFormat.AUTO,
        source: Path | None = None,
        hidden: bool = False,
    ) -> list[str]:
        """
        Decode an environment and register it.

        Without a ``source`` the original bytes are retained in a temporary
        file owned by the store, so attachments stay readable.

        Raises:
            DecodeError: If the bytes cannot be decoded
            DuplicateShellError, DuplicateInstanceSubmodelError: On conflicts
        """
        env = decode(data, fmt)
        owned = source is None
        if owned:
            source = retain_source(data, env.format, self.temp_dir)
        try:
            ids = self.register_environment(env, source, hidden)
        except Exception:
            if owned:
                source.unlink(missing_ok=True)
            raise
        if owned:
            with self._lock:
                self._owned_sources.append(source)
        return ids

    def load_file(
        self,
        path: Path,
        fmt: AssetFormat | None = None,
        hidden: bool = False,
    ) -> list[str]:
        """Load an AAS(X) file, keeping the file itself as source."""
        path = Path(path)
        logger.info("Adding file %s", path.resolve())
        return self.load(path.read_bytes(), fmt or detect_format(path), source=path, hidden=hidden)

    # Queries

    def shell_record(self, shell_id: str) -> ShellRecord | None:
        return self._index.shells.get(shell_id)

    def shell(self, shell_id: str) -> model.AssetAdministrationShell | None:
        """Get a shell by id or global asset id."""
        record = self._index.shells.get(shell_id)
        return record.shell if record is not None else None

    def has_shell(self, shell_id: str) -> bool:
        return shell_id in self._index.shells

    def submodel(self, owner_id: str, submodel_id: str) -> model.Submodel | None:
        """Get a submodel of a shell, addressed by the shell's id or global id."""
        return self._index.submodels.get(owner_id, {}).get(submodel_id)

    def has_submodel(self, owner_id: str, submodel_id: str) -> bool:
        return submodel_id in self._index.submodels.get(owner_id, {})

    def available_submodel_ids(self, owner_id: str) -> set[str]:
        return set(self._index.submodels.get(owner_id, {}))

    def visible_shell_ids(self) -> dict[str, str | None]:
        """Map of shell id to idShort for every shell not registered hidden."""
        index = self._index
        return {
            shell_id: id_short
            for shell_id, id_short in index.id_shorts.items()
            if not index.shells[shell_id].hidden
        }

    def descriptors(self) -> list[ShellDescriptor]:
        """Descriptors of all visible shells, without submodel content."""
        index = self._index
        descriptors = []
        for shell_id in index.id_shorts:
            record = index.shells[shell_id]
            if record.hidden:
                continue
            descriptors.append(self._describe(record.shell))
        return descriptors

    def submodel_references(self, owner_id: str) -> list[model.ModelReference] | None:
        shell = self.shell(owner_id)
        if shell is None:
            return None
        return list(shell.submodel)

    def submodel_element(
        self, owner_id: str, submodel_id: str, id_short_path: str
    ) -> model.SubmodelElement | None:
        submodel = self.submodel(owner_id, submodel_id)
        if submodel is None:
            return None
        return resolve(submodel, id_short_path)

    def reference_chains(self, owner_id: str, submodel_id: str) -> list[ReferenceChain] | None:
        submodel = self.submodel(owner_id, submodel_id)
        if submodel is None:
            return None
        return extract_chains(submodel)

    def submodel_element_attachment(
        self, owner_id: str, submodel_id: str, id_short_path: str
    ) -> Attachment | None:
        """Bytes and content type of a Blob or File element."""
        element = self.submodel_element(owner_id, submodel_id, id_short_path)
        if element is None:
            return None
        record = self.shell_record(owner_id)
        return extract_attachment(element, record.source if record is not None else None)

    def thumbnail(self, owner_id: str) -> Attachment | None:
        """The default thumbnail of a shell, read from its source package."""
        record = self.shell_record(owner_id)
        if record is None:
            return None
        resource = record.shell.asset_information.default_thumbnail
        if resource is None:
            return None
        return extract_attachment(resource, record.source)

    def carbon_footprints(self, owner_id: str) -> list[CarbonFootprint] | None:
        record = self.shell_record(owner_id)
        if record is None:
            return None
        return [
            CarbonFootprint(submodel, record.global_asset_id, extract_chains(submodel))
            for submodel in self._index.submodels.get(owner_id, {}).values()
            if is_carbon_footprint(submodel)
        ]

    @staticmethod
    def _describe(shell: model.AssetAdministrationShell) -> ShellDescriptor:
        info = shell.asset_information
        return ShellDescriptor(
            id=shell.id,
            idShort=shell.id_short,
            description=lang_string_dict(shell.description),
            displayName=lang_string_dict(shell.display_name),
            administration=serialize_administration(shell.administration),
            assetKind=info.asset_kind.name if info.asset_kind is not None else None,
            assetType=info.asset_type,
            globalAssetId=info.global_asset_id,
            specificAssetIds=[
                SpecificAssetIdSchema(**aid)
                for aid in serialize_specific_asset_ids(info.specific_asset_id)
            ],
        )

