"""
Tests for the asset store.
"""

import logging
import sys
import threading

import pytest
from basyx.aas import model

from aas_lookup.exceptions import (
    DecodeError,
    DuplicateInstanceSubmodelError,
    DuplicateShellError,
)
from aas_lookup.services.codec import AssetFormat, Environment
from aas_lookup.services.store import AssetStore
from aas_lookup.utils.serialization import to_jsonable

from factories import (
    global_ref,
    make_shell,
    make_submodel,
    string_property,
    to_aasx_bytes,
    to_json_bytes,
    write_zip,
)


class TestShellRegistration:
    """Tests for shell registration and lookup."""

    def test_shell_addressable_by_id_and_global_id(self, store, shell):
        """Test that both keys return the same shell object."""
        store.register_shell(shell)

        assert store.shell("urn:shell:1") is shell
        assert store.shell("urn:asset:1") is shell
        assert store.has_shell("urn:shell:1")
        assert store.has_shell("urn:asset:1")

    def test_unknown_shell_is_none(self, store):
        """Test that lookup misses are not errors."""
        assert store.shell("urn:unknown") is None
        assert store.shell_record("urn:unknown") is None
        assert not store.has_shell("urn:unknown")

    def test_missing_global_id_is_synthesized(self, store):
        """Test that a shell without global asset id gets a stable generated one."""
        shell = make_shell("urn:shell:anon", "Anon", global_asset_id=None)

        record = store.register_shell(shell)

        generated = shell.asset_information.global_asset_id
        assert generated is not None
        assert generated.startswith("autogenerated_urn:shell:anon_Anon_")
        assert record.global_asset_id == generated
        assert store.shell(generated) is shell
        assert store.shell("urn:shell:anon") is shell
        assert store.shell(generated).asset_information.global_asset_id == generated

    def test_duplicate_id_rejected(self, store, shell):
        """Test that a second shell with a taken id is refused."""
        store.register_shell(shell)
        other = make_shell("urn:shell:1", "Other", "urn:asset:other")

        with pytest.raises(DuplicateShellError) as exc_info:
            store.register_shell(other)

        assert exc_info.value.key == "urn:shell:1"
        assert store.shell("urn:shell:1") is shell
        assert store.shell("urn:asset:other") is None

    def test_duplicate_global_id_rejected(self, store, shell):
        """Test that a second shell with a taken global asset id is refused."""
        store.register_shell(shell)
        other = make_shell("urn:shell:2", "Other", "urn:asset:1")

        with pytest.raises(DuplicateShellError):
            store.register_shell(other)

        assert store.shell("urn:shell:2") is None

    def test_failed_registration_does_not_write_back_global_id(self, store, shell):
        """Test that a refused shell keeps its missing global asset id."""
        store.register_shell(shell)
        clash = make_shell("urn:shell:1", "Clash", global_asset_id=None)

        with pytest.raises(DuplicateShellError):
            store.register_shell(clash)

        assert clash.asset_information.global_asset_id is None

    def test_hidden_shell_is_addressable_but_unlisted(self, store, shell):
        """Test that hidden shells are omitted from listings only."""
        hidden = make_shell("urn:shell:hidden", "Hidden", "urn:asset:hidden")
        store.register_shell(shell)
        store.register_shell(hidden, hidden=True)

        assert store.visible_shell_ids() == {"urn:shell:1": "Shell1"}
        assert [d.id for d in store.descriptors()] == ["urn:shell:1"]
        assert store.shell("urn:shell:hidden") is hidden
        assert store.shell("urn:asset:hidden") is hidden

    def test_visible_shell_ids_in_registration_order(self, store):
        """Test that listings follow registration order."""
        for i in (3, 1, 2):
            store.register_shell(make_shell(f"urn:shell:{i}", f"S{i}", f"urn:asset:{i}"))

        assert list(store.visible_shell_ids()) == ["urn:shell:3", "urn:shell:1", "urn:shell:2"]


class TestSubmodelRegistration:
    """Tests for submodel binding."""

    def test_submodel_under_both_owner_keys(self, store, shell, nameplate):
        """Test that a submodel is reachable via the owner's id and global id."""
        store.register_shell(shell)
        store.register_submodel("urn:asset:1", "urn:shell:1", nameplate)

        assert store.submodel("urn:shell:1", "urn:submodel:1") is nameplate
        assert store.submodel("urn:asset:1", "urn:submodel:1") is nameplate
        assert store.has_submodel("urn:shell:1", "urn:submodel:1")
        assert store.available_submodel_ids("urn:asset:1") == {"urn:submodel:1"}

    def test_submodel_without_owner_id(self, store, nameplate):
        """Test binding under the global asset id only."""
        store.register_submodel("urn:asset:1", None, nameplate)

        assert store.submodel("urn:asset:1", "urn:submodel:1") is nameplate
        assert store.available_submodel_ids("urn:shell:1") == set()

    def test_unknown_submodel_is_none(self, store, shell):
        """Test that submodel misses are not errors."""
        store.register_shell(shell)

        assert store.submodel("urn:shell:1", "urn:submodel:missing") is None
        assert store.submodel("urn:unknown", "urn:submodel:1") is None
        assert not store.has_submodel("urn:unknown", "urn:submodel:1")

    def test_duplicate_template_is_ignored(self, store, caplog):
        """Test that a second TEMPLATE with the same id is a no-op."""
        first = make_submodel("urn:template:1", "T1", kind=model.ModellingKind.TEMPLATE)
        second = make_submodel("urn:template:1", "T2", kind=model.ModellingKind.TEMPLATE)
        store.register_submodel("urn:asset:1", "urn:shell:1", first)

        with caplog.at_level(logging.INFO, logger="aas_lookup.services.store"):
            store.register_submodel("urn:asset:1", "urn:shell:1", second)

        assert store.submodel("urn:shell:1", "urn:template:1") is first
        assert "already registered" in caplog.text

    def test_duplicate_instance_is_rejected(self, store, nameplate):
        """Test that an INSTANCE clash leaves the first submodel in place."""
        store.register_submodel("urn:asset:1", "urn:shell:1", nameplate)
        clash = make_submodel("urn:submodel:1", "Clash")

        with pytest.raises(DuplicateInstanceSubmodelError) as exc_info:
            store.register_submodel("urn:asset:1", "urn:shell:1", clash)

        assert exc_info.value.submodel_id == "urn:submodel:1"
        assert store.submodel("urn:shell:1", "urn:submodel:1") is nameplate
        assert store.submodel("urn:asset:1", "urn:submodel:1") is nameplate

    def test_template_and_instance_clash_is_rejected(self, store):
        """Test that mixed kinds count as an instance duplicate."""
        template = make_submodel("urn:submodel:x", "X", kind=model.ModellingKind.TEMPLATE)
        instance = make_submodel("urn:submodel:x", "X")
        store.register_submodel("urn:asset:1", None, template)

        with pytest.raises(DuplicateInstanceSubmodelError):
            store.register_submodel("urn:asset:1", None, instance)

    def test_same_submodel_id_under_different_owners(self, store):
        """Test that submodel ids are scoped per owner."""
        a = make_submodel("urn:submodel:shared", "A")
        b = make_submodel("urn:submodel:shared", "B")
        store.register_submodel("urn:asset:a", "urn:shell:a", a)
        store.register_submodel("urn:asset:b", "urn:shell:b", b)

        assert store.submodel("urn:shell:a", "urn:submodel:shared") is a
        assert store.submodel("urn:shell:b", "urn:submodel:shared") is b


class TestEnvironmentRegistration:
    """Tests for register_environment() and load()."""

    def test_every_submodel_bound_to_every_shell(self, store, nameplate, nested):
        """Test the cross product of shells and submodels."""
        first = make_shell("urn:shell:a", "A", "urn:asset:a")
        second = make_shell("urn:shell:b", "B", "urn:asset:b")
        env = Environment([first, second], [nameplate, nested], AssetFormat.JSON)

        ids = store.register_environment(env)

        assert ids == ["urn:shell:a", "urn:shell:b"]
        for key in ("urn:shell:a", "urn:asset:a", "urn:shell:b", "urn:asset:b"):
            assert store.available_submodel_ids(key) == {"urn:submodel:1", "urn:submodel:nested"}

    def test_environment_is_all_or_nothing(self, store):
        """Test that a conflicting shell rolls back the whole environment."""
        store.register_shell(make_shell("urn:shell:taken", "Taken", "urn:asset:taken"))
        fresh = make_shell("urn:shell:fresh", "Fresh", "urn:asset:fresh")
        clash = make_shell("urn:shell:taken", "Clash", "urn:asset:clash")
        env = Environment([fresh, clash], [make_submodel()], AssetFormat.JSON)

        with pytest.raises(DuplicateShellError):
            store.register_environment(env)

        assert store.shell("urn:shell:fresh") is None
        assert store.available_submodel_ids("urn:shell:fresh") == set()
        assert list(store.visible_shell_ids()) == ["urn:shell:taken"]

    def test_environment_with_duplicate_submodels_is_rejected(self, store, shell):
        """Test that instance duplicates inside one environment are refused."""
        env = Environment(
            [shell],
            [make_submodel("urn:submodel:1", "A"), make_submodel("urn:submodel:1", "B")],
            AssetFormat.JSON,
        )

        with pytest.raises(DuplicateInstanceSubmodelError):
            store.register_environment(env)

        assert store.shell("urn:shell:1") is None

    def test_dangling_submodel_reference_is_logged(self, store, caplog):
        """Test that references to submodels outside the environment are reported."""
        shell = make_shell(submodel_ids=["urn:submodel:1", "urn:submodel:elsewhere"])
        env = Environment([shell], [make_submodel()], AssetFormat.JSON)

        with caplog.at_level(logging.WARNING, logger="aas_lookup.services.store"):
            store.register_environment(env)

        assert "urn:submodel:elsewhere" in caplog.text
        assert "urn:submodel:1 " not in caplog.text

    def test_load_json_round_trip(self, store, nameplate, nested):
        """Test that every loaded shell and submodel serializes like its input."""
        shell = make_shell(submodel_ids=["urn:submodel:1"])
        submodels = [nameplate, nested]

        ids = store.load(to_json_bytes(shell, *submodels))

        assert ids == ["urn:shell:1"]
        assert to_jsonable(store.shell("urn:shell:1")) == to_jsonable(shell)
        assert store.shell("urn:asset:1") is store.shell("urn:shell:1")
        for submodel in submodels:
            for owner in ("urn:shell:1", "urn:asset:1"):
                loaded = store.submodel(owner, submodel.id)
                assert loaded is not submodel
                assert to_jsonable(loaded) == to_jsonable(submodel)

    def test_load_garbage_raises_and_cleans_up(self, tmp_path):
        """Test that undecodable input registers nothing and keeps no file."""
        temp_dir = tmp_path / "retained"
        with AssetStore(temp_dir=temp_dir) as store:
            with pytest.raises(DecodeError):
                store.load(b"garbage")

            assert store.visible_shell_ids() == {}
        assert not temp_dir.exists() or list(temp_dir.iterdir()) == []

    def test_load_conflict_removes_retained_copy(self, tmp_path, shell):
        """Test that a rejected document does not leave its copy behind."""
        temp_dir = tmp_path / "retained"
        with AssetStore(temp_dir=temp_dir) as store:
            store.load(to_json_bytes(shell))
            assert len(list(temp_dir.iterdir())) == 1

            with pytest.raises(DuplicateShellError):
                store.load(to_json_bytes(shell))

            assert len(list(temp_dir.iterdir())) == 1

    def test_close_deletes_retained_copies(self, tmp_path, shell):
        """Test that closing the store removes the files it created."""
        temp_dir = tmp_path / "retained"
        store = AssetStore(temp_dir=temp_dir)
        store.load(to_json_bytes(shell))
        record = store.shell_record("urn:shell:1")
        assert record.source.exists()

        store.close()

        assert not record.source.exists()

    def test_load_file_keeps_file_as_source(self, store, tmp_path, shell, nameplate):
        """Test that files loaded from disk are used as their own source."""
        path = tmp_path / "env.json"
        path.write_bytes(to_json_bytes(shell, nameplate))

        store.load_file(path)
        store.close()

        assert store.shell_record("urn:shell:1").source == path
        assert path.exists()

    def test_load_hidden(self, store, shell):
        """Test that loaded documents can be registered hidden."""
        store.load(to_json_bytes(shell), hidden=True)

        assert store.visible_shell_ids() == {}
        assert store.shell_record("urn:shell:1").hidden


class TestQueries:
    """Tests for the derived queries."""

    def test_descriptor_fields(self, store):
        """Test that descriptors carry identification without content."""
        shell = make_shell("urn:shell:anon", "Anon", global_asset_id=None)
        store.register_shell(shell)

        descriptor = store.descriptors()[0]

        assert descriptor.id == "urn:shell:anon"
        assert descriptor.idShort == "Anon"
        assert descriptor.assetKind == "INSTANCE"
        assert descriptor.globalAssetId.startswith("autogenerated_")
        assert descriptor.specificAssetIds[0].name == "serialNumber"
        assert descriptor.specificAssetIds[0].value == "SN-0001"

    def test_submodel_references(self, store, shell):
        """Test listing the submodel references of a shell."""
        store.register_shell(shell)

        refs = store.submodel_references("urn:asset:1")

        assert {ref.key[0].value for ref in refs} == {"urn:submodel:1", "urn:submodel:nested"}
        assert store.submodel_references("urn:unknown") is None

    def test_submodel_element(self, store, shell, nested):
        """Test resolving an idShort path through the store."""
        store.register_shell(shell)
        store.register_submodel("urn:asset:1", "urn:shell:1", nested)

        element = store.submodel_element("urn:shell:1", "urn:submodel:nested", "a.b[1]")

        assert element.value == "second"
        assert store.submodel_element("urn:shell:1", "urn:submodel:missing", "a") is None

    def test_reference_chains(self, store, shell):
        """Test reference chains through the store."""
        motor = model.Entity(
            "motor", model.EntityType.SELF_MANAGED_ENTITY, global_asset_id="urn:motor:1"
        )
        bom = make_submodel("urn:submodel:bom", "BillOfMaterial", [motor])
        store.register_shell(shell)
        store.register_submodel("urn:asset:1", "urn:shell:1", bom)

        chains = store.reference_chains("urn:shell:1", "urn:submodel:bom")

        assert [(c.global_asset_id, c.path) for c in chains] == [("urn:motor:1", ("motor",))]
        assert store.reference_chains("urn:shell:1", "urn:submodel:missing") is None

    def test_blob_attachment_without_source(self, store, shell):
        """Test that inline blobs need no source package."""
        blob = model.Blob("Logo", "image/png", value=b"\x89PNG")
        store.register_shell(shell)
        store.register_submodel("urn:asset:1", "urn:shell:1", make_submodel(elements=[blob]))

        attachment = store.submodel_element_attachment("urn:shell:1", "urn:submodel:1", "Logo")

        assert attachment.data == b"\x89PNG"
        assert attachment.content_type == "image/png"

    def test_file_attachment_from_loaded_package(self, store):
        """Test reading a File element from a loaded AASX package."""
        shell = make_shell(submodel_ids=["urn:submodel:1"])
        manual = model.File("Manual", "application/pdf", value="/aasx/files/manual.pdf")
        documentation = make_submodel(elements=[manual])
        package = to_aasx_bytes(
            shell,
            documentation,
            files={"/aasx/files/manual.pdf": (b"%PDF-1.4 manual", "application/pdf")},
        )
        store.load(package, AssetFormat.AASX)

        attachment = store.submodel_element_attachment("urn:asset:1", "urn:submodel:1", "Manual")

        assert attachment.data == b"%PDF-1.4 manual"
        assert attachment.content_type == "application/pdf"

    def test_file_attachment_missing_entry(self, store, shell):
        """Test that a File without a package entry yields None."""
        manual = model.File("Manual", "application/pdf", value="/aasx/files/missing.pdf")
        store.load(to_json_bytes(shell, make_submodel(elements=[manual])))

        assert store.submodel_element_attachment("urn:shell:1", "urn:submodel:1", "Manual") is None

    def test_thumbnail(self, store, tmp_path):
        """Test reading the default thumbnail from the source package."""
        package = write_zip(tmp_path / "thumb.aasx", {"aasx/thumbnail.png": b"\x89PNG thumb"})
        shell = make_shell(thumbnail=model.Resource("/aasx/thumbnail.png", "image/png"))
        store.register_shell(shell, source=package)

        thumbnail = store.thumbnail("urn:asset:1")

        assert thumbnail.data == b"\x89PNG thumb"
        assert thumbnail.content_type == "image/png"

    def test_thumbnail_absent(self, store, shell):
        """Test shells without thumbnail and unknown shells."""
        store.register_shell(shell)

        assert store.thumbnail("urn:shell:1") is None
        assert store.thumbnail("urn:unknown") is None

    def test_carbon_footprints(self, store, shell, nameplate):
        """Test that only CarbonFootprint submodels are reported."""
        footprint = make_submodel(
            "urn:submodel:pcf",
            "CarbonFootprint",
            [
                model.ReferenceElement("Supplier", value=global_ref("urn:asset:supplier")),
                string_property("PCFCO2eq", "12.5"),
            ],
        )
        store.register_shell(shell)
        store.register_submodel("urn:asset:1", "urn:shell:1", nameplate)
        store.register_submodel("urn:asset:1", "urn:shell:1", footprint)

        footprints = store.carbon_footprints("urn:shell:1")

        assert len(footprints) == 1
        assert footprints[0].footprint is footprint
        assert footprints[0].asset_id == "urn:asset:1"
        assert [c.global_asset_id for c in footprints[0].contains] == ["urn:asset:supplier"]
        assert store.carbon_footprints("urn:unknown") is None


class TestSnapshotConsistency:
    """Tests for the published index across many and concurrent writes."""

    def test_early_submodels_survive_many_registrations(self, store, nameplate):
        """Test that later registrations leave older submodel maps reachable."""
        first = make_shell("urn:shell:0", "S0", "urn:asset:0")
        store.register_environment(Environment([first], [nameplate], AssetFormat.JSON))

        for i in range(1, sys.getrecursionlimit() + 100):
            shell = make_shell(f"urn:shell:{i}", f"S{i}", f"urn:asset:{i}")
            store.register_environment(Environment([shell], [], AssetFormat.JSON))

        assert store.submodel("urn:shell:0", "urn:submodel:1") is nameplate
        assert store.has_submodel("urn:asset:0", "urn:submodel:1")
        assert store.available_submodel_ids("urn:shell:0") == {"urn:submodel:1"}
        assert store.carbon_footprints("urn:shell:0") == []

        late = make_submodel("urn:submodel:2", "Late")
        store.register_submodel("urn:asset:0", "urn:shell:0", late)
        assert store.available_submodel_ids("urn:asset:0") == {"urn:submodel:1", "urn:submodel:2"}

    def test_readers_see_both_keys_of_each_shell(self, store):
        """Test that a registered shell is never visible under one key only."""
        environments = []
        for i in range(300):
            shell = make_shell(
                f"urn:shell:{i}",
                f"S{i}",
                global_asset_id=None if i % 2 else f"urn:asset:{i}",
            )
            submodel = make_submodel(f"urn:submodel:{i}", "Data")
            environments.append(Environment([shell], [submodel], AssetFormat.JSON))

        done = threading.Event()
        inconsistent: list[str] = []

        def write():
            try:
                for env in environments:
                    store.register_environment(env)
            finally:
                done.set()

        def read():
            while not done.is_set():
                for shell_id in store.visible_shell_ids():
                    record = store.shell_record(shell_id)
                    if (
                        record is None
                        or store.shell(shell_id) is not record.shell
                        or store.shell(record.global_asset_id) is not record.shell
                        or not store.available_submodel_ids(shell_id)
                        or store.available_submodel_ids(shell_id)
                        != store.available_submodel_ids(record.global_asset_id)
                    ):
                        inconsistent.append(shell_id)

        readers = [threading.Thread(target=read) for _ in range(3)]
        writer = threading.Thread(target=write)
        for thread in readers:
            thread.start()
        writer.start()
        writer.join()
        for thread in readers:
            thread.join()

        assert inconsistent == []
        assert len(store.visible_shell_ids()) == 300
