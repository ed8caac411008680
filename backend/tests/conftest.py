"""
Shared pytest fixtures.
"""

import pytest

from aas_lookup.config import get_settings
from aas_lookup.services.store import AssetStore

from factories import make_shell, make_submodel, nested_submodel, string_property


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are re-read for every test so monkeypatched env vars apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path):
    with AssetStore(temp_dir=tmp_path / "retained") as asset_store:
        yield asset_store


@pytest.fixture
def shell():
    return make_shell(submodel_ids=["urn:submodel:1", "urn:submodel:nested"])


@pytest.fixture
def nameplate():
    return make_submodel(elements=[string_property("ManufacturerName", "ACME")])


@pytest.fixture
def nested():
    return nested_submodel()
