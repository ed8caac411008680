"""
Backend services for the AAS lookup service.

- Codec: format detection and deserialization
- Store: append-only shell/submodel repository with lookups
- Fetcher: on-demand loading of external environments
"""

from aas_lookup.services.codec import AssetFormat, Environment, decode
from aas_lookup.services.fetcher import ExternalShellFetcher
from aas_lookup.services.store import AssetStore, ShellRecord

__all__ = [
    "AssetFormat",
    "Environment",
    "decode",
    "AssetStore",
    "ShellRecord",
    "ExternalShellFetcher",
]
