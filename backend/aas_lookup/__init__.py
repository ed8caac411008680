# AAS Lookup Service Backend
"""
In-memory Asset Administration Shell lookup service.

This package loads AAS environments (JSON, XML and AASX packages), indexes
their shells and submodels in memory and answers identity and idShort-path
based lookups. It uses the Eclipse BaSyx Python SDK for the AAS metamodel
and its serialization formats.

Architecture:
- Codec Service: format detection and deserialization into environments
- Asset Store: multi-key, append-only shell/submodel repository
- Resolver / Chains / Attachments: read-only queries over stored submodels
- Fetcher Service: on-demand download of externally hosted environments
"""

__version__ = "1.0.0"
