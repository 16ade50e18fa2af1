"""Kennel Pedigree - ancestry records for a dog breeding operation.

Encodes lineage positions as binary path strings, rebuilds ancestor trees
from flat relationship edges, and imports pedigrees from the external
breed registry.
"""

__version__ = "0.1.0"


# Lazy imports to avoid pulling httpx/bs4 in for path-only callers
def __getattr__(name: str):
    if name == "pedigree":
        from kennel_pedigree import pedigree
        return pedigree
    if name == "registry":
        from kennel_pedigree import registry
        return registry
    if name == "store":
        from kennel_pedigree import store
        return store
    if name == "sync":
        from kennel_pedigree import sync
        return sync
    if name == "models":
        from kennel_pedigree import models
        return models
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
