"""Packaging - Mod loader manifests (scripts.rson, mod.vdf)"""
from .manifest import (
    generate_scripts_rson, generate_mod_vdf, localization_manifest_paths,
    group_scripts_by_clause, WHEN_CLAUSE_ORDER,
)

__all__ = [
    "generate_scripts_rson",
    "generate_mod_vdf",
    "localization_manifest_paths",
    "group_scripts_by_clause",
    "WHEN_CLAUSE_ORDER",
]
