"""
Manifest Builder - mod loader manifests.
scripts.rson registers each script under the VM clause it runs in;
mod.vdf describes the mod and the localization files it ships.
Both are pure functions of the per-file contexts and the mod settings.
"""

from typing import Dict, List, Iterable, Tuple

from modstudio.compiler.context import ScriptContext
from modstudio.project.models import ModSettings, LocalizationFile

# Known clauses first, in this order; anything else follows in first-seen order
WHEN_CLAUSE_ORDER = [
    "SERVER || CLIENT || UI",
    "SERVER || CLIENT",
    "SERVER",
    "CLIENT",
    "UI",
]

VDF_INDENT = " " * 8
LOCALIZATION_DIR = "resource/localization"


def group_scripts_by_clause(entries: Iterable[Tuple[str, ScriptContext]]) -> List[Tuple[str, List[str]]]:
    groups: Dict[str, List[str]] = {}
    for script_path, context in entries:
        groups.setdefault(context.when_clause(), []).append(script_path)

    def rank(item: Tuple[int, str]) -> Tuple[int, int]:
        seen, clause = item
        if clause in WHEN_CLAUSE_ORDER:
            return (WHEN_CLAUSE_ORDER.index(clause), seen)
        return (len(WHEN_CLAUSE_ORDER), seen)

    ordered = sorted(enumerate(groups), key=rank)
    return [(clause, groups[clause]) for _, clause in ordered]


def generate_scripts_rson(entries: Iterable[Tuple[str, ScriptContext]]) -> str:
    """
    Build scripts.rson from (script path, context) pairs.

    When: "SERVER"
    Scripts:
    [
        my_script.nut
    ]
    """
    lines: List[str] = []
    for clause, scripts in group_scripts_by_clause(entries):
        lines += [f'When: "{clause}"', "Scripts:", "["]
        lines += [f"\t{path}" for path in scripts]
        lines += ["]", ""]
    return "\n".join(lines)


def localization_manifest_paths(
    mod_settings: ModSettings,
    localization_files: Iterable[LocalizationFile] = (),
) -> List[str]:
    """
    One %language% pattern per distinct base name, then the enabled manual
    entries from the mod settings that are not already listed.
    """
    paths: List[str] = []
    for file in localization_files:
        path = f"{LOCALIZATION_DIR}/{file.base_name}_%language%.txt"
        if path not in paths:
            paths.append(path)
    for entry in mod_settings.localization_files:
        if entry.enabled and entry.path not in paths:
            paths.append(entry.path)
    return paths


def generate_mod_vdf(
    mod_settings: ModSettings,
    localization_files: Iterable[LocalizationFile] = (),
) -> str:
    lines = [
        '"mod"',
        "{",
        f'{VDF_INDENT}"name" "{mod_settings.mod_name}"',
        f'{VDF_INDENT}"id" "{mod_settings.mod_id}"',
        f'{VDF_INDENT}"description" "{mod_settings.mod_description}"',
        f'{VDF_INDENT}"version" "{mod_settings.mod_version}"',
        f'{VDF_INDENT}"author" "{mod_settings.mod_author}"',
    ]

    paths = localization_manifest_paths(mod_settings, localization_files)
    if paths:
        lines += ["", f'{VDF_INDENT}"LocalizationFiles"', f"{VDF_INDENT}{{"]
        lines += [f'{VDF_INDENT * 2}"{path}" "1"' for path in paths]
        lines.append(f"{VDF_INDENT}}}")

    lines.append("}")
    return "\n".join(lines)
