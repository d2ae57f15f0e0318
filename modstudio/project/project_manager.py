"""
Project Manager - text artifacts derived from a project document:
the generated-code header, the embedded re-import block, and
localization token files.
"""

import base64
import logging
from typing import Optional, List

from modstudio.config.settings import settings
from modstudio.project.models import (
    ProjectData, ProjectMetadata, ScriptFile, LocalizationFile, SerializedProject,
)

logger = logging.getLogger(__name__)

HEADER_RULE = "// ========================================"
PROJECT_DATA_BEGIN = "// @modstudio-project-data-begin"
PROJECT_DATA_END = "// @modstudio-project-data-end"
LEGACY_SCRIPT_NAME = "main"


def generate_code_metadata(metadata: ProjectMetadata, include_graph: bool = False) -> str:
    """
    Comment header prepended to every generated script.
    Stamped with the project's modified time, not the wall clock, so an
    unchanged project always produces the same bytes.
    """
    lines = [
        HEADER_RULE,
        "// Mod Studio - Generated Code",
        HEADER_RULE,
        f"// Project: {metadata.name}",
        f"// Version: {metadata.version}",
    ]
    if metadata.author:
        lines.append(f"// Author: {metadata.author}")
    if metadata.description:
        lines.append(f"// Description: {metadata.description}")
    lines += [
        f"// Generated: {metadata.modified_at}",
        f"// Editor Version: {metadata.editor_version}",
        HEADER_RULE,
    ]
    if include_graph:
        lines += [
            "//",
            "// WARNING: Do not manually edit the metadata below.",
            "// It is used to restore the visual script in the editor.",
            "//",
        ]
    return "\n".join(lines) + "\n\n"


def embed_project_in_code(code: str, project: ProjectData, chunk_size: Optional[int] = None) -> str:
    """Append the project as base64 JSON split over comment lines."""
    chunk_size = chunk_size or settings.project_data_chunk_size
    envelope = SerializedProject(data=project)
    encoded = base64.b64encode(envelope.model_dump_json(by_alias=True).encode("utf-8")).decode("ascii")
    chunks = [encoded[i:i + chunk_size] for i in range(0, len(encoded), chunk_size)]
    block = [PROJECT_DATA_BEGIN, *(f"// {chunk}" for chunk in chunks), PROJECT_DATA_END, ""]
    return code + "\n\n" + "\n".join(block)


def extract_project_from_code(code: str) -> Optional[ProjectData]:
    """Recover an embedded project. Returns None when absent or unreadable."""
    begin = code.find(PROJECT_DATA_BEGIN)
    end = code.find(PROJECT_DATA_END)
    if begin == -1 or end == -1 or end < begin:
        return None

    section = code[begin + len(PROJECT_DATA_BEGIN):end]
    parts = []
    for line in section.splitlines():
        line = line.strip()
        if line.startswith("//"):
            chunk = line[2:].strip()
            if chunk:
                parts.append(chunk)

    try:
        decoded = base64.b64decode("".join(parts), validate=True)
        return SerializedProject.model_validate_json(decoded).data
    except ValueError as e:
        logger.error(f"[PROJECT] Failed to extract project from code: {e}")
        return None


def _escape_token(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def serialize_localization_file(file: LocalizationFile) -> str:
    """Source-engine "lang" block. Tokens keep their insertion order."""
    lines = [
        '"lang"',
        "{",
        f'\t"Language" "{file.language}"',
        '\t"Tokens"',
        "\t{",
    ]
    for key, value in file.tokens.items():
        lines.append(f'\t\t"{_escape_token(key)}" "{_escape_token(value)}"')
    lines += ["\t}", "}", ""]
    return "\n".join(lines)


def localization_file_name(file: LocalizationFile) -> str:
    return f"{file.base_name}_{file.language}.txt"


def project_script_files(project: ProjectData) -> List[ScriptFile]:
    """Script files to compile, promoting a legacy single graph to one file."""
    if project.script_files:
        return list(project.script_files)
    if project.nodes:
        return [ScriptFile(
            id=LEGACY_SCRIPT_NAME,
            name=LEGACY_SCRIPT_NAME,
            nodes=project.nodes,
            connections=project.connections or [],
        )]
    return []
