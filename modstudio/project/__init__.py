"""Project Model - Editor project document and the text artifacts derived from it"""
from .models import (
    ProjectData, ProjectMetadata, ProjectSettings, ModSettings, LocalizationEntry,
    ScriptFile, WeaponFile, UIFile, UIFileType, LocalizationFile, SUPPORTED_LANGUAGES,
)
from .project_manager import (
    generate_code_metadata, embed_project_in_code, extract_project_from_code,
    serialize_localization_file,
)

__all__ = [
    "ProjectData",
    "ProjectMetadata",
    "ProjectSettings",
    "ModSettings",
    "LocalizationEntry",
    "ScriptFile",
    "WeaponFile",
    "UIFile",
    "UIFileType",
    "LocalizationFile",
    "SUPPORTED_LANGUAGES",
    "generate_code_metadata",
    "embed_project_in_code",
    "extract_project_from_code",
    "serialize_localization_file",
]
