"""
Project Models - the editor's project document as the compiler sees it.
Script files hold node graphs; weapon and UI files are opaque text passed
through to the output tree; localization files are token tables per language.
The editor saves camelCase JSON, which every model here accepts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from modstudio.config.settings import settings
from modstudio.compiler.graph import NodeInstance, Connection

SUPPORTED_LANGUAGES = [
    "english",
    "french",
    "german",
    "italian",
    "japanese",
    "korean",
    "polish",
    "portuguese",
    "russian",
    "schinese",  # Simplified Chinese
    "spanish",
    "tchinese",  # Traditional Chinese
    "mspanish",  # Mexican Spanish
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _EditorModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectMetadata(_EditorModel):
    name: str = "Untitled Project"
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    created_at: str = Field(default_factory=_now)
    modified_at: str = Field(default_factory=_now)
    editor_version: str = Field(default_factory=lambda: settings.editor_version)


class LocalizationEntry(_EditorModel):
    """A manually declared localization path in mod.vdf."""
    path: str
    enabled: bool = True


class ModSettings(_EditorModel):
    """Mod export settings written to mod.vdf."""
    mod_id: str = "my_mod"
    mod_name: str = "My Mod"
    mod_description: str = "A custom mod created with Mod Studio"
    mod_version: str = "1.0.0"
    mod_author: str = "Unknown"
    localization_files: List[LocalizationEntry] = Field(default_factory=list)


class ProjectSettings(_EditorModel):
    """Editor state plus mod export settings. Only `mod` matters to the compiler."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    canvas_position: Dict[str, float] = Field(default_factory=lambda: {"x": 0, "y": 0})
    canvas_zoom: float = 1.0
    active_script_file: Optional[str] = None
    folders: List[str] = Field(default_factory=list)
    mod: Optional[ModSettings] = None


class ScriptFile(_EditorModel):
    id: str
    name: str
    nodes: List[NodeInstance] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now)
    modified_at: str = Field(default_factory=_now)


class WeaponFile(_EditorModel):
    """KeyValue weapon definition, written verbatim to scripts/weapons/."""
    id: str
    name: str
    base_weapon: Optional[str] = None
    content: str = ""
    created_at: str = Field(default_factory=_now)
    modified_at: str = Field(default_factory=_now)


class UIFileType(str, Enum):
    RES = "res"
    MENU = "menu"


class UIFile(_EditorModel):
    """VGUI layout (.res) or menu (.menu) file."""
    id: str
    name: str
    file_type: UIFileType = UIFileType.RES
    content: str = ""
    created_at: str = Field(default_factory=_now)
    modified_at: str = Field(default_factory=_now)


class LocalizationFile(_EditorModel):
    """Token table for one language. `name` is the base name shared across languages."""
    id: str
    name: str
    language: str = "english"
    tokens: Dict[str, str] = Field(default_factory=dict)
    created_at: str = Field(default_factory=_now)
    modified_at: str = Field(default_factory=_now)

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language '{v}' not in {SUPPORTED_LANGUAGES}")
        return v

    @property
    def base_name(self) -> str:
        return self.name[:-4] if self.name.endswith(".txt") else self.name


class ProjectData(_EditorModel):
    metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    script_files: List[ScriptFile] = Field(default_factory=list)
    weapon_files: List[WeaponFile] = Field(default_factory=list)
    ui_files: List[UIFile] = Field(default_factory=list)
    localization_files: List[LocalizationFile] = Field(default_factory=list)

    # Single-graph projects from older editor builds
    nodes: Optional[List[NodeInstance]] = None
    connections: Optional[List[Connection]] = None

    def is_empty(self) -> bool:
        return not (
            self.script_files or self.weapon_files or self.ui_files
            or self.localization_files or self.nodes
        )


class SerializedProject(_EditorModel):
    """Versioned envelope used when a project is embedded in generated code."""
    version: str = Field(default_factory=lambda: settings.project_format_version)
    data: ProjectData
