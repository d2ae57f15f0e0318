"""
Mod Compiler - compiles a whole project into a mod folder.

    <output>/<Author>-<Name>/
      mod.vdf
      scripts/vscripts/<script>.nut, scripts.rson
      scripts/weapons/<weapon>.txt
      resource/ui/<file>.res, resource/ui/menus/<file>.menu
      resource/localization/<base>_<language>.txt

Every script is generated in memory before the output tree is touched, so a
broken graph never costs the previous build. Filesystem steps then run one at
a time and the first failure stops the build.
"""

import re
import time
import logging
from typing import Optional, Dict, List, Tuple
from pydantic import BaseModel, Field

from modstudio.config.settings import settings
from modstudio.compiler.catalog import NodeCatalog
from modstudio.compiler.context import ScriptContext
from modstudio.compiler.errors import PreconditionError
from modstudio.compiler.generator import generate_script
from modstudio.orchestrator.filesystem import FileSystem
from modstudio.packaging.manifest import generate_scripts_rson, generate_mod_vdf
from modstudio.project.models import ProjectData, ModSettings, UIFileType
from modstudio.project.project_manager import (
    generate_code_metadata, embed_project_in_code, serialize_localization_file,
    localization_file_name, project_script_files,
)

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = (".nut", ".gnut")


class CompileOptions(BaseModel):
    output_dir: Optional[str] = Field(default_factory=lambda: settings.default_output_dir)
    include_project_data: bool = Field(default_factory=lambda: settings.embed_project_data)


class CompileResult(BaseModel):
    success: bool = False
    output_path: Optional[str] = None
    error: Optional[str] = None
    failed_path: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    files_created: List[str] = Field(default_factory=list)
    script_contexts: Dict[str, str] = Field(default_factory=dict)  # script path -> When clause
    compilation_time_ms: float = 0.0


class GeneratedScript(BaseModel):
    path: str  # relative to scripts/vscripts
    code: str
    context: ScriptContext


class BuildStepError(Exception):
    """A filesystem step failed. `path` is the artifact that was being produced."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class ModLayout:
    """Output paths for one mod folder."""

    def __init__(self, output_dir: str, mod_settings: ModSettings):
        self.folder_name = mod_folder_name(mod_settings)
        self.mod_dir = f"{output_dir.rstrip('/')}/{self.folder_name}"
        self.scripts_dir = f"{self.mod_dir}/scripts"
        self.vscripts_dir = f"{self.scripts_dir}/vscripts"
        self.weapons_dir = f"{self.scripts_dir}/weapons"
        self.resource_dir = f"{self.mod_dir}/resource"
        self.ui_dir = f"{self.resource_dir}/ui"
        self.menus_dir = f"{self.ui_dir}/menus"
        self.localization_dir = f"{self.resource_dir}/localization"


def mod_folder_name(mod_settings: ModSettings) -> str:
    return re.sub(r"\s+", "", f"{mod_settings.mod_author}-{mod_settings.mod_name}")


def script_file_name(name: str) -> str:
    if name.endswith(SCRIPT_EXTENSIONS):
        return name
    return f"{name}{settings.script_extension}"


def with_extension(name: str, extension: str) -> str:
    return name if name.endswith(extension) else f"{name}{extension}"


class ModCompiler:
    """
    Drives one project compile through an injected FileSystem.
    Never raises: every outcome comes back as a CompileResult.
    """

    def __init__(self, filesystem: FileSystem, node_catalog: Optional[NodeCatalog] = None):
        self.fs = filesystem
        self.node_catalog = node_catalog

    async def compile(self, project: ProjectData, options: Optional[CompileOptions] = None) -> CompileResult:
        options = options or CompileOptions()
        start_time = time.time()
        result = CompileResult()

        try:
            mod_settings = self._check_preconditions(project)
            output_dir = options.output_dir or await self.fs.select_directory()
            if not output_dir:
                raise PreconditionError("No output directory selected", artifact="output directory")

            scripts = self._generate_scripts(project, mod_settings, options, result)
            if result.errors:
                result.error = result.errors[0]
                logger.warning(f"[COMPILE] {len(result.errors)} script(s) failed to compile, nothing written")
                return self._finish(result, start_time)

            layout = ModLayout(output_dir, mod_settings)
            result.output_path = layout.mod_dir
            logger.info(f"[COMPILE] Building '{mod_settings.mod_id}' into {layout.mod_dir}")
            await self._build(project, mod_settings, layout, scripts, result)
            result.success = True
            logger.info(f"[COMPILE] Wrote {len(result.files_created)} files to {layout.mod_dir}")

        except PreconditionError as e:
            result.error = str(e)
            result.failed_path = e.artifact or None
            logger.warning(f"[COMPILE] Precondition failed: {e}")
        except BuildStepError as e:
            result.error = str(e)
            result.failed_path = e.path
            logger.error(f"[COMPILE] {e}")
        except Exception as e:
            result.error = f"Unexpected error during compilation: {e}"
            logger.exception("[COMPILE] Unexpected error")

        return self._finish(result, start_time)

    # ── Preparation ───────────────────────────────────────────────────

    def _check_preconditions(self, project: ProjectData) -> ModSettings:
        mod_settings = project.settings.mod or ModSettings()
        for field, label in (
            ("mod_id", "mod id"),
            ("mod_name", "mod name"),
            ("mod_author", "mod author"),
        ):
            if not getattr(mod_settings, field).strip():
                raise PreconditionError(f"Mod settings are missing the {label}", artifact="mod.vdf")
        if project.is_empty():
            raise PreconditionError("Project has no files to compile", artifact="project")
        return mod_settings

    def _generate_scripts(
        self,
        project: ProjectData,
        mod_settings: ModSettings,
        options: CompileOptions,
        result: CompileResult,
    ) -> List[GeneratedScript]:
        header = generate_code_metadata(project.metadata, include_graph=options.include_project_data)
        scripts = []
        for script_file in project_script_files(project):
            path = script_file_name(script_file.name)
            compilation = generate_script(
                script_file.nodes, script_file.connections, mod_settings.mod_id, self.node_catalog,
            )
            if not compilation.success:
                for error in compilation.errors:
                    result.errors.append(f"Failed to compile {path}: {error}")
                continue

            code = header + compilation.code
            if options.include_project_data:
                code = embed_project_in_code(code, project)
            scripts.append(GeneratedScript(path=path, code=code, context=compilation.context))
            result.script_contexts[path] = compilation.context.when_clause()
        return scripts

    # ── Output tree ───────────────────────────────────────────────────

    async def _build(
        self,
        project: ProjectData,
        mod_settings: ModSettings,
        layout: ModLayout,
        scripts: List[GeneratedScript],
        result: CompileResult,
    ) -> None:
        await self._step(self.fs.delete_directory(layout.mod_dir), layout.mod_dir, "delete directory")

        directories = [layout.mod_dir, layout.scripts_dir, layout.vscripts_dir]
        if project.weapon_files:
            directories.append(layout.weapons_dir)
        if project.ui_files:
            directories += [layout.resource_dir, layout.ui_dir]
            if any(f.file_type == UIFileType.MENU for f in project.ui_files):
                directories.append(layout.menus_dir)
        if project.localization_files:
            if layout.resource_dir not in directories:
                directories.append(layout.resource_dir)
            directories.append(layout.localization_dir)
        for directory in directories:
            await self._mkdir(directory)

        for script in scripts:
            await self._write(layout.vscripts_dir, script.path, script.code, result)

        for weapon in project.weapon_files:
            await self._write(layout.weapons_dir, with_extension(weapon.name, ".txt"), weapon.content, result)

        for ui_file in project.ui_files:
            is_menu = ui_file.file_type == UIFileType.MENU
            target_dir = layout.menus_dir if is_menu else layout.ui_dir
            name = with_extension(ui_file.name, ".menu" if is_menu else ".res")
            await self._write(target_dir, name, ui_file.content, result)

        for loc_file in project.localization_files:
            await self._write(
                layout.localization_dir, localization_file_name(loc_file),
                serialize_localization_file(loc_file), result,
            )

        rson_entries: List[Tuple[str, ScriptContext]] = [(s.path, s.context) for s in scripts]
        await self._write(layout.vscripts_dir, "scripts.rson", generate_scripts_rson(rson_entries), result)
        await self._write(
            layout.mod_dir, "mod.vdf",
            generate_mod_vdf(mod_settings, project.localization_files), result,
        )

    async def _step(self, operation, path: str, action: str) -> None:
        try:
            await operation
        except Exception as e:
            raise BuildStepError(f"Failed to {action} {path}: {e}", path) from e

    async def _mkdir(self, path: str) -> None:
        await self._step(self.fs.create_directory(path), path, "create directory")

    async def _write(self, base_dir: str, name: str, content: str, result: CompileResult) -> None:
        path = f"{base_dir}/{name}"
        parent = path.rsplit("/", 1)[0]
        if parent != base_dir:
            await self._mkdir(parent)

        try:
            outcome = await self.fs.write_file(path, content)
        except Exception as e:
            raise BuildStepError(f"Failed to write {name}: {e}", path) from e
        if not outcome.success:
            raise BuildStepError(f"Failed to write {name}: {outcome.error or 'unknown error'}", path)

        result.files_created.append(path)
        logger.debug(f"[COMPILE] Wrote {path}")

    def _finish(self, result: CompileResult, start_time: float) -> CompileResult:
        result.compilation_time_ms = round((time.time() - start_time) * 1000, 2)
        return result


async def compile_project(
    project: ProjectData,
    filesystem: FileSystem,
    options: Optional[CompileOptions] = None,
) -> CompileResult:
    return await ModCompiler(filesystem).compile(project, options)
