"""
Tests for the mod compiler: output tree, write order, fail-fast I/O, preconditions.
Run: pytest tests/test_orchestrator.py -v
"""
import pytest
from modstudio.compiler.catalog import catalog
from modstudio.compiler.graph import Connection, Endpoint
from modstudio.orchestrator.filesystem import LocalFileSystem
from modstudio.orchestrator.orchestrator import (
    ModCompiler, CompileOptions, compile_project, mod_folder_name, script_file_name,
)
from modstudio.project.models import (
    ProjectData, ProjectMetadata, ProjectSettings, ModSettings, ScriptFile,
    WeaponFile, UIFile, UIFileType, LocalizationFile,
)
from modstudio.project.project_manager import extract_project_from_code, PROJECT_DATA_BEGIN

STAMP = "2024-02-01T12:00:00+00:00"
MOD_DIR = "/out/JaneDoe-ArenaMod"
VSCRIPTS = f"{MOD_DIR}/scripts/vscripts"


def exec_link(conn_id: str, src: str, dst: str) -> Connection:
    return Connection(
        id=conn_id,
        source=Endpoint(node_id=src, port_id="output_0"),
        target=Endpoint(node_id=dst, port_id="input_0"),
    )


def server_script(name: str, message: str = "hello") -> ScriptFile:
    return ScriptFile(
        id=name,
        name=name,
        nodes=[
            catalog.instantiate("init-server", "init"),
            catalog.instantiate("print", "p1", data={"message": message}),
        ],
        connections=[exec_link("c1", "init", "p1")],
    )


def broken_script(name: str) -> ScriptFile:
    return ScriptFile(
        id=name,
        name=name,
        nodes=[catalog.instantiate("print", "a"), catalog.instantiate("print", "b")],
        connections=[exec_link("c1", "a", "b"), exec_link("c2", "b", "a")],
    )


def make_project(**files) -> ProjectData:
    return ProjectData(
        metadata=ProjectMetadata(name="Arena", created_at=STAMP, modified_at=STAMP, editor_version="0.1.0"),
        settings=ProjectSettings(mod=ModSettings(mod_id="arena", mod_name="Arena Mod", mod_author="Jane Doe")),
        **files,
    )


def writes(fs) -> list:
    return [path for op, path in fs.calls if op == "write"]


OPTIONS = CompileOptions(output_dir="/out", include_project_data=False)


# ══════════════════════════════════════════════════════════════════
# OUTPUT TREE
# ══════════════════════════════════════════════════════════════════


class TestOutputTree:

    @pytest.mark.asyncio
    async def test_full_project(self, memory_fs):
        project = make_project(
            script_files=[server_script("arena_init"), server_script("extra.gnut")],
            weapon_files=[WeaponFile(id="w1", name="mp_weapon_custom", content="WeaponData {}")],
            ui_files=[
                UIFile(id="u1", name="hud", file_type=UIFileType.RES, content="hud"),
                UIFile(id="u2", name="custom.menu", file_type=UIFileType.MENU, content="menu"),
            ],
            localization_files=[
                LocalizationFile(id="l1", name="strings", language="english", tokens={"A": "a"}),
                LocalizationFile(id="l2", name="strings", language="french", tokens={"A": "à"}),
            ],
        )
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)

        assert result.success is True, result.error
        assert result.output_path == MOD_DIR
        assert result.files_created == [
            f"{VSCRIPTS}/arena_init.nut",
            f"{VSCRIPTS}/extra.gnut",
            f"{MOD_DIR}/scripts/weapons/mp_weapon_custom.txt",
            f"{MOD_DIR}/resource/ui/hud.res",
            f"{MOD_DIR}/resource/ui/menus/custom.menu",
            f"{MOD_DIR}/resource/localization/strings_english.txt",
            f"{MOD_DIR}/resource/localization/strings_french.txt",
            f"{VSCRIPTS}/scripts.rson",
            f"{MOD_DIR}/mod.vdf",
        ]
        assert memory_fs.calls[0] == ("delete", MOD_DIR)
        assert memory_fs.files[f"{MOD_DIR}/scripts/weapons/mp_weapon_custom.txt"] == "WeaponData {}"
        assert memory_fs.files[f"{MOD_DIR}/resource/ui/menus/custom.menu"] == "menu"

        vdf = memory_fs.files[f"{MOD_DIR}/mod.vdf"]
        assert vdf.count("strings_%language%.txt") == 1
        assert '"author" "Jane Doe"' in vdf

    @pytest.mark.asyncio
    async def test_script_content_and_contexts(self, memory_fs):
        project = make_project(script_files=[server_script("arena_init")])
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)

        code = memory_fs.files[f"{VSCRIPTS}/arena_init.nut"]
        assert code.startswith("// ========================================\n// Mod Studio - Generated Code")
        assert "// Generated: 2024-02-01T12:00:00+00:00" in code
        assert "void function Arena_ServerInit()" in code
        assert '    print("hello")' in code
        assert result.script_contexts == {"arena_init.nut": "SERVER"}
        assert memory_fs.files[f"{VSCRIPTS}/scripts.rson"] == 'When: "SERVER"\nScripts:\n[\n\tarena_init.nut\n]\n'

    @pytest.mark.asyncio
    async def test_only_needed_directories(self, memory_fs):
        project = make_project(script_files=[server_script("main")])
        await ModCompiler(memory_fs).compile(project, OPTIONS)
        assert memory_fs.directories == {MOD_DIR, f"{MOD_DIR}/scripts", VSCRIPTS}

    @pytest.mark.asyncio
    async def test_localization_without_ui_creates_resource_dir(self, memory_fs):
        project = make_project(localization_files=[LocalizationFile(id="l1", name="strings")])
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)
        assert result.success is True
        mkdirs = [path for op, path in memory_fs.calls if op == "mkdir"]
        assert mkdirs.index(f"{MOD_DIR}/resource") < mkdirs.index(f"{MOD_DIR}/resource/localization")
        assert f"{MOD_DIR}/resource/ui" not in mkdirs

    @pytest.mark.asyncio
    async def test_nested_script_path(self, memory_fs):
        project = make_project(script_files=[server_script("weapons/logic/fire")])
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)
        assert f"{VSCRIPTS}/weapons/logic/fire.nut" in result.files_created
        assert ("mkdir", f"{VSCRIPTS}/weapons/logic") in memory_fs.calls
        assert "\tweapons/logic/fire.nut" in memory_fs.files[f"{VSCRIPTS}/scripts.rson"]

    @pytest.mark.asyncio
    async def test_embedded_project_data(self, memory_fs):
        project = make_project(script_files=[server_script("main")])
        options = CompileOptions(output_dir="/out", include_project_data=True)
        await ModCompiler(memory_fs).compile(project, options)
        code = memory_fs.files[f"{VSCRIPTS}/main.nut"]
        assert PROJECT_DATA_BEGIN in code
        assert "Do not manually edit" in code
        restored = extract_project_from_code(code)
        assert restored.metadata.name == "Arena"
        assert restored.script_files[0].name == "main"

    @pytest.mark.asyncio
    async def test_output_dir_from_picker(self, make_fs):
        fs = make_fs(selected="/picked")
        project = make_project(script_files=[server_script("main")])
        result = await ModCompiler(fs).compile(project, CompileOptions(output_dir=None))
        assert result.output_path == "/picked/JaneDoe-ArenaMod"
        assert fs.calls[0] == ("select", None)

    @pytest.mark.asyncio
    async def test_compile_project_helper(self, memory_fs):
        result = await compile_project(make_project(script_files=[server_script("main")]), memory_fs, OPTIONS)
        assert result.success is True


# ══════════════════════════════════════════════════════════════════
# IDEMPOTENCE
# ══════════════════════════════════════════════════════════════════


class TestIdempotence:

    @pytest.mark.asyncio
    async def test_recompile_yields_identical_tree(self, memory_fs):
        project = make_project(
            script_files=[server_script("main")],
            localization_files=[LocalizationFile(id="l1", name="strings", tokens={"A": "a"})],
        )
        compiler = ModCompiler(memory_fs)
        await compiler.compile(project, OPTIONS)
        first = dict(memory_fs.files)
        await compiler.compile(project, OPTIONS)
        assert memory_fs.files == first

    @pytest.mark.asyncio
    async def test_stale_output_removed(self, memory_fs):
        memory_fs.files[f"{VSCRIPTS}/old_script.nut"] = "stale"
        memory_fs.files["/out/other-mod/keep.txt"] = "keep"
        await ModCompiler(memory_fs).compile(make_project(script_files=[server_script("main")]), OPTIONS)
        assert f"{VSCRIPTS}/old_script.nut" not in memory_fs.files
        assert "/out/other-mod/keep.txt" in memory_fs.files


# ══════════════════════════════════════════════════════════════════
# FAILURES
# ══════════════════════════════════════════════════════════════════


class TestFailures:

    @pytest.mark.asyncio
    async def test_third_of_five_writes_fails(self, make_fs):
        fs = make_fs(selected="/out", fail_on_write=3)
        project = make_project(script_files=[server_script("s1"), server_script("s2"), server_script("s3")])
        result = await ModCompiler(fs).compile(project, OPTIONS)

        assert result.success is False
        assert result.files_created == [f"{VSCRIPTS}/s1.nut", f"{VSCRIPTS}/s2.nut"]
        assert result.failed_path == f"{VSCRIPTS}/s3.nut"
        assert result.error == "Failed to write s3.nut: disk full"
        assert fs.writes_attempted == 3
        assert writes(fs) == [f"{VSCRIPTS}/s1.nut", f"{VSCRIPTS}/s2.nut", f"{VSCRIPTS}/s3.nut"]

    @pytest.mark.asyncio
    async def test_directory_failure(self, make_fs):
        target = f"{MOD_DIR}/resource/localization"
        fs = make_fs(selected="/out", fail_directory=target)
        project = make_project(
            script_files=[server_script("main")],
            localization_files=[LocalizationFile(id="l1", name="strings")],
        )
        result = await ModCompiler(fs).compile(project, OPTIONS)
        assert result.success is False
        assert result.failed_path == target
        assert "create directory" in result.error
        assert result.files_created == []
        assert writes(fs) == []

    @pytest.mark.asyncio
    async def test_graph_error_touches_nothing(self, memory_fs):
        project = make_project(script_files=[server_script("good"), broken_script("broken")])
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)
        assert result.success is False
        assert result.error.startswith("Failed to compile broken.nut:")
        assert len(result.errors) == 1
        assert memory_fs.calls == []

    @pytest.mark.asyncio
    async def test_missing_mod_author(self, memory_fs):
        project = make_project(script_files=[server_script("main")])
        project.settings.mod.mod_author = "  "
        result = await ModCompiler(memory_fs).compile(project, OPTIONS)
        assert result.success is False
        assert "mod author" in result.error
        assert memory_fs.calls == []

    @pytest.mark.asyncio
    async def test_empty_project(self, memory_fs):
        result = await ModCompiler(memory_fs).compile(make_project(), OPTIONS)
        assert result.success is False
        assert "no files" in result.error
        assert memory_fs.calls == []

    @pytest.mark.asyncio
    async def test_no_output_directory(self, make_fs):
        fs = make_fs(selected=None)
        project = make_project(script_files=[server_script("main")])
        result = await ModCompiler(fs).compile(project, CompileOptions(output_dir=None))
        assert result.success is False
        assert result.error == "No output directory selected"
        assert fs.calls == [("select", None)]


# ══════════════════════════════════════════════════════════════════
# HELPERS AND LOCAL DISK
# ══════════════════════════════════════════════════════════════════


class TestHelpers:

    def test_mod_folder_name(self):
        assert mod_folder_name(ModSettings(mod_author="Jane Doe", mod_name="Arena  Mod")) == "JaneDoe-ArenaMod"

    def test_script_file_name(self):
        assert script_file_name("main") == "main.nut"
        assert script_file_name("main.nut") == "main.nut"
        assert script_file_name("client.gnut") == "client.gnut"


class TestLocalFileSystem:

    @pytest.mark.asyncio
    async def test_compile_to_disk(self, tmp_path):
        fs = LocalFileSystem()
        project = make_project(
            script_files=[server_script("main")],
            ui_files=[UIFile(id="u1", name="menu", file_type=UIFileType.MENU, content="m")],
        )
        options = CompileOptions(output_dir=str(tmp_path))
        result = await ModCompiler(fs).compile(project, options)
        assert result.success is True, result.error

        mod_dir = tmp_path / "JaneDoe-ArenaMod"
        assert (mod_dir / "mod.vdf").is_file()
        assert (mod_dir / "resource" / "ui" / "menus" / "menu.menu").read_text() == "m"
        first = (mod_dir / "scripts" / "vscripts" / "main.nut").read_text()

        (mod_dir / "scripts" / "vscripts" / "stale.nut").write_text("old")
        result = await ModCompiler(fs).compile(project, options)
        assert result.success is True
        assert not (mod_dir / "scripts" / "vscripts" / "stale.nut").exists()
        assert (mod_dir / "scripts" / "vscripts" / "main.nut").read_text() == first

    @pytest.mark.asyncio
    async def test_write_failure_reported(self, tmp_path):
        fs = LocalFileSystem()
        outcome = await fs.write_file(str(tmp_path / "missing" / "file.txt"), "x")
        assert outcome.success is False
        assert outcome.error

    @pytest.mark.asyncio
    async def test_select_directory_uses_default(self):
        assert await LocalFileSystem("/builds").select_directory() == "/builds"
