"""
Shared fixtures for the Mod Studio compiler test suite.
"""
import sys
import os
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Settings are read at import time; pin the ones output depends on
os.environ.setdefault("MODSTUDIO_SCRIPT_EXTENSION", ".nut")
os.environ.setdefault("MODSTUDIO_INDENT_WIDTH", "4")

from modstudio.compiler.catalog import catalog as builtin_catalog  # noqa: E402
from modstudio.compiler.graph import Connection, Endpoint, NodeInstance  # noqa: E402
from modstudio.orchestrator.filesystem import FileSystem, WriteResult  # noqa: E402


class GraphBuilder:
    """Builds node/connection lists from catalog node types, wiring ports by name."""

    def __init__(self, node_catalog):
        self.catalog = node_catalog
        self.nodes = []
        self.connections = []

    def add(self, node_type: str, node_id: str, **data) -> NodeInstance:
        node = self.catalog.instantiate(node_type, node_id, data=data)
        self.nodes.append(node)
        return node

    def _port_id(self, node_id: str, name: str, is_input: bool) -> str:
        node = next(n for n in self.nodes if n.id == node_id)
        definition = self.catalog.require(node.node_type)
        templates = definition.inputs if is_input else definition.outputs
        index = next(i for i, t in enumerate(templates) if t.name == name)
        return f"{'input' if is_input else 'output'}_{index}"

    def connect(self, src_id: str, src_port: str, dst_id: str, dst_port: str) -> Connection:
        conn = Connection(
            id=f"c{len(self.connections)}",
            source=Endpoint(node_id=src_id, port_id=self._port_id(src_id, src_port, False)),
            target=Endpoint(node_id=dst_id, port_id=self._port_id(dst_id, dst_port, True)),
        )
        self.connections.append(conn)
        return conn

    def chain(self, *node_ids: str) -> None:
        """Exec-link nodes in order through their default out ports."""
        for src, dst in zip(node_ids, node_ids[1:]):
            self.connect(src, "then", dst, "exec")


class MemoryFileSystem(FileSystem):
    """In-memory FileSystem that records every call and can fail the Nth write."""

    def __init__(self, selected=None, fail_on_write=None, fail_directory=None):
        self.selected = selected
        self.fail_on_write = fail_on_write
        self.fail_directory = fail_directory
        self.files = {}
        self.directories = set()
        self.calls = []
        self.writes_attempted = 0

    async def select_directory(self):
        self.calls.append(("select", None))
        return self.selected

    async def create_directory(self, path):
        self.calls.append(("mkdir", path))
        if path == self.fail_directory:
            raise OSError("permission denied")
        self.directories.add(path)

    async def delete_directory(self, path):
        self.calls.append(("delete", path))
        prefix = path + "/"
        self.files = {p: c for p, c in self.files.items() if not p.startswith(prefix)}
        self.directories = {d for d in self.directories if d != path and not d.startswith(prefix)}

    async def write_file(self, path, content):
        self.calls.append(("write", path))
        self.writes_attempted += 1
        if self.writes_attempted == self.fail_on_write:
            return WriteResult(success=False, error="disk full")
        self.files[path] = content
        return WriteResult(success=True)


@pytest.fixture
def node_catalog():
    """The built-in node catalog."""
    return builtin_catalog


@pytest.fixture
def graph(node_catalog):
    """Fresh GraphBuilder over the built-in catalog."""
    return GraphBuilder(node_catalog)


@pytest.fixture
def memory_fs():
    """In-memory filesystem with /out as the selected directory."""
    return MemoryFileSystem(selected="/out")


@pytest.fixture
def make_fs():
    """MemoryFileSystem factory for tests that need a failure point."""
    return MemoryFileSystem
