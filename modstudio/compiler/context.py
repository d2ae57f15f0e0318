"""
Script Context Analyzer.
Infers which script VMs (SERVER / CLIENT / UI) a script file must be
registered for, from the node types it uses.
"""

from typing import Optional, List, Iterable
from pydantic import BaseModel

from modstudio.compiler.catalog import NodeCatalog, catalog as default_catalog
from modstudio.compiler.graph import NodeInstance, RunContext

SERVER_TYPE_FRAGMENTS = ("spawn", "gamemode")
CLIENT_TYPE_FRAGMENTS = ("localplayer", "get-local-client-player")


class ScriptContext(BaseModel):
    """Run-context flags for one script file."""
    server: bool = False
    client: bool = False
    ui: bool = False

    def contexts(self) -> List[RunContext]:
        flags = [
            (self.server, RunContext.SERVER),
            (self.client, RunContext.CLIENT),
            (self.ui, RunContext.UI),
        ]
        return [ctx for enabled, ctx in flags if enabled]

    def when_clause(self) -> str:
        """RSON When clause, e.g. 'SERVER || CLIENT'."""
        parts = [ctx.value for ctx in self.contexts()]
        return " || ".join(parts) if parts else "SERVER || CLIENT"


def analyze_script_context(
    nodes: Iterable[NodeInstance],
    node_catalog: Optional[NodeCatalog] = None,
) -> ScriptContext:
    """
    Fold every node's context requirements into one set of flags.
    Falls back to SERVER || CLIENT when nothing marks the script.
    """
    node_catalog = node_catalog or default_catalog
    server = client = ui = False

    for node in nodes:
        definition = node_catalog.get(node.node_type)
        if definition is None:
            continue

        # Explicit context from the node definition
        server = server or RunContext.SERVER in definition.context
        client = client or RunContext.CLIENT in definition.context
        ui = ui or RunContext.UI in definition.context

        # Legacy flags
        server = server or definition.server_only
        client = client or definition.client_only
        ui = ui or definition.ui_only

        node_type = node.node_type.lower()
        if node_type == "init-server":
            server = True
        if node_type == "init-client":
            client = True
        if node_type == "init-ui":
            ui = True

        if definition.category == "ui":
            ui = True
        if any(fragment in node_type for fragment in SERVER_TYPE_FRAGMENTS):
            server = True
        if any(fragment in node_type for fragment in CLIENT_TYPE_FRAGMENTS):
            client = True

    if not (server or client or ui):
        server = client = True

    return ScriptContext(server=server, client=client, ui=ui)
