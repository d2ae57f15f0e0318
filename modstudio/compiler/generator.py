"""
Script Code Generator - compiles a visual script graph into script source.

Pipeline:
1. Build and validate a GraphIndex (ids, ports, kinds, fan-in, exec cycles)
2. Collect entry nodes (Init + Event) in node-list order
3. Walk each entry's exec chain, resolving data inputs on demand
4. Assemble entry functions, thread bodies and #if guards into one file

Data nodes are evaluated lazily: constants are always inlined, pure nodes are
inlined unless more than one input reads them, impure nodes always get a
`local` temporary so their side effects happen exactly once and in order.

Each entry is walked twice. The first walk only records the block path of
every read of a temporary; the second declares each temporary in the
innermost block that encloses all of its readers.
"""

import re
import time
import logging
from collections import deque
from typing import Optional, Dict, List, Any, Iterable, Tuple

from pydantic import BaseModel, Field

from modstudio.config.settings import settings
from modstudio.compiler.catalog import NodeCatalog, catalog as default_catalog
from modstudio.compiler.context import ScriptContext, analyze_script_context
from modstudio.compiler.emitters import Emission, ExecFollow, ExecBlock, ExecThread, get_emitter
from modstudio.compiler.errors import GraphError, CycleError
from modstudio.compiler.graph import (
    GraphIndex, NodeInstance, NodeDefinition, Connection, PortKind,
    Purity, RunContext, VisitState, PortKey, INIT_NODE_TYPES,
)
from modstudio.compiler.literals import format_literal

logger = logging.getLogger(__name__)

GENERATED_BANNER = "// Generated by Mod Studio Visual Scripting"
EMPTY_GRAPH_TEXT = (
    "// No nodes in the visual script\n"
    "// Add nodes from the palette to get started\n"
)
NO_ENTRY_COMMENT = "// No entry nodes (Init or Event) found in this script"

INIT_FUNCTION_SUFFIX = {
    RunContext.SERVER: "ServerInit",
    RunContext.CLIENT: "ClientInit",
    RunContext.UI: "UIInit",
}

# Bindings with these spellings are literals, not locals a thread must capture
SCRIPT_KEYWORDS = {"true", "false", "null", "this"}


def module_prefix(module_id: str) -> str:
    """'my_mod' -> 'MyMod'. Used for default init function names."""
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", module_id) if p]
    prefix = "".join(p[:1].upper() + p[1:] for p in parts) or "Mod"
    if prefix[0].isdigit():
        prefix = "Mod" + prefix
    return prefix


def script_identifier(name: str) -> str:
    ident = re.sub(r"\W", "_", name.strip())
    if not ident:
        return "_"
    return "_" + ident if ident[0].isdigit() else ident


class _Frame:
    """One generated function body. Collects outer locals a thread body reads."""

    def __init__(self, parent: Optional["_Frame"] = None):
        self.parent = parent
        self.captures: List[str] = []


class _Anchor:
    """Insertion point in front of a node that has opened nested blocks."""

    def __init__(self, lines: List[str], index: int):
        self.lines = lines
        self.index = index


class _Scope:
    def __init__(
        self,
        frame: _Frame,
        depth: int,
        key: Optional[PortKey] = None,
        anchor: Optional[_Anchor] = None,
    ):
        self.frame = frame
        self.depth = depth
        self.key = key  # (opening node, exec port); None for a function body
        self.anchor = anchor  # where the opening node sits in the parent scope
        self.bindings: Dict[PortKey, str] = {}


class _NodeScope:
    """The view of the generator handed to an emitter for one node."""

    def __init__(self, generator: "CodeGenerator", node_id: str):
        self._generator = generator
        self._index = generator.index
        self._node_id = node_id

    def new_var(self, prefix: Optional[str] = None) -> str:
        return self._generator._new_var(prefix or self._index.definition(self._node_id).var_prefix)

    def is_connected(self, name: str) -> bool:
        port = self._index.output_port(self._node_id, name)
        return port is not None and bool(self._index.outgoing(self._node_id, port.id))

    def has_output(self, name: str) -> bool:
        return self._index.output_port(self._node_id, name) is not None

    def exec_outputs(self) -> List[str]:
        return [
            self._index.port_name(self._node_id, p.id)
            for p in self._index.output_ports(self._node_id)
            if p.kind == PortKind.EXEC
        ]


class CodeGenerator:
    """
    Single-use generator for one script graph.

    Raises GraphError (or CycleError) on the first structural problem; nothing
    is returned for a graph that does not compile.
    """

    def __init__(
        self,
        nodes: Iterable[NodeInstance],
        connections: Iterable[Connection],
        module_id: str = "mod",
        node_catalog: Optional[NodeCatalog] = None,
        indent: Optional[str] = None,
    ):
        self.module_id = module_id
        self._nodes = list(nodes)
        self._connections = list(connections)
        self._catalog = node_catalog or default_catalog
        self._indent = indent if indent is not None else settings.indent

        self.index: Optional[GraphIndex] = None
        self._state: Dict[str, VisitState] = {}
        self._scopes: List[_Scope] = []
        self._top = 0  # innermost scope visible to lookups and new bindings
        self._anchors: List[_Anchor] = []
        self._resolving: set = set()
        self._threads: List[List[str]] = []
        self._var_counter = 0
        self._recording = False
        self._reads: Dict[str, List[Tuple[PortKey, ...]]] = {}

    # ── Public ────────────────────────────────────────────────────────

    def generate(self) -> str:
        if not self._nodes:
            return EMPTY_GRAPH_TEXT

        self.index = GraphIndex(self._nodes, self._connections, self._catalog)
        self._state = {node_id: VisitState.UNVISITED for node_id in self.index.order}

        lines = [GENERATED_BANNER, f"// Module: {self.module_id}", ""]
        entries = self.index.entry_nodes()
        if not entries:
            logger.warning(f"[CODEGEN] No entry nodes in module '{self.module_id}'")
            lines.append(NO_ENTRY_COMMENT)
            return "\n".join(lines) + "\n"

        blocks = [self._emit_entry(node) for node in entries]

        unreachable = [
            node_id for node_id, state in self._state.items()
            if state == VisitState.UNVISITED and self.index.has_exec_ports(node_id)
            and not self.index.definition(node_id).is_entry
        ]
        if unreachable:
            logger.debug(f"[CODEGEN] {len(unreachable)} exec node(s) unreachable from any entry: {unreachable}")

        lines.append("\n\n".join("\n".join(block) for block in blocks))
        return "\n".join(lines) + "\n"

    # ── Entries ───────────────────────────────────────────────────────

    def _entry_function_name(self, node: NodeInstance, definition: NodeDefinition) -> str:
        name = str(node.data.get("functionName") or "").strip()
        if name:
            return script_identifier(name)
        if definition.is_init:
            suffix = INIT_FUNCTION_SUFFIX[INIT_NODE_TYPES[definition.node_type]]
            return f"{module_prefix(self.module_id)}_{suffix}"
        return script_identifier(f"{definition.node_type}_handler")

    def _emit_entry(self, node: NodeInstance) -> List[str]:
        definition = self.index.definition(node.id)

        snapshot = dict(self._state)
        self._reads = {}
        self._recording = True
        self._emit_entry_body(node)
        self._state = snapshot
        self._recording = False
        params, body = self._emit_entry_body(node)

        name = self._entry_function_name(node, definition)
        signature = f"{definition.return_type} function {name}({', '.join(params)})"

        lines: List[str] = []
        if definition.is_init:
            lines.append(f"#if {INIT_NODE_TYPES[definition.node_type].value}")
        else:
            lines.append(f"// Event: {node.label or definition.label}")
        lines += [f"global function {name}", "", signature, "{", *body, "}"]
        for thread in self._threads:
            lines += ["", *thread]
        if definition.is_init:
            lines.append("#endif")
        return lines

    def _emit_entry_body(self, node: NodeInstance) -> Tuple[List[str], List[str]]:
        """One walk of an entry's exec chain. Returns (parameters, body lines)."""
        self._var_counter = 0
        self._threads = []
        self._anchors = []
        body: List[str] = []
        self._scopes = [_Scope(_Frame(), 1)]
        self._top = 0
        self._state[node.id] = VisitState.IN_PROGRESS

        params = []
        for port in self.index.output_ports(node.id):
            if port.kind != PortKind.DATA:
                continue
            template = self.index.template(node.id, port.id)
            param = script_identifier(template.name if template else port.id)
            script_type = (template.script_type if template else None) or "var"
            params.append(f"{script_type} {param}")
            self._bind((node.id, port.id), param)

        for port in self.index.output_ports(node.id):
            if port.kind == PortKind.EXEC:
                self._emit_chain(self.index.exec_targets(node.id, port.id), body, 1)
        self._state[node.id] = VisitState.DONE
        return params, body

    # ── Exec walk ─────────────────────────────────────────────────────

    def _emit_chain(self, targets: List[str], lines: List[str], depth: int) -> None:
        """
        Emit every node reachable along a chain of trailing exec outputs.
        Straight-line chains are walked with a queue, not recursion, so long
        scripts do not hit the interpreter's recursion limit.
        """
        work = deque(targets)
        opened: List[str] = []
        while work:
            node_id = work.popleft()
            if self._state.get(node_id) == VisitState.DONE:
                logger.debug(f"[CODEGEN] Node '{node_id}' already emitted, skipping")
                continue
            tail = self._emit_node(node_id, lines, depth)
            opened.append(node_id)
            work.extendleft(reversed(tail))
        for node_id in opened:
            self._state[node_id] = VisitState.DONE

    def _emit_node(self, node_id: str, lines: List[str], depth: int) -> List[str]:
        """Emit one exec node. Returns the targets of its trailing exec output."""
        if self._state.get(node_id) == VisitState.IN_PROGRESS:
            raise CycleError(f"Exec cycle detected at node '{node_id}'", node_id=node_id)
        definition = self.index.definition(node_id)
        if definition.is_entry:
            raise GraphError(f"Entry node '{node_id}' cannot be reached by an exec connection", node_id=node_id)

        self._state[node_id] = VisitState.IN_PROGRESS
        node = self.index.node(node_id)
        emitter = self._emitter_for(node)
        inputs = self._resolve_inputs(node_id, lines, depth)
        emission: Emission = emitter(node, inputs, _NodeScope(self, node_id))

        for name, expr in emission.outputs.items():
            port = self.index.output_port(node_id, name)
            if port is not None:
                self._bind((node_id, port.id), expr)

        items = list(emission.items)
        tail_port = None
        if items and isinstance(items[-1], ExecFollow):
            tail_port = items.pop().port
        self._render_items(node_id, items, lines, depth)
        return self._targets(node_id, tail_port) if tail_port else []

    def _render_items(self, node_id: str, items: List[Any], lines: List[str], depth: int) -> None:
        pad = self._indent * depth
        anchor = _Anchor(lines, len(lines))
        self._anchors.append(anchor)
        for item in items:
            if isinstance(item, str):
                lines.append(pad + item)
            elif isinstance(item, ExecFollow):
                self._emit_chain(self._targets(node_id, item.port), lines, depth)
            elif isinstance(item, ExecBlock):
                frame = self._scopes[self._top].frame
                self._push_scope(_Scope(frame, depth + 1, (node_id, item.port), anchor))
                for name, expr in item.bindings.items():
                    port = self.index.output_port(node_id, name)
                    if port is not None:
                        self._bind((node_id, port.id), expr)
                self._emit_chain(self._targets(node_id, item.port), lines, depth + 1)
                lines.extend(self._indent * (depth + 1) + t for t in item.tail)
                self._pop_scope()
            elif isinstance(item, ExecThread):
                self._emit_thread(node_id, item, lines, depth, anchor)
            else:
                raise TypeError(f"Unsupported emission item from node '{node_id}': {item!r}")
        self._anchors.pop()

    def _emit_thread(self, node_id: str, item: ExecThread, lines: List[str], depth: int, anchor: _Anchor) -> None:
        frame = _Frame(parent=self._scopes[self._top].frame)
        body: List[str] = []
        self._push_scope(_Scope(frame, 1, (node_id, item.port), anchor))
        self._emit_chain(self._targets(node_id, item.port), body, 1)
        self._pop_scope()

        params = ", ".join(f"var {name}" for name in frame.captures)
        self._threads.append([f"void function {item.name}({params})", "{", *body, "}"])
        lines.append(f"{self._indent * depth}thread {item.name}({', '.join(frame.captures)})")

    def _targets(self, node_id: str, port_name: str) -> List[str]:
        port = self.index.output_port(node_id, port_name)
        return self.index.exec_targets(node_id, port.id) if port else []

    # ── Data resolution ───────────────────────────────────────────────

    def _resolve_inputs(self, node_id: str, lines: List[str], depth: int) -> Dict[str, str]:
        node = self.index.node(node_id)
        definition = self.index.definition(node_id)
        inputs: Dict[str, str] = {}
        for template in definition.inputs:
            if template.kind != PortKind.DATA:
                continue
            port = self.index.input_port(node_id, template.name)
            conn = self.index.incoming(node_id, port.id) if port else None
            if conn is not None:
                inputs[template.name] = self._resolve_output(conn.source.node_id, conn.source.port_id, lines, depth)
                continue
            value = node.data.get(template.payload_key, definition.default_data.get(template.payload_key))
            value_type = template.value_type.value if template.value_type else (port.value_type if port else None)
            inputs[template.name] = format_literal(value, value_type)
        return inputs

    def _inlined(self, node_id: str) -> bool:
        definition = self.index.definition(node_id)
        return definition.purity == Purity.CONSTANT or (
            definition.purity == Purity.PURE and self.index.data_consumers(node_id) <= 1
        )

    def _resolve_output(self, node_id: str, port_id: str, lines: List[str], depth: int) -> str:
        key = (node_id, port_id)
        has_exec = self.index.has_exec_ports(node_id)
        if self._recording and not has_exec and not self._inlined(node_id):
            self._reads.setdefault(node_id, []).append(self._path())

        bound = self._lookup(key)
        if bound is not None:
            return bound

        name = self.index.port_name(node_id, port_id)
        if has_exec:
            raise GraphError(
                f"Output '{name}' of node '{node_id}' is read before the node runs or outside its block",
                node_id=node_id,
            )
        if node_id in self._resolving:
            raise CycleError(f"Data dependency cycle through node '{node_id}'", node_id=node_id)

        node = self.index.node(node_id)
        definition = self.index.definition(node_id)
        emitter = self._emitter_for(node)
        inline = self._inlined(node_id)

        level = self._top if inline or self._recording else self._placement(node_id)
        scope = self._scopes[level]
        target = lines if level == self._top else []
        saved_top = self._top
        self._resolving.add(node_id)
        self._top = level
        try:
            inputs = self._resolve_inputs(node_id, target, scope.depth)
            emission: Emission = emitter(node, inputs, _NodeScope(self, node_id))
            if name not in emission.outputs:
                raise GraphError(f"Node '{node_id}' does not produce output '{name}'", node_id=node_id)
            if inline:
                return emission.outputs[name]

            pad = self._indent * scope.depth
            for out_name, expr in emission.outputs.items():
                port = self.index.output_port(node_id, out_name)
                if port is None:
                    continue
                var = self._new_var(definition.var_prefix)
                target.append(f"{pad}local {var} = {expr}")
                self._bind((node_id, port.id), var)
        finally:
            self._top = saved_top
            self._resolving.discard(node_id)

        if target is not lines:
            self._insert(self._scopes[level + 1].anchor, target)
        return self._lookup(key)

    def _placement(self, node_id: str) -> int:
        """Scope index for a temporary: innermost block enclosing every recorded read."""
        current = self._path()
        common = len(current)
        for path in self._reads.get(node_id, []):
            n = 0
            while n < min(common, len(path)) and path[n] == current[n]:
                n += 1
            common = n
        return min(self._top, max(common, self._floor(node_id, set())))

    def _floor(self, node_id: str, seen: set) -> int:
        """Deepest scope holding a value the node's expression depends on."""
        if node_id in seen:
            return 0
        seen.add(node_id)
        level = 0
        for template in self.index.definition(node_id).inputs:
            if template.kind != PortKind.DATA:
                continue
            port = self.index.input_port(node_id, template.name)
            conn = self.index.incoming(node_id, port.id) if port else None
            if conn is None:
                continue
            found = self._find((conn.source.node_id, conn.source.port_id))
            if found is not None:
                level = max(level, found)
            elif self.index.has_exec_ports(conn.source.node_id):
                level = self._top
            else:
                level = max(level, self._floor(conn.source.node_id, seen))
        return level

    # ── Scopes ────────────────────────────────────────────────────────

    def _path(self) -> Tuple[PortKey, ...]:
        return tuple(scope.key for scope in self._scopes[1:self._top + 1])

    def _push_scope(self, scope: _Scope) -> None:
        self._scopes.append(scope)
        self._top = len(self._scopes) - 1

    def _pop_scope(self) -> None:
        self._scopes.pop()
        self._top = len(self._scopes) - 1

    def _insert(self, anchor: _Anchor, new_lines: List[str]) -> None:
        """Splice declarations in front of a block opener, shifting later anchors."""
        index = anchor.index
        anchor.lines[index:index] = new_lines
        for other in self._anchors:
            if other.lines is anchor.lines and other.index >= index:
                other.index += len(new_lines)

    def _bind(self, key: PortKey, expr: str) -> None:
        self._scopes[self._top].bindings[key] = expr

    def _find(self, key: PortKey) -> Optional[int]:
        for level in range(self._top, -1, -1):
            if key in self._scopes[level].bindings:
                return level
        return None

    def _lookup(self, key: PortKey) -> Optional[str]:
        level = self._find(key)
        if level is None:
            return None
        scope = self._scopes[level]
        expr = scope.bindings[key]
        if scope.frame is not self._scopes[self._top].frame and expr.isidentifier() and expr not in SCRIPT_KEYWORDS:
            self._capture(expr, scope.frame)
        return expr

    def _capture(self, name: str, owner: _Frame) -> None:
        """Thread every frame between the reader and the owner through `name`."""
        frame = self._scopes[self._top].frame
        while frame is not None and frame is not owner:
            if name not in frame.captures:
                frame.captures.append(name)
            frame = frame.parent

    def _new_var(self, prefix: str) -> str:
        name = f"{prefix}{self._var_counter}"
        self._var_counter += 1
        return name

    def _emitter_for(self, node: NodeInstance):
        emitter = get_emitter(node.node_type)
        if emitter is None:
            raise GraphError(f"No emitter registered for node type '{node.node_type}'", node_id=node.id)
        return emitter


# ══════════════════════════════════════════════════════════════════════════════
# Entry Points
# ══════════════════════════════════════════════════════════════════════════════

def generate_code(
    nodes: Iterable[NodeInstance],
    connections: Iterable[Connection],
    module_id: str = "mod",
    node_catalog: Optional[NodeCatalog] = None,
) -> str:
    """Compile one script graph to source text. Raises GraphError on invalid graphs."""
    return CodeGenerator(nodes, connections, module_id, node_catalog).generate()


class ScriptCompilation(BaseModel):
    """Outcome of compiling one script, for callers that report rather than raise."""
    success: bool = False
    module_id: str = ""
    code: str = ""
    context: ScriptContext = Field(default_factory=ScriptContext)
    node_count: int = 0
    connection_count: int = 0
    errors: List[str] = Field(default_factory=list)
    error_node_id: Optional[str] = None
    error_connection_id: Optional[str] = None
    compilation_time_ms: float = 0.0


def generate_script(
    nodes: Iterable[NodeInstance],
    connections: Iterable[Connection],
    module_id: str = "mod",
    node_catalog: Optional[NodeCatalog] = None,
) -> ScriptCompilation:
    start_time = time.time()
    nodes = list(nodes)
    connections = list(connections)
    result = ScriptCompilation(
        module_id=module_id,
        node_count=len(nodes),
        connection_count=len(connections),
        context=analyze_script_context(nodes, node_catalog),
    )
    try:
        result.code = generate_code(nodes, connections, module_id, node_catalog)
        result.success = True
    except GraphError as e:
        result.errors.append(str(e))
        result.error_node_id = e.node_id
        result.error_connection_id = e.connection_id
        logger.warning(f"[CODEGEN] Module '{module_id}' failed: {e}")

    result.compilation_time_ms = round((time.time() - start_time) * 1000, 2)
    return result
