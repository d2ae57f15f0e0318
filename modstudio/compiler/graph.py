"""
Visual Script Graph Model - node definitions, node instances, ports, connections.
The editor canvas serializes to these models (camelCase aliases are accepted)
and the compiler reads them as an immutable snapshot for one compile.

GraphIndex is the per-compile arena: nodes keyed by id plus precomputed
adjacency, built and validated once instead of re-scanning connections per node.
"""

from enum import Enum
from typing import Optional, Dict, List, Any, Tuple, Iterator
from pydantic import BaseModel, ConfigDict, Field

from modstudio.compiler.errors import GraphError, CycleError


class PortKind(str, Enum):
    EXEC = "exec"
    DATA = "data"


class ValueType(str, Enum):
    """Value-type tags for data ports (editor spellings)."""
    INT = "int"
    FLOAT = "float"
    NUMBER = "number"
    BOOL = "boolean"
    STRING = "string"
    ASSET = "asset"
    FUNCTION = "function"
    VECTOR = "vector"
    ENTITY = "entity"
    STRUCT = "struct"
    ARRAY = "array"
    ANY = "any"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "ValueType":
        try:
            return cls(value)
        except ValueError:
            return cls.ANY


class RunContext(str, Enum):
    """Script VM a file has to be registered for."""
    SERVER = "SERVER"
    CLIENT = "CLIENT"
    UI = "UI"


class Purity(str, Enum):
    """Evaluation class of a data-only node."""
    CONSTANT = "constant"  # literal, always inlined
    PURE = "pure"          # getter/expression, inlined unless fanned out
    IMPURE = "impure"      # side effects, always bound to a temporary


INIT_NODE_TYPES: Dict[str, RunContext] = {
    "init-server": RunContext.SERVER,
    "init-client": RunContext.CLIENT,
    "init-ui": RunContext.UI,
}

EVENT_CATEGORY = "events"


# ══════════════════════════════════════════════════════════════════════════════
# Catalog Entries
# ══════════════════════════════════════════════════════════════════════════════

class PortTemplate(BaseModel):
    """A port slot on a node definition; instances get one Port per template."""
    model_config = ConfigDict(frozen=True)

    name: str  # stable handle used by emitters (and event parameter name)
    label: str
    kind: PortKind = PortKind.DATA
    value_type: Optional[ValueType] = None
    data_key: Optional[str] = None  # payload property used when unconnected
    script_type: Optional[str] = None  # parameter type for event callbacks

    @property
    def payload_key(self) -> str:
        return self.data_key or self.name


class NodeDefinition(BaseModel):
    """A node type in the palette. Static data, never mutated at runtime."""
    model_config = ConfigDict(frozen=True)

    node_type: str
    category: str
    label: str
    description: str = ""
    inputs: List[PortTemplate] = Field(default_factory=list)
    outputs: List[PortTemplate] = Field(default_factory=list)
    default_data: Dict[str, Any] = Field(default_factory=dict)
    context: List[RunContext] = Field(default_factory=list)
    server_only: bool = False
    client_only: bool = False
    ui_only: bool = False
    purity: Purity = Purity.PURE
    var_prefix: str = "v"
    return_type: str = "void"  # event callbacks only

    @property
    def is_init(self) -> bool:
        return self.node_type in INIT_NODE_TYPES

    @property
    def is_entry(self) -> bool:
        return self.is_init or self.category == EVENT_CATEGORY


# ══════════════════════════════════════════════════════════════════════════════
# Graph Instances
# ══════════════════════════════════════════════════════════════════════════════

class Port(BaseModel):
    """A concrete port on a node instance."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    kind: PortKind = Field(default=PortKind.DATA, alias="type")
    value_type: Optional[str] = Field(default=None, alias="dataType")
    is_input: bool = Field(default=True, alias="isInput")


class NodeInstance(BaseModel):
    """A node placed on the canvas."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    node_type: str = Field(alias="type")
    category: Optional[str] = None
    label: str = ""
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 0, "y": 0})
    data: Dict[str, Any] = Field(default_factory=dict)
    inputs: List[Port] = Field(default_factory=list)
    outputs: List[Port] = Field(default_factory=list)


class Endpoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    port_id: str = Field(alias="portId")


class Connection(BaseModel):
    """A directed edge from an output port to an input port."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: Endpoint = Field(alias="from")
    target: Endpoint = Field(alias="to")


class VisitState(int, Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


PortKey = Tuple[str, str]  # (node_id, port_id)


def _port_label_key(label: str) -> str:
    return "".join(ch for ch in label.lower() if ch.isalnum())


def _match_templates(ports: List[Port], templates: List[PortTemplate]) -> List[Optional[PortTemplate]]:
    """
    Pair saved ports with catalog templates.
    A port whose label names a template of the same kind takes that template;
    the rest are paired in order with the remaining templates of their kind.
    """
    matched: List[Optional[PortTemplate]] = [None] * len(ports)
    free = list(range(len(templates)))

    for i, port in enumerate(ports):
        wanted = _port_label_key(port.label)
        if not wanted:
            continue
        for j in free:
            t = templates[j]
            if t.kind == port.kind and wanted in (_port_label_key(t.label), _port_label_key(t.name)):
                matched[i] = t
                free.remove(j)
                break

    for i, port in enumerate(ports):
        if matched[i] is not None:
            continue
        for j in free:
            if templates[j].kind == port.kind:
                matched[i] = templates[j]
                free.remove(j)
                break
    return matched


class GraphIndex:
    """
    Arena of node instances plus adjacency for one compile.
    Construction validates the graph and raises GraphError on the first problem.
    """

    def __init__(self, nodes: List[NodeInstance], connections: List[Connection], catalog):
        self._catalog = catalog
        self.order: List[str] = []
        self._nodes: Dict[str, NodeInstance] = {}
        self._definitions: Dict[str, NodeDefinition] = {}
        self._ports: Dict[PortKey, Port] = {}
        self._templates: Dict[PortKey, PortTemplate] = {}
        self._port_by_name: Dict[Tuple[str, bool, str], Port] = {}
        self._inputs: Dict[str, List[Port]] = {}
        self._outputs: Dict[str, List[Port]] = {}
        self._outgoing: Dict[PortKey, List[Connection]] = {}
        self._incoming: Dict[PortKey, Connection] = {}
        self._data_fan_out: Dict[str, int] = {}

        for node in nodes:
            self._add_node(node)
        for conn in connections:
            self._add_connection(conn)
        self._check_entries()

        cycle_node = self.find_exec_cycle()
        if cycle_node is not None:
            raise CycleError(
                f"Exec cycle detected through node '{cycle_node}'",
                node_id=cycle_node,
            )

    # ── Construction ──────────────────────────────────────────────────

    def _add_node(self, node: NodeInstance) -> None:
        if node.id in self._nodes:
            raise GraphError(f"Duplicate node id '{node.id}'", node_id=node.id)
        definition = self._catalog.require(node.node_type, node_id=node.id)
        self._nodes[node.id] = node
        self._definitions[node.id] = definition
        self.order.append(node.id)

        inputs, outputs = node.inputs, node.outputs
        if not inputs and not outputs and (definition.inputs or definition.outputs):
            # Older saves carry no port lists; derive them from the catalog
            inputs, outputs = self._catalog.instantiate_ports(definition)

        self._inputs[node.id] = []
        self._outputs[node.id] = []
        for is_input, ports, templates in (
            (True, inputs, definition.inputs),
            (False, outputs, definition.outputs),
        ):
            for port in ports:
                key = (node.id, port.id)
                if key in self._ports:
                    raise GraphError(f"Duplicate port id '{port.id}' on node '{node.id}'", node_id=node.id)
                self._ports[key] = port.model_copy(update={"is_input": is_input})
                (self._inputs if is_input else self._outputs)[node.id].append(self._ports[key])
            for port, template in zip(ports, _match_templates(ports, templates)):
                if template is not None:
                    key = (node.id, port.id)
                    self._templates[key] = template
                    self._port_by_name[(node.id, is_input, template.name)] = self._ports[key]

    def _add_connection(self, conn: Connection) -> None:
        src = (conn.source.node_id, conn.source.port_id)
        dst = (conn.target.node_id, conn.target.port_id)
        for node_id, _ in (src, dst):
            if node_id not in self._nodes:
                raise GraphError(
                    f"Connection '{conn.id}' references missing node '{node_id}'",
                    node_id=node_id, connection_id=conn.id,
                )
        for node_id, port_id in (src, dst):
            if (node_id, port_id) not in self._ports:
                raise GraphError(
                    f"Connection '{conn.id}' references missing port '{port_id}' on node '{node_id}'",
                    node_id=node_id, connection_id=conn.id,
                )

        src_port, dst_port = self._ports[src], self._ports[dst]
        if src_port.is_input:
            raise GraphError(
                f"Connection '{conn.id}' starts at input port '{src[1]}'",
                node_id=src[0], connection_id=conn.id,
            )
        if not dst_port.is_input:
            raise GraphError(
                f"Connection '{conn.id}' ends at output port '{dst[1]}'",
                node_id=dst[0], connection_id=conn.id,
            )
        if src_port.kind != dst_port.kind:
            raise GraphError(
                f"Connection '{conn.id}' joins {src_port.kind.value} port to {dst_port.kind.value} port",
                node_id=dst[0], connection_id=conn.id,
            )
        if dst in self._incoming:
            raise GraphError(
                f"Input port '{dst[1]}' on node '{dst[0]}' has more than one incoming connection",
                node_id=dst[0], connection_id=conn.id,
            )

        self._incoming[dst] = conn
        self._outgoing.setdefault(src, []).append(conn)
        if src_port.kind == PortKind.DATA:
            self._data_fan_out[src[0]] = self._data_fan_out.get(src[0], 0) + 1

    def _check_entries(self) -> None:
        for node_id in self.order:
            if not self._definitions[node_id].is_entry:
                continue
            for port in self.input_ports(node_id):
                if port.kind == PortKind.EXEC and (node_id, port.id) in self._incoming:
                    conn = self._incoming[(node_id, port.id)]
                    raise GraphError(
                        f"Entry node '{node_id}' has an incoming exec connection",
                        node_id=node_id, connection_id=conn.id,
                    )

    # ── Lookups ───────────────────────────────────────────────────────

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> NodeInstance:
        return self._nodes[node_id]

    def definition(self, node_id: str) -> NodeDefinition:
        return self._definitions[node_id]

    def nodes(self) -> Iterator[NodeInstance]:
        for node_id in self.order:
            yield self._nodes[node_id]

    def input_ports(self, node_id: str) -> List[Port]:
        return self._inputs.get(node_id, [])

    def output_ports(self, node_id: str) -> List[Port]:
        return self._outputs.get(node_id, [])

    def template(self, node_id: str, port_id: str) -> Optional[PortTemplate]:
        return self._templates.get((node_id, port_id))

    def port_name(self, node_id: str, port_id: str) -> str:
        template = self._templates.get((node_id, port_id))
        return template.name if template else port_id

    def input_port(self, node_id: str, name: str) -> Optional[Port]:
        return self._port_by_name.get((node_id, True, name))

    def output_port(self, node_id: str, name: str) -> Optional[Port]:
        return self._port_by_name.get((node_id, False, name))

    def outgoing(self, node_id: str, port_id: str) -> List[Connection]:
        return self._outgoing.get((node_id, port_id), [])

    def incoming(self, node_id: str, port_id: str) -> Optional[Connection]:
        return self._incoming.get((node_id, port_id))

    def exec_targets(self, node_id: str, port_id: str) -> List[str]:
        return [c.target.node_id for c in self.outgoing(node_id, port_id)]

    def data_consumers(self, node_id: str) -> int:
        return self._data_fan_out.get(node_id, 0)

    def has_exec_ports(self, node_id: str) -> bool:
        return any(
            p.kind == PortKind.EXEC
            for p in self.input_ports(node_id) + self.output_ports(node_id)
        )

    def entry_nodes(self) -> List[NodeInstance]:
        return [self._nodes[nid] for nid in self.order if self._definitions[nid].is_entry]

    # ── Structure ─────────────────────────────────────────────────────

    def _exec_successors(self, node_id: str) -> List[str]:
        successors = []
        for port in self.output_ports(node_id):
            if port.kind == PortKind.EXEC:
                successors.extend(self.exec_targets(node_id, port.id))
        return successors

    def find_exec_cycle(self) -> Optional[str]:
        """Three-colour DFS over exec edges in node order. Returns a node on the first cycle."""
        state = {nid: VisitState.UNVISITED for nid in self.order}
        for root in self.order:
            if state[root] != VisitState.UNVISITED:
                continue
            state[root] = VisitState.IN_PROGRESS
            stack = [(root, iter(self._exec_successors(root)))]
            while stack:
                node_id, successors = stack[-1]
                nxt = next(successors, None)
                if nxt is None:
                    state[node_id] = VisitState.DONE
                    stack.pop()
                elif state[nxt] == VisitState.IN_PROGRESS:
                    return nxt
                elif state[nxt] == VisitState.UNVISITED:
                    state[nxt] = VisitState.IN_PROGRESS
                    stack.append((nxt, iter(self._exec_successors(nxt))))
        return None
