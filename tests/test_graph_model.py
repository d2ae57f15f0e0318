"""
Tests for the graph model: catalog, editor JSON parsing, GraphIndex validation.
Run: pytest tests/test_graph_model.py -v
"""
import pytest
from modstudio.compiler.errors import GraphError, CycleError
from modstudio.compiler.graph import (
    GraphIndex, NodeInstance, Connection, Endpoint, Port, PortKind, ValueType, Purity,
)
from modstudio.compiler.catalog import NodeCatalog


# ══════════════════════════════════════════════════════════════════
# NODE CATALOG
# ══════════════════════════════════════════════════════════════════


class TestNodeCatalog:

    def test_get_known_type(self, node_catalog):
        definition = node_catalog.get("print")
        assert definition is not None
        assert definition.category == "utilities"
        assert definition.purity == Purity.IMPURE

    def test_get_unknown_type(self, node_catalog):
        assert node_catalog.get("does-not-exist") is None

    def test_require_unknown_raises(self, node_catalog):
        with pytest.raises(GraphError) as exc:
            node_catalog.require("does-not-exist", node_id="n1")
        assert exc.value.node_id == "n1"

    def test_entry_nodes(self, node_catalog):
        assert node_catalog.get("init-server").is_init
        assert node_catalog.get("on-player-respawned").is_entry
        assert not node_catalog.get("branch").is_entry

    def test_by_category(self, node_catalog):
        grouped = node_catalog.by_category()
        assert "math" in grouped
        assert all(d.category == "math" for d in grouped["math"])

    def test_list_all_filtered(self, node_catalog):
        ui_nodes = node_catalog.list_all("ui")
        assert ui_nodes
        assert {d.node_type for d in ui_nodes} >= {"ui-open-menu", "ui-set-text"}

    def test_duplicate_definition_rejected(self, node_catalog):
        definition = node_catalog.get("print")
        with pytest.raises(ValueError):
            NodeCatalog([definition, definition])

    def test_instantiate_seeds_payload(self, node_catalog):
        node = node_catalog.instantiate("loop-for", "loop1", data={"end": 5})
        assert node.data == {"start": 0, "end": 5, "step": 1}
        assert [p.id for p in node.inputs] == ["input_0", "input_1", "input_2", "input_3"]
        assert node.inputs[0].kind == PortKind.EXEC
        assert node.outputs[1].value_type == ValueType.INT.value

    def test_instantiate_copies_defaults(self, node_catalog):
        node = node_catalog.instantiate("switch", "s1")
        node.data["cases"].append(3)
        assert node_catalog.get("switch").default_data["cases"] == [0, 1, 2]


# ══════════════════════════════════════════════════════════════════
# EDITOR JSON
# ══════════════════════════════════════════════════════════════════


class TestEditorJson:

    def test_node_from_camel_case(self):
        node = NodeInstance.model_validate({
            "id": "n1",
            "type": "print",
            "data": {"message": "hi"},
            "inputs": [
                {"id": "input_0", "label": "In", "type": "exec", "isInput": True},
                {"id": "input_1", "label": "Message", "type": "data", "dataType": "string", "isInput": True},
            ],
            "outputs": [{"id": "output_0", "label": "Out", "type": "exec", "isInput": False}],
        })
        assert node.node_type == "print"
        assert node.inputs[1].value_type == "string"
        assert node.outputs[0].is_input is False

    def test_connection_from_camel_case(self):
        conn = Connection.model_validate({
            "id": "c1",
            "from": {"nodeId": "a", "portId": "output_0"},
            "to": {"nodeId": "b", "portId": "input_0"},
        })
        assert conn.source.node_id == "a"
        assert conn.target.port_id == "input_0"

    def test_dump_by_alias(self):
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="a", port_id="output_0"),
            target=Endpoint(node_id="b", port_id="input_0"),
        )
        dumped = conn.model_dump(by_alias=True)
        assert dumped["from"] == {"nodeId": "a", "portId": "output_0"}

    def test_value_type_coerce(self):
        assert ValueType.coerce("vector") == ValueType.VECTOR
        assert ValueType.coerce("mystery") == ValueType.ANY
        assert ValueType.coerce(None) == ValueType.ANY


# ══════════════════════════════════════════════════════════════════
# GRAPH INDEX
# ══════════════════════════════════════════════════════════════════


class TestGraphIndex:

    def test_adjacency(self, graph, node_catalog):
        graph.add("init-server", "init")
        graph.add("print", "p1")
        graph.add("const-string", "s1", value="x")
        graph.chain("init", "p1")
        graph.connect("s1", "value", "p1", "message")
        index = GraphIndex(graph.nodes, graph.connections, node_catalog)

        assert index.exec_targets("init", "output_0") == ["p1"]
        assert index.incoming("p1", "input_1").source.node_id == "s1"
        assert index.data_consumers("s1") == 1
        assert index.input_port("p1", "message").id == "input_1"
        assert index.port_name("p1", "input_1") == "message"
        assert [n.id for n in index.entry_nodes()] == ["init"]

    def test_ports_derived_when_missing(self, node_catalog):
        node = NodeInstance(id="p1", node_type="print")
        index = GraphIndex([node], [], node_catalog)
        assert [p.id for p in index.input_ports("p1")] == ["input_0", "input_1"]
        assert index.has_exec_ports("p1")

    def test_duplicate_node_id(self, graph, node_catalog):
        graph.add("print", "p1")
        graph.add("print", "p1")
        with pytest.raises(GraphError, match="Duplicate node id"):
            GraphIndex(graph.nodes, graph.connections, node_catalog)

    def test_unknown_node_type(self, node_catalog):
        node = NodeInstance(id="x", node_type="teleport-everyone")
        with pytest.raises(GraphError, match="Unknown node type"):
            GraphIndex([node], [], node_catalog)

    def test_dangling_node(self, graph, node_catalog):
        graph.add("init-server", "init")
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="init", port_id="output_0"),
            target=Endpoint(node_id="ghost", port_id="input_0"),
        )
        with pytest.raises(GraphError) as exc:
            GraphIndex(graph.nodes, [conn], node_catalog)
        assert exc.value.connection_id == "c1"
        assert exc.value.node_id == "ghost"

    def test_dangling_port(self, graph, node_catalog):
        graph.add("init-server", "init")
        graph.add("print", "p1")
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="init", port_id="output_0"),
            target=Endpoint(node_id="p1", port_id="input_9"),
        )
        with pytest.raises(GraphError, match="missing port"):
            GraphIndex(graph.nodes, [conn], node_catalog)

    def test_source_must_be_output(self, graph, node_catalog):
        graph.add("print", "p1")
        graph.add("print", "p2")
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="p1", port_id="input_0"),
            target=Endpoint(node_id="p2", port_id="input_0"),
        )
        with pytest.raises(GraphError, match="starts at input port"):
            GraphIndex(graph.nodes, [conn], node_catalog)

    def test_kind_mismatch(self, graph, node_catalog):
        graph.add("init-server", "init")
        graph.add("print", "p1")
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="init", port_id="output_0"),
            target=Endpoint(node_id="p1", port_id="input_1"),
        )
        with pytest.raises(GraphError, match="exec port to data port"):
            GraphIndex(graph.nodes, [conn], node_catalog)

    def test_fan_in_rejected(self, graph, node_catalog):
        graph.add("const-string", "a", value="a")
        graph.add("const-string", "b", value="b")
        graph.add("print", "p1")
        graph.connect("a", "value", "p1", "message")
        graph.connect("b", "value", "p1", "message")
        with pytest.raises(GraphError, match="more than one incoming"):
            GraphIndex(graph.nodes, graph.connections, node_catalog)

    def test_entry_with_incoming_exec(self, graph, node_catalog):
        event = NodeInstance(
            id="ev",
            node_type="event",
            inputs=[Port(id="in", kind=PortKind.EXEC, is_input=True)],
            outputs=[Port(id="out", kind=PortKind.EXEC, is_input=False)],
        )
        graph.add("print", "p1")
        conn = Connection(
            id="c1",
            source=Endpoint(node_id="p1", port_id="output_0"),
            target=Endpoint(node_id="ev", port_id="in"),
        )
        with pytest.raises(GraphError, match="incoming exec connection"):
            GraphIndex([event] + graph.nodes, [conn], node_catalog)

    def test_exec_cycle_detected(self, graph, node_catalog):
        graph.add("init-server", "init")
        graph.add("print", "a")
        graph.add("print", "b")
        graph.chain("a", "b")
        graph.connect("b", "then", "a", "exec")
        with pytest.raises(CycleError) as exc:
            GraphIndex(graph.nodes, graph.connections, node_catalog)
        assert exc.value.node_id in {"a", "b"}

    def test_self_loop_detected(self, graph, node_catalog):
        graph.add("print", "a")
        graph.connect("a", "then", "a", "exec")
        with pytest.raises(CycleError):
            GraphIndex(graph.nodes, graph.connections, node_catalog)

    def test_acyclic_graph_has_no_cycle(self, graph, node_catalog):
        graph.add("init-server", "init")
        graph.add("sequence", "seq")
        graph.add("print", "a")
        graph.add("print", "b")
        graph.connect("init", "then", "seq", "exec")
        graph.connect("seq", "then0", "a", "exec")
        graph.connect("seq", "then1", "b", "exec")
        index = GraphIndex(graph.nodes, graph.connections, node_catalog)
        assert index.find_exec_cycle() is None


# ══════════════════════════════════════════════════════════════════
# PORT MATCHING
# ══════════════════════════════════════════════════════════════════


def _saved_node(node_type, node_id, inputs=(), outputs=()):
    """Editor-shaped node with the given (label, kind) port lists."""
    def ports(specs, is_input):
        prefix = "input" if is_input else "output"
        return [
            {"id": f"{prefix}_{i}", "label": label, "type": kind, "isInput": is_input}
            for i, (label, kind) in enumerate(specs)
        ]
    return NodeInstance.model_validate({
        "id": node_id,
        "type": node_type,
        "data": {},
        "inputs": ports(inputs, True),
        "outputs": ports(outputs, False),
    })


class TestPortMatching:

    def test_outputs_matched_by_label(self, node_catalog):
        node = _saved_node(
            "on-projectile-collision", "ev",
            outputs=[("Exec", "exec"), ("Projectile", "data"), ("HitEnt", "data")],
        )
        index = GraphIndex([node], [], node_catalog)
        assert index.port_name("ev", "output_0") == "then"
        assert index.port_name("ev", "output_1") == "projectile"
        assert index.port_name("ev", "output_2") == "hitEnt"
        assert index.output_port("ev", "hitEnt").id == "output_2"
        assert index.output_port("ev", "pos") is None

    def test_unlabelled_ports_fall_back_to_kind_order(self, node_catalog):
        node = _saved_node(
            "set-health", "h",
            inputs=[("Exec", "exec"), ("Player", "data"), ("Health", "data")],
            outputs=[("Exec", "exec")],
        )
        index = GraphIndex([node], [], node_catalog)
        assert index.port_name("h", "input_0") == "exec"
        assert index.port_name("h", "input_1") == "entity"
        assert index.port_name("h", "input_2") == "health"

    def test_label_match_wins_over_position(self, node_catalog):
        node = _saved_node(
            "set-health", "h",
            inputs=[("Exec", "exec"), ("Health", "data"), ("Entity", "data")],
        )
        index = GraphIndex([node], [], node_catalog)
        assert index.input_port("h", "health").id == "input_1"
        assert index.input_port("h", "entity").id == "input_2"

    def test_single_exec_thread_output_is_body(self, node_catalog):
        node = _saved_node(
            "thread", "t",
            inputs=[("Exec", "exec"), ("Function", "data")],
            outputs=[("Exec", "exec")],
        )
        index = GraphIndex([node], [], node_catalog)
        assert index.port_name("t", "output_0") == "body"
        assert index.input_port("t", "function").id == "input_1"
        assert index.output_port("t", "then") is None

    def test_literal_type_names_accepted(self, node_catalog):
        nodes = [
            NodeInstance(id="s", node_type="string", data={"value": "x"}),
            NodeInstance(id="i", node_type="int", data={"value": 3}),
            NodeInstance(id="f", node_type="float", data={"value": 1.5}),
            NodeInstance(id="b", node_type="bool", data={"value": True}),
        ]
        index = GraphIndex(nodes, [], node_catalog)
        assert index.definition("i").purity == Purity.CONSTANT
