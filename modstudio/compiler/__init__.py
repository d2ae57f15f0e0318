"""Script Compiler - Compile visual script graphs into game script source"""
from .errors import GraphError, CycleError, PreconditionError
from .graph import (
    NodeDefinition, NodeInstance, Port, PortTemplate, Connection, Endpoint,
    PortKind, ValueType, RunContext, Purity, GraphIndex,
)
from .catalog import NodeCatalog, catalog
from .context import ScriptContext, analyze_script_context
from .generator import CodeGenerator, ScriptCompilation, generate_code, generate_script

__all__ = [
    "GraphError",
    "CycleError",
    "PreconditionError",
    "NodeDefinition",
    "NodeInstance",
    "Port",
    "PortTemplate",
    "Connection",
    "Endpoint",
    "PortKind",
    "ValueType",
    "RunContext",
    "Purity",
    "GraphIndex",
    "NodeCatalog",
    "catalog",
    "ScriptContext",
    "analyze_script_context",
    "CodeGenerator",
    "ScriptCompilation",
    "generate_code",
    "generate_script",
]
