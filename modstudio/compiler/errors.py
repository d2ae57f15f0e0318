"""
Compiler error types.
Graph errors are fatal to one script file; precondition errors abort a build
before the output tree is touched.
"""

from typing import Optional


class GraphError(ValueError):
    """A malformed node graph: dangling reference, bad connection, unknown type."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.node_id = node_id
        self.connection_id = connection_id


class CycleError(GraphError):
    """An exec or data dependency cycle. node_id names a node on the cycle."""


class PreconditionError(ValueError):
    """Build inputs are unusable (missing mod settings, empty project, no output dir)."""

    def __init__(self, message: str, artifact: str = ""):
        super().__init__(message)
        self.artifact = artifact
