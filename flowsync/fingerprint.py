"""Content fingerprints for workflow graphs."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .contracts import WorkflowGraph


def canonical_graph(graph: "WorkflowGraph | Mapping[str, Any]") -> str:
    """Serialize the nodes and edges of ``graph`` to canonical JSON.

    Object keys are sorted so the output is stable across processes, but list
    order is kept: reordering nodes or edges yields a different string, since
    node order carries execution meaning. The viewport (``zoom``) is not part
    of the content.
    """
    if isinstance(graph, Mapping):
        nodes = graph.get("nodes") or []
        edges = graph.get("edges") or []
    else:
        nodes = graph.nodes
        edges = graph.edges
    return json.dumps(
        {"nodes": nodes, "edges": edges},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def fingerprint(graph: "WorkflowGraph | Mapping[str, Any]") -> str:
    """Return the SHA-256 hex digest of ``graph``'s canonical form."""
    # Lone surrogates are valid JSON string content but not valid UTF-8.
    data = canonical_graph(graph).encode("utf-8", "surrogatepass")
    return hashlib.sha256(data).hexdigest()
