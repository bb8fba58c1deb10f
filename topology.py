"""
Dependency graph over the deployment's components.

Nodes are registered in construction order. DATA edges are derived from the
output handles a component consumed; ORDERING edges are deploy-after
constraints with no data flowing between the two components.
"""
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional


class GraphError(RuntimeError):
    """Raised for references that would break construction or deployment order."""


class EdgeKind(Enum):
    DATA = "data"
    ORDERING = "ordering"


class Edge(NamedTuple):
    consumer: str
    producer: str
    kind: EdgeKind
    reason: str


class DependencyGraph:
    def __init__(self) -> None:
        self._nodes: Dict[str, Any] = {}
        self._edges: List[Edge] = []

    # =================================================================
    # REGISTRATION
    # =================================================================
    def add_component(self, name: str, payload: Any = None, inputs: Iterable[Any] = ()) -> Any:
        """
        Registers a component and one DATA edge per distinct producer of the
        handles it consumed. Every producer must already be registered.
        """
        if name in self._nodes:
            raise GraphError(f"❌ Component '{name}' is already registered")
        for handle in inputs:
            if handle.producer not in self._nodes:
                raise GraphError(
                    f"❌ Component '{name}' consumes {type(handle).__name__} from "
                    f"'{handle.producer}', which has not been constructed yet"
                )

        self._nodes[name] = payload
        for handle in inputs:
            self._add_edge(name, handle.producer, EdgeKind.DATA, f"consumes {type(handle).__name__}")
        return payload

    def add_ordering_edge(self, consumer: str, producer: str, reason: str) -> None:
        """Declares that `consumer` deploys after `producer` without reading its outputs."""
        self._add_edge(consumer, producer, EdgeKind.ORDERING, reason)

    def _add_edge(self, consumer: str, producer: str, kind: EdgeKind, reason: str) -> None:
        for name in (consumer, producer):
            if name not in self._nodes:
                raise GraphError(f"❌ Unknown component '{name}' in dependency {consumer} -> {producer}")
        if consumer == producer:
            raise GraphError(f"❌ Component '{consumer}' cannot depend on itself")
        if any(e.consumer == consumer and e.producer == producer and e.kind == kind for e in self._edges):
            return
        self._edges.append(Edge(consumer, producer, kind, reason))

    # =================================================================
    # QUERIES
    # =================================================================
    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __getitem__(self, name: str) -> Any:
        return self._nodes[name]

    def construction_order(self) -> List[str]:
        return list(self._nodes)

    def edges(self, kind: Optional[EdgeKind] = None) -> List[Edge]:
        return [e for e in self._edges if kind is None or e.kind == kind]

    def dependencies_of(self, name: str, kind: Optional[EdgeKind] = None) -> List[str]:
        return [e.producer for e in self.edges(kind) if e.consumer == name]

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm, ties broken by construction order so the result is
        stable across runs.
        """
        position = {name: i for i, name in enumerate(self._nodes)}
        pending = {name: set() for name in self._nodes}
        for edge in self._edges:
            pending[edge.consumer].add(edge.producer)

        order: List[str] = []
        ready = sorted((n for n, deps in pending.items() if not deps), key=position.get)
        while ready:
            name = ready.pop(0)
            order.append(name)
            for other, deps in pending.items():
                if name in deps:
                    deps.discard(name)
                    if not deps:
                        ready.append(other)
            ready.sort(key=position.get)
            del pending[name]

        if pending:
            stuck = ", ".join(sorted(pending, key=position.get))
            raise GraphError(f"❌ Dependency cycle between components: {stuck}")
        return order

    def validate(self) -> List[str]:
        """
        Checks that the graph is acyclic and that no component references a
        producer registered after it. Returns the deployment order.
        """
        order = self.topological_order()
        position = {name: i for i, name in enumerate(self._nodes)}
        for edge in self._edges:
            if position[edge.producer] > position[edge.consumer]:
                raise GraphError(
                    f"❌ Component '{edge.consumer}' depends on '{edge.producer}', "
                    f"which is constructed after it"
                )
        return order

    # =================================================================
    # TRANSFORMS
    # =================================================================
    def without_edge(self, consumer: str, producer: str) -> "DependencyGraph":
        """Copy of the graph with every edge from `consumer` to `producer` removed."""
        copy = DependencyGraph()
        copy._nodes = dict(self._nodes)
        copy._edges = [e for e in self._edges if not (e.consumer == consumer and e.producer == producer)]
        return copy

    def apply(self, link: Callable[[Any, Any, str], None]) -> None:
        """
        Validates the graph, then calls link(consumer, producer, reason) on the
        registered payloads for every edge.
        """
        self.validate()
        for edge in self._edges:
            link(self._nodes[edge.consumer], self._nodes[edge.producer], f"{edge.kind.value}: {edge.reason}")
