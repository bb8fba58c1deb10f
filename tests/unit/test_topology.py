from typing import NamedTuple

import pytest

from topology import DependencyGraph, EdgeKind, GraphError


class Handle(NamedTuple):
    producer: str


def _sample_graph():
    graph = DependencyGraph()
    graph.add_component("Network")
    graph.add_component("Registry")
    graph.add_component("Database", inputs=[Handle("Network")])
    graph.add_component("Identity")
    graph.add_component("Compute", inputs=[Handle("Network"), Handle("Database"), Handle("Database")])
    graph.add_component("Edge", inputs=[Handle("Compute")])
    graph.add_ordering_edge("Edge", "Network", "endpoints first")
    graph.add_ordering_edge("Edge", "Identity", "sign-in first")
    return graph


def test_data_edges_derive_from_consumed_handles():
    graph = _sample_graph()
    assert graph.dependencies_of("Database", EdgeKind.DATA) == ["Network"]
    # Two handles from the same producer yield a single edge
    assert graph.dependencies_of("Compute", EdgeKind.DATA) == ["Network", "Database"]
    assert graph.dependencies_of("Edge", EdgeKind.DATA) == ["Compute"]


def test_ordering_edges_are_kept_apart_from_data_edges():
    graph = _sample_graph()
    assert graph.dependencies_of("Edge", EdgeKind.ORDERING) == ["Network", "Identity"]
    assert graph.dependencies_of("Edge") == ["Compute", "Network", "Identity"]
    assert all(e.kind == EdgeKind.ORDERING for e in graph.edges(EdgeKind.ORDERING))
    assert len(graph.edges()) == len(graph.edges(EdgeKind.DATA)) + len(graph.edges(EdgeKind.ORDERING))


def test_topological_order_is_deterministic():
    first = _sample_graph().validate()
    second = _sample_graph().validate()
    assert first == second == ["Network", "Registry", "Database", "Identity", "Compute", "Edge"]


def test_topological_order_breaks_ties_by_construction_order():
    graph = DependencyGraph()
    graph.add_component("B")
    graph.add_component("A")
    graph.add_component("C", inputs=[Handle("A")])
    assert graph.topological_order() == ["B", "A", "C"]


def test_consuming_a_handle_before_its_producer_is_rejected():
    graph = DependencyGraph()
    with pytest.raises(GraphError, match="Network"):
        graph.add_component("Database", inputs=[Handle("Network")])
    assert "Database" not in graph


def test_duplicate_component_is_rejected():
    graph = DependencyGraph()
    graph.add_component("Network")
    with pytest.raises(GraphError, match="already registered"):
        graph.add_component("Network")


def test_ordering_edge_to_unknown_component_is_rejected():
    graph = DependencyGraph()
    graph.add_component("Edge")
    with pytest.raises(GraphError, match="Unknown component 'Identity'"):
        graph.add_ordering_edge("Edge", "Identity", "sign-in first")


def test_self_dependency_is_rejected():
    graph = DependencyGraph()
    graph.add_component("Edge")
    with pytest.raises(GraphError):
        graph.add_ordering_edge("Edge", "Edge", "loop")


def test_forward_reference_fails_validation():
    graph = DependencyGraph()
    graph.add_component("Network")
    graph.add_component("Edge")
    graph.add_ordering_edge("Network", "Edge", "wrong way round")
    with pytest.raises(GraphError, match="constructed after it"):
        graph.validate()


def test_cycle_fails_validation():
    graph = DependencyGraph()
    graph.add_component("A")
    graph.add_component("B", inputs=[Handle("A")])
    graph.add_ordering_edge("A", "B", "back edge")
    with pytest.raises(GraphError, match="cycle"):
        graph.topological_order()


def test_without_edge_returns_a_copy():
    graph = _sample_graph()
    trimmed = graph.without_edge("Edge", "Identity")
    assert "Identity" not in trimmed.dependencies_of("Edge")
    assert "Identity" in graph.dependencies_of("Edge")
    assert trimmed.validate() == graph.validate()


def test_apply_links_every_edge_after_validation():
    graph = DependencyGraph()
    graph.add_component("Network", "network-payload")
    graph.add_component("Database", "database-payload", inputs=[Handle("Network")])
    graph.add_component("Edge", "edge-payload")
    graph.add_ordering_edge("Edge", "Network", "endpoints first")

    linked = []
    graph.apply(lambda consumer, producer, reason: linked.append((consumer, producer, reason)))

    assert linked == [
        ("database-payload", "network-payload", "data: consumes Handle"),
        ("edge-payload", "network-payload", "ordering: endpoints first"),
    ]


def test_apply_links_nothing_when_graph_is_invalid():
    graph = DependencyGraph()
    graph.add_component("A", "a")
    graph.add_component("B", "b", inputs=[Handle("A")])
    graph.add_ordering_edge("A", "B", "back edge")

    linked = []
    with pytest.raises(GraphError):
        graph.apply(lambda *args: linked.append(args))
    assert linked == []
