import random

import networkx as nx
import pytest

from dagcanvas.graph import (
    REJECT_CYCLE,
    REJECT_DUPLICATE,
    REJECT_MISSING_ENDPOINT,
    REJECT_SELF_LOOP,
    DagGraph,
    Edge,
    Node,
    creates_cycle,
    make_node,
    seed_graph,
)


def _chain(*ids):
    nodes = [Node(nid, nid.upper(), i * 100, 0) for i, nid in enumerate(ids)]
    edges = [Edge(f"e{i}", a, b) for i, (a, b) in enumerate(zip(ids, ids[1:]))]
    return DagGraph(nodes, edges)


class TestCreatesCycle:
    def test_self_loop_is_a_cycle(self):
        assert creates_cycle([], "a", "a")

    def test_back_edge_on_chain(self):
        g = _chain("a", "b", "c")
        assert creates_cycle(g.edges, "c", "a")
        assert not creates_cycle(g.edges, "a", "c")

    def test_unrelated_nodes(self):
        g = _chain("a", "b")
        assert not creates_cycle(g.edges, "x", "y")

    def test_deep_chain_does_not_recurse(self):
        ids = [f"n{i}" for i in range(5000)]
        g = _chain(*ids)
        assert creates_cycle(g.edges, ids[-1], ids[0])

    def test_matches_networkx_reachability(self):
        rng = random.Random(7)
        for _ in range(40):
            ids = [f"n{i}" for i in range(12)]
            g = DagGraph([Node(i, i, 0, 0) for i in ids])
            for _ in range(30):
                a, b = rng.sample(ids, 2)
                g.add_edge(a, b)

            reference = nx.DiGraph()
            reference.add_nodes_from(ids)
            reference.add_edges_from((e.source, e.target) for e in g.edges)
            assert nx.is_directed_acyclic_graph(reference)

            for _ in range(20):
                a, b = rng.sample(ids, 2)
                assert creates_cycle(g.edges, a, b) == nx.has_path(reference, b, a)


class TestDagGraph:
    def test_seed_graph_shape(self):
        g = seed_graph()
        assert [n.id for n in g.nodes] == ["vision", "market", "arch", "monetization", "validation", "execution"]
        assert [e.id for e in g.edges] == ["e1", "e2", "e3", "e4", "e5", "e6"]

    def test_seed_rejects_cycle_edge(self):
        g = seed_graph()
        assert g.check_edge("execution", "vision") == REJECT_CYCLE
        assert g.add_edge("execution", "vision") is None
        assert len(g.edges) == 6

    def test_seed_accepts_forward_edge(self):
        g = seed_graph()
        edge = g.add_edge("validation", "execution")
        assert edge is not None
        assert (edge.source, edge.target) == ("validation", "execution")
        assert len(g.edges) == 7

    def test_rejection_reasons(self):
        g = _chain("a", "b")
        assert g.check_edge("a", "a") == REJECT_SELF_LOOP
        assert g.check_edge("a", "zzz") == REJECT_MISSING_ENDPOINT
        assert g.check_edge("a", "b") == REJECT_DUPLICATE
        assert g.check_edge("b", "a") == REJECT_CYCLE

    def test_add_duplicate_node_id_raises(self):
        g = _chain("a")
        with pytest.raises(ValueError):
            g.add_node(Node("a", "again", 0, 0))

    def test_delete_node_cascades(self):
        g = seed_graph()
        assert g.delete_node("vision")
        assert not g.has_node("vision")
        assert all("vision" not in (e.source, e.target) for e in g.edges)
        assert len(g.edges) == 3

    def test_delete_missing_node(self):
        g = seed_graph()
        assert not g.delete_node("nope")
        assert len(g.nodes) == 6

    def test_delete_edge_by_id_and_pair(self):
        g = seed_graph()
        assert g.delete_edge("e1") == 1
        assert g.delete_edge(source="vision", target="arch") == 1
        assert g.delete_edge(source="vision", target="arch") == 0
        assert g.delete_edge() == 0

    def test_update_node_rejects_unknown_fields(self):
        g = seed_graph()
        with pytest.raises(ValueError):
            g.update_node("vision", id="other")

    def test_update_node_missing_returns_none(self):
        assert seed_graph().update_node("nope", title="x") is None

    def test_update_node_normalizes_tags(self):
        g = seed_graph()
        node = g.update_node("vision", tags=["a", "b"])
        assert node.tags == ("a", "b")

    def test_copy_is_independent(self):
        g = seed_graph()
        work = g.copy()
        work.delete_node("vision")
        work.move_node("market", 1, 2)
        assert g.has_node("vision")
        assert g.get_node("market").x == 60
        assert g != work


class TestSerialization:
    def test_node_round_trip(self):
        node = make_node("Title", 1.5, 2, node_id="n", description="d", score=3, tags=["market"])
        assert Node.from_dict(node.to_dict()) == node

    def test_node_to_dict_omits_absent_fields(self):
        assert Node("n", "t", 0, 0).to_dict() == {"id": "n", "title": "t", "x": 0, "y": 0}

    @pytest.mark.parametrize("raw", [
        None,
        [],
        {"id": "n", "title": "t", "x": 0},
        {"id": 1, "title": "t", "x": 0, "y": 0},
        {"id": "n", "title": "t", "x": True, "y": 0},
        {"id": "n", "title": "t", "x": float("nan"), "y": 0},
    ])
    def test_node_from_dict_rejects_malformed(self, raw):
        assert Node.from_dict(raw) is None

    def test_node_from_dict_drops_mistyped_optionals(self):
        node = Node.from_dict({"id": "n", "title": "t", "x": 0, "y": 0,
                               "description": 5, "score": "high", "tags": ["ok", 3]})
        assert node.description is None
        assert node.score is None
        assert node.tags == ("ok",)

    def test_make_node_generates_id(self):
        a, b = make_node("a", 0, 0), make_node("b", 0, 0)
        assert a.id and b.id and a.id != b.id
