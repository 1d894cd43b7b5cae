from dagcanvas.graph import Edge, Node, seed_graph
from dagcanvas.layout import (
    DIRECTION_LR,
    DIRECTION_TB,
    auto_layout,
    topological_layers,
)


def test_layers_use_longest_path():
    g = seed_graph()
    layers = topological_layers(g.nodes, g.edges)
    assert layers == {
        "vision": 0,
        "market": 1,
        "arch": 1,
        "monetization": 1,
        "validation": 2,
        "execution": 2,
    }


def test_longest_path_wins_over_short_edge():
    nodes = [Node(i, i, 0, 0) for i in "abc"]
    edges = [Edge("1", "a", "b"), Edge("2", "b", "c"), Edge("3", "a", "c")]
    assert topological_layers(nodes, edges)["c"] == 2


def test_dangling_edges_ignored():
    nodes = [Node("a", "A", 0, 0)]
    assert topological_layers(nodes, [Edge("x", "a", "ghost")]) == {"a": 0}


def test_lr_layout_positions():
    g = seed_graph()
    laid = {n.id: n for n in auto_layout(g.nodes, g.edges, DIRECTION_LR, 320, 160)}
    assert (laid["vision"].x, laid["vision"].y) == (0, 0)
    # layer 1 keeps its vertical order: market (-180), arch (-40), monetization (100)
    assert [(laid[i].x, laid[i].y) for i in ("market", "arch", "monetization")] == [
        (320, 0), (320, 160), (320, 320)
    ]
    assert laid["validation"].x == 640


def test_tb_layout_swaps_axes():
    g = seed_graph()
    laid = {n.id: n for n in auto_layout(g.nodes, g.edges, DIRECTION_TB, 320, 160)}
    assert (laid["vision"].x, laid["vision"].y) == (0, 0)
    assert (laid["arch"].x, laid["arch"].y) == (320, 160)


def test_spacing_is_clamped():
    nodes = [Node("a", "A", 0, 0), Node("b", "B", 0, 0)]
    edges = [Edge("1", "a", "b")]
    laid = auto_layout(nodes, edges, DIRECTION_LR, spacing_x=5, spacing_y=5000)
    assert laid[1].x == 180
    laid = auto_layout(nodes, edges, DIRECTION_TB, spacing_x=5, spacing_y=5000)
    assert laid[1].y == 420


def test_preserves_order_and_other_fields():
    g = seed_graph()
    laid = auto_layout(g.nodes, g.edges)
    assert [n.id for n in laid] == [n.id for n in g.nodes]
    assert [(n.title, n.tags) for n in laid] == [(n.title, n.tags) for n in g.nodes]
