from dagcanvas.agent_protocol import (
    AddEdge,
    AddNode,
    AutoLayout,
    DeleteEdge,
    DeleteNode,
    MoveNode,
    UpdateNode,
)
from dagcanvas.graph import seed_graph
from dagcanvas.mutation_manager import apply_commands, ensure_id


def test_ensure_id_free_and_suffixed():
    assert ensure_id("alpha", set()) == "alpha"
    assert ensure_id("alpha", {"alpha"}) == "alpha-2"
    assert ensure_id("alpha", {"alpha", "alpha-2"}) == "alpha-3"


def test_ensure_id_normalizes_whitespace_and_length():
    assert ensure_id("go to  market", set()) == "go-to-market"
    assert len(ensure_id("x" * 200, set())) == 64


def test_ensure_id_generates_when_missing():
    generated = ensure_id(None, set())
    assert generated and generated != ensure_id(None, set())


def test_add_node_then_edge_with_rejection():
    graph = seed_graph()
    result = apply_commands(graph, [
        AddNode(id="x", title="X"),
        AddEdge("validation", "x"),
        AddEdge("x", "execution"),
        AddEdge("execution", "vision"),
    ], origin=(100, 50))

    assert (result.added, result.edges_added, result.edges_rejected) == (1, 2, 1)
    assert result.summary() == (
        "Applied: 1 add, 0 edit, 0 move, 0 delete, 2 edge+, 0 edge- (1 edge(s) rejected)"
    )
    node = result.graph.get_node("x")
    assert (node.x, node.y) == (140, 84)
    # the original graph is untouched
    assert not graph.has_node("x")
    assert len(graph.edges) == 6


def test_single_add_and_rejected_edge_counts():
    result = apply_commands(seed_graph(), [
        AddNode(id="x", title="X"),
        AddEdge("validation", "x"),
        AddEdge("execution", "vision"),
    ])
    assert (result.added, result.edges_added, result.edges_rejected) == (1, 1, 1)


def test_added_nodes_are_staggered():
    result = apply_commands(seed_graph(), [AddNode(title="a"), AddNode(title="b")], origin=(0, 0))
    added = result.graph.nodes[-2:]
    assert [(n.x, n.y) for n in added] == [(40, 34), (80, 68)]


def test_colliding_ids_are_renamed():
    result = apply_commands(seed_graph(), [AddNode(id="vision"), AddNode(id="vision")])
    assert [n.id for n in result.graph.nodes[-2:]] == ["vision-2", "vision-3"]


def test_edge_to_node_added_in_same_batch():
    result = apply_commands(seed_graph(), [AddNode(id="n"), AddEdge("execution", "n")])
    assert result.edges_added == 1


def test_update_and_move_count_only_real_changes():
    graph = seed_graph()
    result = apply_commands(graph, [
        UpdateNode("vision", title="Vision"),
        MoveNode("vision", -240, -120),
        UpdateNode("ghost", title="x"),
        MoveNode("ghost", 0, 0),
    ])
    assert not result.changed
    assert result.summary() == "No canvas changes applied."

    result = apply_commands(graph, [UpdateNode("vision", title="North star"), MoveNode("vision", 0, 0)])
    assert (result.updated, result.moved) == (1, 1)
    assert result.graph.get_node("vision").title == "North star"


def test_delete_node_cascades_and_delete_edge_by_pair():
    result = apply_commands(seed_graph(), [
        DeleteNode("market"),
        DeleteEdge(source="vision", target="arch"),
        DeleteEdge(id="missing"),
    ])
    assert (result.deleted, result.edges_deleted) == (1, 1)
    assert {e.id for e in result.graph.edges} == {"e3", "e5", "e6"}


def test_auto_layout_command():
    result = apply_commands(seed_graph(), [AutoLayout("LR", 320, 160)])
    assert result.laid_out == 1
    assert result.graph.get_node("vision").x == 0
    assert result.summary().endswith(", layout")


def test_layout_that_moves_nothing_is_not_a_change():
    laid_out = apply_commands(seed_graph(), [AutoLayout("LR", 320, 160)]).graph
    again = apply_commands(laid_out, [AutoLayout("LR", 320, 160)])
    assert again.laid_out == 0
    assert not again.changed
    assert again.summary() == "No canvas changes applied."


def test_result_stays_acyclic():
    result = apply_commands(seed_graph(), [
        AddEdge("validation", "execution"),
        AddEdge("execution", "market"),
        AddEdge("execution", "execution"),
        AddEdge("validation", "execution"),
    ])
    assert result.edges_added == 1
    assert result.edges_rejected == 3
