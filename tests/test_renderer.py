"""Tests for rendering graphs back to DSL text, and for graph validation."""
import pytest

from composedtask.errors import RenderError, RenderErrorKind
from composedtask.graph import Graph, Link, Node, NodeType
from composedtask.renderer import to_dsl_text


def node(node_id, node_type=NodeType.TASK, **props):
    name = node_id if node_type is NodeType.TASK else None
    return Node(id=node_id, type=node_type, name=name, properties=props)


def link(source, target, condition=None):
    return Link(from_=source, to=target, condition=condition)


START = node("START", NodeType.START)
END = node("END", NodeType.END)


class TestCanonicalText:

    @pytest.mark.parametrize("dsl, expected", [
        ("taskA && taskB", "taskA && taskB"),
        ("<taskA||taskB>&&taskC", "<taskA || taskB> && taskC"),
        ("taskA -> FAILED: taskB -> '*': taskC", "taskA -> FAILED: taskB -> '*': taskC"),
        ("taskA -> FAILED: taskB -> *: taskC", "taskA -> FAILED: taskB -> '*': taskC"),
        ("a -> 'FAILED': b", "a -> FAILED: b"),
        ("a -> 'exit 1': b", "a -> 'exit 1': b"),
        ("a -> FAILED: b && c", "a -> FAILED: b && c"),
        ("a -> FAILED: (b && c)", "a -> FAILED: b && c"),
        ("a -> X: b && c -> Y: d && e", "a -> X: b && c -> Y: d && e"),
        ("a -> X: (b -> Y: c) && d", "a -> X: (b -> Y: c) && d"),
        ("a -> X: <b || c> && d", "a -> X: <b || c> && d"),
        ("a -> X: (b -> Y: c) -> '*': d", "a -> X: (b -> Y: c) -> '*': d"),
        ("a -> X: <b || c> -> '*': d && e", "a -> X: <b || c> -> '*': d && e"),
        ("<a>", "<a>"),
        ("<(a && b) || c>", "<a && b || c>"),
        ("x : a && y:b", "x: a && y: b"),
        ("(((a)))", "a"),
    ])
    def test_rendering(self, build, dsl, expected):
        assert to_dsl_text(build(dsl)) == expected

    def test_wildcard_is_rendered_last(self):
        g = Graph(
            nodes=[START, END, node("a"), node("b"), node("c")],
            links=[
                link("START", "a"),
                link("a", "c", "*"),
                link("a", "b", "FAILED"),
                link("b", "END"),
                link("c", "END"),
            ],
        )
        assert to_dsl_text(g) == "a -> FAILED: b -> '*': c"

    def test_rendering_is_idempotent(self, build):
        g = build("<a -> FAILED: b -> '*': c || d> && e")
        assert to_dsl_text(g) == to_dsl_text(g)

    def test_hand_built_graph(self, linear_graph):
        assert to_dsl_text(linear_graph) == "a && b"

    def test_task_fan_out_without_fork_node(self):
        """A task with several unconditional successors renders as a split after it."""
        g = Graph(
            nodes=[START, END, node("a"), node("b"), node("c"), node("d")],
            links=[
                link("START", "a"),
                link("a", "b"), link("a", "c"),
                link("b", "d"), link("c", "d"),
                link("d", "END"),
            ],
        )
        assert to_dsl_text(g) == "a && <b || c> && d"

    def test_graph_from_dict(self):
        g = Graph.from_dict({
            "nodes": [
                {"id": "s", "type": "START"},
                {"id": "e", "type": "END"},
                {"id": "1", "type": "TASK", "name": "load", "properties": {"label": "first"}},
            ],
            "links": [{"from": "s", "to": "1"}, {"from": "1", "to": "e"}],
        })
        assert to_dsl_text(g) == "first: load"


class TestValidation:

    def expect(self, graph, kind):
        with pytest.raises(RenderError) as exc:
            to_dsl_text(graph)
        assert exc.value.kind is kind
        return exc.value

    def test_missing_end(self, build):
        g = build("taskA && taskB")
        broken = Graph(nodes=[n for n in g.nodes if n.type is not NodeType.END], links=g.links)
        self.expect(broken, RenderErrorKind.MISSING_ANCHOR)

    def test_missing_start(self):
        g = Graph(nodes=[END, node("a")], links=[link("a", "END")])
        self.expect(g, RenderErrorKind.MISSING_ANCHOR)

    def test_two_starts(self):
        g = Graph(nodes=[START, node("S2", NodeType.START), END, node("a")],
                  links=[link("START", "a"), link("S2", "a"), link("a", "END")])
        err = self.expect(g, RenderErrorKind.MISSING_ANCHOR)
        assert err.node == "S2"

    def test_start_with_incoming_link(self):
        g = Graph(nodes=[START, END, node("a")],
                  links=[link("START", "a"), link("a", "START", "FAILED"), link("a", "END", "*")])
        self.expect(g, RenderErrorKind.MISSING_ANCHOR)

    def test_end_with_outgoing_link(self):
        g = Graph(nodes=[START, END, node("a")],
                  links=[link("START", "a"), link("a", "END"), link("END", "a")])
        self.expect(g, RenderErrorKind.MISSING_ANCHOR)

    def test_dangling_link(self, linear_graph):
        g = Graph(nodes=linear_graph.nodes, links=linear_graph.links + [link("a", "ghost")])
        err = self.expect(g, RenderErrorKind.DANGLING_LINK)
        assert err.node == "ghost"

    def test_duplicate_node_id(self):
        g = Graph(nodes=[START, END, node("a"), node("a")],
                  links=[link("START", "a"), link("a", "END")])
        self.expect(g, RenderErrorKind.MALFORMED_GRAPH)

    def test_tasks_without_links(self):
        g = Graph(nodes=[START, END, node("a")], links=[])
        self.expect(g, RenderErrorKind.DISCONNECTED_GRAPH)

    def test_no_tasks(self):
        g = Graph(nodes=[START, END], links=[link("START", "END")])
        self.expect(g, RenderErrorKind.DISCONNECTED_GRAPH)

    def test_unreachable_node(self, linear_graph):
        g = Graph(nodes=linear_graph.nodes + [node("orphan")],
                  links=linear_graph.links + [link("orphan", "END")])
        err = self.expect(g, RenderErrorKind.UNREACHABLE_NODE)
        assert err.node == "orphan"

    def test_dead_end(self, linear_graph):
        g = Graph(nodes=linear_graph.nodes + [node("c")],
                  links=[link("START", "a"), link("a", "b", "X"), link("a", "c", "Y"), link("b", "END")])
        err = self.expect(g, RenderErrorKind.DISCONNECTED_GRAPH)
        assert err.node == "c"

    def test_conditional_and_unconditional_links(self, linear_graph):
        g = Graph(nodes=linear_graph.nodes,
                  links=linear_graph.links + [link("a", "END", "FAILED")])
        err = self.expect(g, RenderErrorKind.CONFLICTING_OUTGOING_LINKS)
        assert err.node == "a"

    def test_repeated_condition(self):
        g = Graph(nodes=[START, END, node("a"), node("b"), node("c")],
                  links=[link("START", "a"), link("a", "b", "X"), link("a", "c", "X"),
                         link("b", "END"), link("c", "END")])
        self.expect(g, RenderErrorKind.CONFLICTING_OUTGOING_LINKS)

    @pytest.mark.parametrize("bad", [
        Node(id="t", type=NodeType.TASK),
        Node(id="t", type=NodeType.TASK, name="two words"),
        Node(id="t", type=NodeType.TASK, name="ok", properties={"label": "a b"}),
    ])
    def test_invalid_task_names(self, bad):
        g = Graph(nodes=[START, END, bad], links=[link("START", "t"), link("t", "END")])
        self.expect(g, RenderErrorKind.MALFORMED_GRAPH)

    @pytest.mark.parametrize("condition", ["", "it's", "a\nb"])
    def test_invalid_condition(self, condition):
        g = Graph(nodes=[START, END, node("a"), node("b")],
                  links=[link("START", "a"), link("a", "b", condition), link("b", "END")])
        self.expect(g, RenderErrorKind.MALFORMED_GRAPH)

    def test_cycle_is_unrenderable(self):
        g = Graph(nodes=[START, END, node("a"), node("b"), node("c")],
                  links=[link("START", "a"), link("a", "b", "FAILED"), link("b", "a"),
                         link("a", "c", "*"), link("c", "END")])
        self.expect(g, RenderErrorKind.UNRENDERABLE_STRUCTURE)

    def test_transition_straight_to_reconvergence_point(self):
        g = Graph(nodes=[START, END, node("a"), node("b"), node("c")],
                  links=[link("START", "a"), link("a", "b", "FAILED"), link("a", "c", "*"),
                         link("b", "c"), link("c", "END")])
        self.expect(g, RenderErrorKind.UNRENDERABLE_STRUCTURE)

    def test_transition_straight_to_end(self):
        g = Graph(nodes=[START, END, node("a")],
                  links=[link("START", "a"), link("a", "END", "FAILED")])
        self.expect(g, RenderErrorKind.UNRENDERABLE_STRUCTURE)

    def test_duplicate_labels(self):
        g = Graph(nodes=[START, END, node("a", label="x"), node("b", label="x")],
                  links=[link("START", "a"), link("a", "b"), link("b", "END")])
        err = self.expect(g, RenderErrorKind.MALFORMED_GRAPH)
        assert err.node == "b"
        assert "'x'" in err.reason


def transition_chain(length):
    """START -> t0 -X-> t1 -X-> ... -> END, each task with a single conditional link."""
    tasks = [node(f"t{i}") for i in range(length)]
    links = [link("START", "t0")]
    links += [link(f"t{i}", f"t{i + 1}", "X") for i in range(length - 1)]
    links.append(link(f"t{length - 1}", "END"))
    return Graph(nodes=[START, END] + tasks, links=links)


def nested_forks(depth):
    """START -> F1 -> ... -> Fn -> a -> Jn -> ... -> J1 -> END."""
    forks = [node(f"F{i}", NodeType.FORK) for i in range(1, depth + 1)]
    joins = [node(f"J{i}", NodeType.JOIN) for i in range(1, depth + 1)]
    links = [link("START", "F1"), link(f"F{depth}", "a"), link("a", f"J{depth}"), link("J1", "END")]
    for i in range(1, depth):
        links.append(link(f"F{i}", f"F{i + 1}"))
        links.append(link(f"J{i + 1}", f"J{i}"))
    return Graph(nodes=[START, END, node("a")] + forks + joins, links=links)


class TestNesting:

    def test_single_clause_transitions_stay_flat(self, build):
        dsl = " && ".join(f"t{i} -> FAILED: f{i}" for i in range(200))
        assert to_dsl_text(build(dsl)) == dsl

    def test_deepest_parseable_split(self, build):
        dsl = "<" * 64 + "a" + ">" * 64
        assert to_dsl_text(build(dsl)) == dsl

    def test_chained_transitions_nest(self):
        assert to_dsl_text(transition_chain(4)) == "t0 -> X: (t1 -> X: (t2 -> X: t3))"

    def test_rendered_nesting_over_limit(self, build):
        g = build("<a -> X: (b -> Y: c)>")
        assert to_dsl_text(g, max_depth=2) == "<a -> X: (b -> Y: c)>"
        with pytest.raises(RenderError) as exc:
            to_dsl_text(g, max_depth=1)
        assert exc.value.kind is RenderErrorKind.UNRENDERABLE_STRUCTURE

    def test_long_transition_chain(self):
        with pytest.raises(RenderError) as exc:
            to_dsl_text(transition_chain(300))
        assert exc.value.kind is RenderErrorKind.UNRENDERABLE_STRUCTURE
        assert exc.value.node == "t65"

    def test_deeply_nested_forks(self):
        assert to_dsl_text(nested_forks(3)) == "<<<a>>>"
        with pytest.raises(RenderError) as exc:
            to_dsl_text(nested_forks(300))
        assert exc.value.kind is RenderErrorKind.UNRENDERABLE_STRUCTURE
