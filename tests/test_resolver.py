import unittest

from helpers import make_task

from brewplan.core.errors import ErrorKind
from brewplan.core.resolver import (
    annotate_can_start,
    blocking_dependencies,
    can_start,
    dependents,
    linked_tasks,
    missing_dependencies,
    topological_order,
    would_create_cycle,
)


class TestCanStart(unittest.TestCase):
    def test_no_dependencies(self) -> None:
        t = make_task("a")
        assert can_start(t, [t])

    def test_all_dependencies_completed(self) -> None:
        a = make_task("a", status="completed")
        b = make_task("b", status="completed")
        c = make_task("c", deps=["a", "b"])
        assert can_start(c, [a, b, c])
        assert blocking_dependencies(c, [a, b, c]) == []

    def test_any_dependency_not_completed(self) -> None:
        for status in ("pending", "in-progress", "cancelled"):
            a = make_task("a", status="completed")
            b = make_task("b", status=status)
            c = make_task("c", deps=["a", "b"])
            assert not can_start(c, [a, b, c]), status
            assert blocking_dependencies(c, [a, b, c]) == ["b"]

    def test_unknown_dependency_fails_closed(self) -> None:
        a = make_task("a", status="completed")
        c = make_task("c", deps=["a", "ghost"])
        assert not can_start(c, [a, c])
        assert blocking_dependencies(c, [a, c]) == ["ghost"]
        assert missing_dependencies(c.dependencies, [a, c]) == ["ghost"]

    def test_annotate(self) -> None:
        a = make_task("a")
        b = make_task("b", deps=["a"])
        assert [(t.id, ok) for t, ok in annotate_can_start([a, b])] == [("a", True), ("b", False)]


class TestDependents(unittest.TestCase):
    def test_direct_dependents_only(self) -> None:
        a = make_task("a")
        b = make_task("b", deps=["a"])
        c = make_task("c", deps=["b"])
        d = make_task("d", deps=["a", "c"])
        assert [t.id for t in dependents("a", [a, b, c, d])] == ["b", "d"]
        assert dependents("d", [a, b, c, d]) == []

    def test_linked_tasks_in_given_order(self) -> None:
        a = make_task("a")
        b = make_task("b")
        assert [t.id for t in linked_tasks(["b", "x", "a"], [a, b])] == ["b", "a"]


class TestTopologicalOrder(unittest.TestCase):
    def test_chain(self) -> None:
        tasks = [make_task("c", deps=["b"]), make_task("b", deps=["a"]), make_task("a")]
        r = topological_order(tasks)
        assert r.is_ok()
        assert [t.id for t in r.unwrap()] == ["a", "b", "c"]

    def test_every_task_after_transitive_dependencies(self) -> None:
        tasks = [
            make_task("e", deps=["c", "d"]),
            make_task("d", deps=["a"]),
            make_task("c", deps=["b"]),
            make_task("b", deps=["a"]),
            make_task("a"),
            make_task("f"),
        ]
        ids = [t.id for t in topological_order(tasks).unwrap()]
        pos = {tid: i for i, tid in enumerate(ids)}
        for t in tasks:
            for dep in t.dependencies:
                assert pos[dep] < pos[t.id]
        assert pos["a"] < pos["e"]

    def test_ties_broken_by_creation_order(self) -> None:
        tasks = [
            make_task("x", created_at="2024-01-03T00:00:00"),
            make_task("y", created_at="2024-01-01T00:00:00"),
            make_task("z", created_at="2024-01-02T00:00:00"),
        ]
        assert [t.id for t in topological_order(tasks).unwrap()] == ["y", "z", "x"]

    def test_same_timestamp_keeps_input_order(self) -> None:
        # ids sort differently from the input order
        tasks = [make_task(tid, deps=["root"] if tid != "root" else None) for tid in ("root", "m", "k", "q")]
        first = [t.id for t in topological_order(tasks).unwrap()]
        second = [t.id for t in topological_order(tasks).unwrap()]
        assert first == second == ["root", "m", "k", "q"]

    def test_same_timestamp_independent_tasks_keep_input_order(self) -> None:
        tasks = [make_task(tid) for tid in ("z", "b", "y", "a")]
        assert [t.id for t in topological_order(tasks).unwrap()] == ["z", "b", "y", "a"]

    def test_timestamp_wins_over_input_order(self) -> None:
        tasks = [make_task("late", created_at="2024-01-02T00:00:00"), make_task("early")]
        assert [t.id for t in topological_order(tasks).unwrap()] == ["early", "late"]

    def test_dependencies_outside_collection_ignored(self) -> None:
        tasks = [make_task("b", deps=["a", "outside"]), make_task("a")]
        assert [t.id for t in topological_order(tasks).unwrap()] == ["a", "b"]

    def test_cycle_reported(self) -> None:
        tasks = [make_task("a", deps=["c"]), make_task("b", deps=["a"]), make_task("c", deps=["b"]), make_task("d")]
        r = topological_order(tasks)
        assert r.is_err()
        err = r.unwrap_err()
        assert err.kind is ErrorKind.CYCLIC_DEPENDENCY
        assert set(err.cycle) == {"a", "b", "c"}
        assert err.cycle[0] == err.cycle[-1]

    def test_empty(self) -> None:
        assert topological_order([]).unwrap() == []


class TestWouldCreateCycle(unittest.TestCase):
    def test_self_dependency(self) -> None:
        a = make_task("a")
        assert would_create_cycle("a", ["a"], [a])

    def test_indirect_cycle(self) -> None:
        # b -> a, c -> b; a -> c would close a -> c -> b -> a
        tasks = [make_task("a"), make_task("b", deps=["a"]), make_task("c", deps=["b"])]
        assert would_create_cycle("a", ["c"], tasks)
        assert would_create_cycle("a", ["b"], tasks)

    def test_acyclic_edges(self) -> None:
        tasks = [make_task("a"), make_task("b", deps=["a"]), make_task("c", deps=["b"]), make_task("d")]
        assert not would_create_cycle("c", ["a", "d"], tasks)
        assert not would_create_cycle("d", ["c"], tasks)
        assert not would_create_cycle("a", [], tasks)

    def test_unknown_ids_do_not_count(self) -> None:
        tasks = [make_task("a")]
        assert not would_create_cycle("a", ["ghost"], tasks)


if __name__ == "__main__":
    unittest.main()
