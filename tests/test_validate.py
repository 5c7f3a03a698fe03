import unittest

from helpers import make_task

from brewplan.core.validate import detect_cycles, detect_dangling


class TestDetectCycles(unittest.TestCase):
    def test_no_cycle(self) -> None:
        tasks = {
            "a": make_task("a"),
            "b": make_task("b", deps=["a"]),
            "c": make_task("c", deps=["b"]),
        }
        assert detect_cycles(tasks) == []

    def test_direct_cycle(self) -> None:
        tasks = {"a": make_task("a", deps=["a"])}
        assert detect_cycles(tasks) == [["a", "a"]]

    def test_long_cycle(self) -> None:
        tasks = {
            "a": make_task("a", deps=["c"]),
            "b": make_task("b", deps=["a"]),
            "c": make_task("c", deps=["b"]),
        }
        cycles = detect_cycles(tasks)
        assert len(cycles) == 1
        assert len(cycles[0]) == 4  # a, c, b, a

    def test_external_dependencies_ignored(self) -> None:
        tasks = {"a": make_task("a", deps=["x"])}
        assert detect_cycles(tasks) == []

    def test_long_chain(self) -> None:
        # t0000 depends on t0001 and so on; the walk from t0000 follows the whole chain
        n = 3000
        tasks = {
            f"t{i:04d}": make_task(f"t{i:04d}", deps=[f"t{i + 1:04d}"] if i + 1 < n else None)
            for i in range(n)
        }
        assert detect_cycles(tasks) == []

    def test_long_cycle_found(self) -> None:
        n = 3000
        tasks = {f"t{i:04d}": make_task(f"t{i:04d}", deps=[f"t{(i + 1) % n:04d}"]) for i in range(n)}
        cycles = detect_cycles(tasks)
        assert len(cycles) == 1
        assert len(cycles[0]) == n + 1
        assert cycles[0][0] == cycles[0][-1] == "t0000"

    def test_cycles_reported_once_each(self) -> None:
        tasks = {
            "a": make_task("a", deps=["b"]),
            "b": make_task("b", deps=["a"]),
            "c": make_task("c", deps=["d", "a"]),
            "d": make_task("d", deps=["c"]),
        }
        assert detect_cycles(tasks) == [["a", "b", "a"], ["c", "d", "c"]]


class TestDetectDangling(unittest.TestCase):
    def test_clean(self) -> None:
        tasks = {"a": make_task("a"), "b": make_task("b", deps=["a"])}
        assert detect_dangling(tasks) == []

    def test_issues(self) -> None:
        tasks = {
            "a": make_task("a", deps=["a"]),
            "b": make_task("b", deps=["ghost"]),
            "c": make_task("c", plan_id="plan-2"),
            "d": make_task("d", deps=["c"]),
        }
        out = detect_dangling(tasks)
        assert ("a", "self_dependency", "a") in out
        assert ("b", "missing_dependency", "ghost") in out
        assert ("d", "foreign_plan", "c") in out
        assert len(out) == 3


if __name__ == "__main__":
    unittest.main()
