import unittest

import pytest
from helpers import make_task

from brewplan.core.errors import ErrorKind
from brewplan.core.status import apply_transition, plan_transition


class TestPlanTransition(unittest.TestCase):
    def test_same_state_rejected(self) -> None:
        for status in ("pending", "in-progress", "completed", "cancelled"):
            t = make_task("a", status=status)
            r = plan_transition(t, status, [t])
            assert r.is_err(), status
            assert r.unwrap_err().kind is ErrorKind.ILLEGAL_TRANSITION

    def test_unknown_status(self) -> None:
        t = make_task("a")
        r = plan_transition(t, "done", [t])
        assert r.unwrap_err().kind is ErrorKind.INVALID_FIELD

    def test_start_gated_on_dependencies(self) -> None:
        a = make_task("a")
        b = make_task("b", deps=["a"])
        r = plan_transition(b, "in-progress", [a, b])
        assert r.is_err()
        assert r.unwrap_err().kind is ErrorKind.ILLEGAL_TRANSITION
        assert "a" in r.unwrap_err().detail

        a.status = "completed"
        assert plan_transition(b, "in-progress", [a, b]).is_ok()

    def test_start_gated_from_cancelled_too(self) -> None:
        a = make_task("a")
        b = make_task("b", deps=["a"], status="cancelled")
        assert plan_transition(b, "in-progress", [a, b]).is_err()

    def test_direct_completion_of_blocked_task_allowed(self) -> None:
        a = make_task("a")
        b = make_task("b", deps=["a"])
        r = plan_transition(b, "completed", [a, b])
        assert r.is_ok()
        assert not r.unwrap().cascading

    def test_revert_completed_with_dependents_is_cascading(self) -> None:
        a = make_task("a", status="completed")
        b = make_task("b", deps=["a"])
        c = make_task("c")
        for target in ("pending", "in-progress", "cancelled"):
            tr = plan_transition(a, target, [a, b, c]).unwrap()
            assert tr.cascading, target
            assert [t.id for t in tr.affected] == ["b"]

    def test_revert_completed_without_dependents(self) -> None:
        a = make_task("a", status="completed")
        tr = plan_transition(a, "pending", [a]).unwrap()
        assert not tr.cascading
        assert tr.affected == []

    def test_actual_duration_only_on_completion(self) -> None:
        t = make_task("a")
        assert plan_transition(t, "in-progress", [t], actual_duration=10).unwrap_err().kind is ErrorKind.INVALID_FIELD
        assert plan_transition(t, "completed", [t], actual_duration=0).unwrap_err().kind is ErrorKind.INVALID_FIELD
        assert plan_transition(t, "completed", [t], actual_duration=25).unwrap().actual_duration == 25


class TestApplyTransition(unittest.TestCase):
    def test_completion_sets_completed_at(self) -> None:
        t = make_task("a", status="in-progress")
        tr = plan_transition(t, "completed", [t], actual_duration=40).unwrap()
        out = apply_transition(t, tr, at="2024-05-01T10:00:00")
        assert out.status == "completed"
        assert out.completed_at == "2024-05-01T10:00:00"
        assert out.updated_at == "2024-05-01T10:00:00"
        assert out.actual_duration == 40
        # input untouched
        assert t.status == "in-progress"
        assert t.completed_at is None

    def test_regress_clears_completion(self) -> None:
        t = make_task("a", status="completed")
        t.actual_duration = 30
        tr = plan_transition(t, "pending", [t]).unwrap()
        out = apply_transition(t, tr)
        assert out.status == "pending"
        assert out.completed_at is None
        assert out.actual_duration is None

    def test_in_progress_to_cancelled(self) -> None:
        t = make_task("a", status="in-progress")
        out = apply_transition(t, plan_transition(t, "cancelled", [t]).unwrap())
        assert out.status == "cancelled"
        assert out.completed_at is None

    def test_stale_transition_raises(self) -> None:
        t = make_task("a")
        tr = plan_transition(t, "cancelled", [t]).unwrap()
        t.status = "in-progress"
        with pytest.raises(ValueError, match="Stale transition"):
            apply_transition(t, tr)


if __name__ == "__main__":
    unittest.main()
