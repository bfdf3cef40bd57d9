from datetime import datetime, timedelta

from app.contests.database import contest_status, to_naive_utc
from app.contests.models import ContestStatus
from app.courses.database import full_title
from app.problem_sets.database import average_difficulty, count_problems, reorder_instances


def _instances(*pairs):
    return [{"problem_id": pid, "difficulty": diff} for pid, diff in pairs]


class TestAverageDifficulty:
    def test_no_instances(self):
        assert average_difficulty({}) == "N/A"
        assert average_difficulty({"problem_instances": []}) == "N/A"

    def test_buckets(self):
        assert average_difficulty({"problem_instances": _instances((1, "easy"), (2, "medium"))}) == "Easy"
        assert average_difficulty({"problem_instances": _instances((1, "easy"), (2, "hard"))}) == "Medium"
        assert average_difficulty({"problem_instances": _instances((1, "medium"), (2, "hard"), (3, "hard"))}) == "Hard"


class TestCountProblems:
    def test_falls_through_empty_lists(self):
        assert count_problems({"problem_instances": [], "problems": [1, 2]}) == 2
        assert count_problems({"problem_ids": [4, 5, 6]}) == 3
        assert count_problems({}) == 0

    def test_instances_take_precedence(self):
        doc = {"problem_instances": _instances((1, "easy")), "problems": [1, 2, 3]}
        assert count_problems(doc) == 1


class TestReorderInstances:
    def test_orders_by_position(self):
        result = reorder_instances(_instances((1, "easy"), (2, "easy"), (3, "easy")), [3, 1, 2])
        assert [(p["problem_id"], p["order"]) for p in result] == [(3, 1), (1, 2), (2, 3)]

    def test_unknown_ids_skipped_and_unlisted_dropped(self):
        result = reorder_instances(_instances((1, "easy"), (2, "easy"), (3, "easy")), [9, 2, 1])
        assert [(p["problem_id"], p["order"]) for p in result] == [(2, 1), (1, 2)]

    def test_duplicate_problem_ids_match_in_turn(self):
        instances = [
            {"problem_id": 1, "instance_id": "a"},
            {"problem_id": 1, "instance_id": "b"},
        ]
        result = reorder_instances(instances, [1, 1, 1])
        assert [p["instance_id"] for p in result] == ["a", "b"]

    def test_input_not_mutated(self):
        instances = _instances((1, "easy"))
        reorder_instances(instances, [1])
        assert "order" not in instances[0]


def test_full_title():
    assert full_title({"title": "Graphs", "category": "Algorithms"}) == "Graphs - Algorithms"
    assert full_title({"title": "Graphs"}) == "Graphs"


def test_contest_status_boundaries():
    start = datetime(2030, 1, 1, 10, 0)
    contest = {"start_time": start, "end_time": start + timedelta(hours=2)}
    assert contest_status(contest, now=start - timedelta(seconds=1)) == ContestStatus.UPCOMING
    assert contest_status(contest, now=start) == ContestStatus.ACTIVE
    assert contest_status(contest, now=start + timedelta(hours=2)) == ContestStatus.ENDED
    assert to_naive_utc(None) is None
