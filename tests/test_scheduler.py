"""
Tests for the iteration scheduler.
"""

import pytest
from datetime import date

from iteration_planner.backlog import Backlog, Story, StoryColumn
from iteration_planner.config import ProjectConfig
from iteration_planner.iteration import IterationColumn
from iteration_planner.scheduler import IterationScheduler, IterationPlan, rebuild_iterations


# Monday 2024-01-01 starts iteration 1; 2024-02-05 is in iteration 6
TODAY = date(2024, 2, 5)


def config(**kwargs):
    kwargs.setdefault("start_date", "2024/01/01")
    kwargs.setdefault("iteration_start_day", 1)
    return ProjectConfig(**kwargs)


def done(story_id, points, iteration_number):
    return Story(id=story_id, points=points, column=StoryColumn.DONE, iteration_number=iteration_number)


def in_progress(story_id, points):
    return Story(id=story_id, points=points, column=StoryColumn.IN_PROGRESS)


def backlog_story(story_id, points):
    return Story(id=story_id, points=points, column=StoryColumn.BACKLOG, position=float(story_id))


def numbers(plan):
    return [i.number for i in plan.iterations]


def story_ids(iteration):
    return [s.id for s in iteration.stories]


class TestEmptyProject:
    """Tests for a project with no stories."""

    def test_default_velocity(self):
        plan = rebuild_iterations(config(default_velocity=10), Backlog(), TODAY)
        assert plan.velocity == 10

    def test_history_before_current_is_filled(self):
        """Iterations before the current one are closed placeholders."""
        plan = rebuild_iterations(config(), Backlog(), TODAY)

        assert numbers(plan) == [1, 2, 3, 4, 5, 6, 7]
        assert [i.column for i in plan.iterations[:5]] == [IterationColumn.DONE] * 5
        assert plan.current_iteration.number == 6
        assert plan.iterations[-1].column == IterationColumn.BACKLOG

    def test_first_iteration(self):
        plan = rebuild_iterations(config(), Backlog(), date(2024, 1, 3))

        assert numbers(plan) == [1, 2]
        assert plan.current_iteration_number == 1


class TestClosedIterations:
    """Tests for grouping done stories."""

    def test_grouped_by_iteration_number(self):
        backlog = Backlog([done(1, 8, 3), done(2, 5, 4), done(3, 7, 4), done(4, 10, 5)])

        plan = rebuild_iterations(config(), backlog, TODAY)
        closed = {i.number: story_ids(i) for i in plan.done_iterations}

        assert closed == {1: [], 2: [], 3: [1], 4: [2, 3], 5: [4]}
        assert plan.velocity == 10

    def test_velocity_from_recent_iterations(self):
        backlog = Backlog([done(1, 8, 3), done(2, 12, 4), done(3, 10, 5)])
        plan = rebuild_iterations(config(default_velocity=3), backlog, TODAY)

        assert plan.velocity == 10
        assert plan.current_iteration.maximum_points == 10
        assert all(i.maximum_points == 10 for i in plan.backlog_iterations)

    def test_gap_between_closed_iterations_counts(self):
        """Empty iterations between closed ones lower the velocity."""
        backlog = Backlog([done(1, 9, 2), done(2, 6, 4)])
        plan = rebuild_iterations(config(), backlog, TODAY)

        assert numbers(plan) == [1, 2, 3, 4, 5, 6, 7]
        assert plan.velocity == 5

    def test_zero_point_history_keeps_capacity(self):
        backlog = Backlog([done(1, 0, 5), backlog_story(2, 1)])
        plan = rebuild_iterations(config(), backlog, TODAY)

        assert plan.velocity == 1

    def test_iteration_from_acceptance_date(self):
        story = Story(id=1, points=4, column=StoryColumn.DONE, accepted_on=date(2024, 1, 17))
        plan = rebuild_iterations(config(), Backlog([story]), TODAY)

        assert story_ids(plan.done_iterations[2]) == [1]
        assert plan.done_iterations[2].number == 3

    def test_accepted_during_current_iteration(self):
        """Stories done this iteration share its number with the in-progress iteration."""
        backlog = Backlog([done(1, 30, 6), in_progress(2, 2), backlog_story(3, 2)])
        plan = rebuild_iterations(config(), backlog, TODAY)

        assert numbers(plan) == [1, 2, 3, 4, 5, 6, 6, 7]
        assert plan.iterations[5].column == IterationColumn.DONE
        assert story_ids(plan.iterations[5]) == [1]
        assert plan.iterations[6] is plan.current_iteration
        assert story_ids(plan.current_iteration) == [2, 3]
        assert plan.iterations[7].column == IterationColumn.BACKLOG
        assert plan.velocity == 10

    def test_done_story_without_iteration(self):
        """Done stories with no iteration are reported, not grouped."""
        backlog = Backlog([done(1, 3, 2), Story(id=2, points=5, column=StoryColumn.DONE)])
        plan = rebuild_iterations(config(), backlog, TODAY)

        assert [s.id for s in plan.unscheduled] == [2]
        assert plan.iteration_for_story(2) is None
        assert plan.iteration_for_story(1).number == 2


class TestBacklogPacking:
    """Tests for packing backlog stories into iterations."""

    def test_in_progress_iteration_filled_first(self):
        backlog = Backlog([
            in_progress(1, 4),
            backlog_story(2, 3),
            backlog_story(3, 3),
            backlog_story(4, 5),
            backlog_story(5, 2),
            backlog_story(6, 8),
        ])

        plan = rebuild_iterations(config(default_velocity=10), backlog, TODAY)
        by_number = {i.number: story_ids(i) for i in plan.iterations}

        assert plan.current_iteration.number == 6
        assert by_number[6] == [1, 2, 3]
        assert by_number[7] == [4, 5]
        assert by_number[8] == [6]
        assert numbers(plan) == list(range(1, 9))

    def test_in_progress_over_capacity(self):
        """Backlog stories go to backlog iterations when work in progress exceeds velocity."""
        backlog = Backlog([in_progress(1, 12), backlog_story(2, 1)])
        plan = rebuild_iterations(config(default_velocity=10), backlog, TODAY)

        assert story_ids(plan.current_iteration) == [1]
        assert plan.current_iteration.overflows_by() == 2
        assert story_ids(plan.iteration_for_story(2)) == [2]
        assert plan.iteration_for_story(2).number == 7

    def test_oversized_story_skips_iterations(self):
        """A 5 point story at velocity 1 pushes the next story forward 5 iterations."""
        backlog = Backlog([in_progress(1, 1), backlog_story(2, 5), backlog_story(3, 1)])
        plan = rebuild_iterations(config(default_velocity=1), backlog, TODAY)

        big = plan.iteration_for_story(2)
        after = plan.iteration_for_story(3)

        assert story_ids(big) == [2]
        assert after.number == big.number + 5
        assert story_ids(after) == [3]

        between = [i for i in plan.iterations if big.number < i.number < after.number]
        assert len(between) == 4
        assert all(i.is_empty and i.column == IterationColumn.BACKLOG for i in between)

    def test_priority_order_kept(self):
        backlog = Backlog([
            Story(id=1, points=2, column=StoryColumn.BACKLOG, position=5.0),
            Story(id=2, points=2, column=StoryColumn.BACKLOG, position=1.0),
            Story(id=3, points=2, column=StoryColumn.BACKLOG, position=3.0),
        ])
        plan = rebuild_iterations(config(default_velocity=10), backlog, TODAY)

        assert story_ids(plan.current_iteration) == [2, 3, 1]

    def test_chilly_bin_not_scheduled(self):
        backlog = Backlog([Story(id=1, points=1, column=StoryColumn.CHILLY_BIN)])
        plan = rebuild_iterations(config(), backlog, TODAY)

        assert plan.iteration_for_story(1) is None

    def test_backlog_iterations_follow_current(self):
        backlog = Backlog([backlog_story(i, 4) for i in range(1, 8)])
        plan = rebuild_iterations(config(default_velocity=8), backlog, TODAY)

        current_index = plan.iterations.index(plan.current_iteration)
        assert plan.iterations[current_index + 1].column == IterationColumn.BACKLOG
        assert plan.iterations[current_index + 1].number == plan.current_iteration_number + 1


class TestPlanProperties:
    """Properties that hold for every rebuild."""

    @pytest.fixture
    def backlog(self):
        stories = [done(100 + n, n % 4 + 1, n % 5 + 1) for n in range(12)]
        stories += [in_progress(200 + n, n + 1) for n in range(3)]
        stories += [backlog_story(n, [1, 8, 3, 0, 13, 2, 5, 5, 1, 21, 2][n % 11]) for n in range(1, 40)]
        return Backlog(stories)

    @pytest.mark.parametrize("default_velocity", [1, 3, 10])
    def test_contiguous_numbers(self, backlog, default_velocity):
        plan = rebuild_iterations(config(default_velocity=default_velocity), backlog, TODAY)
        assert numbers(plan) == list(range(1, len(plan.iterations) + 1))

    def test_every_story_once(self, backlog):
        plan = rebuild_iterations(config(), backlog, TODAY)

        placed = [s.id for i in plan.iterations for s in i.stories]
        assert sorted(placed) == sorted(s.id for s in backlog)

    def test_capacity(self, backlog):
        plan = rebuild_iterations(config(), backlog, TODAY)

        for iteration in plan.backlog_iterations:
            assert iteration.points() <= iteration.maximum_points or len(iteration.stories) == 1

    def test_one_in_progress_iteration(self, backlog):
        plan = rebuild_iterations(config(), backlog, TODAY)

        current = [i for i in plan.iterations if i.column == IterationColumn.IN_PROGRESS]
        assert len(current) == 1
        assert current[0].number == 6

    def test_backlog_not_modified(self, backlog):
        before = list(backlog)
        rebuild_iterations(config(), backlog, TODAY)
        assert list(backlog) == before


class TestIterationScheduler:
    """Tests for IterationScheduler and IterationPlan."""

    def test_project_id_on_iterations(self):
        scheduler = IterationScheduler(config(), project_id=42)
        plan = scheduler.rebuild(Backlog([backlog_story(1, 2)]), TODAY)

        assert all(i.project_id == 42 for i in plan.iterations)

    def test_plan_is_immutable(self):
        plan = rebuild_iterations(config(), Backlog(), TODAY)

        assert isinstance(plan, IterationPlan)
        assert isinstance(plan.iterations, tuple)
        with pytest.raises(AttributeError):
            plan.velocity = 3

    def test_to_dict(self):
        cfg = config()
        plan = rebuild_iterations(cfg, Backlog([backlog_story(1, 2)]), TODAY)

        data = plan.to_dict(cfg)

        assert data["velocity"] == 10
        assert data["current_iteration_number"] == 6
        assert data["iterations"][5]["stories"] == [1]
        assert data["iterations"][5]["start_date"] == "2024-02-05"
        assert data["unscheduled"] == []
