"""
Tests for drag-and-drop task moves.
"""

import asyncio

import pytest

from planner.models.task import TimeBlock
from planner.sync.drag import DragSession, DragState, drop_target_id, parse_drop_target
from planner.sync.executor import MutationStatus


class TestDropTargets:
    def test_round_trip(self):
        target = drop_target_id("2026-01-14", TimeBlock.EVENING)
        assert target == "2026-01-14|evening"
        assert parse_drop_target(target) == ("2026-01-14", TimeBlock.EVENING)

    @pytest.mark.parametrize(
        "target", [None, "", "2026-01-14", "2026-01-14|night", "yesterday|morning"]
    )
    def test_malformed(self, target):
        assert parse_drop_target(target) is None


@pytest.fixture
async def task(planner, remote):
    task = remote.seed_task("drag me", "2026-01-14", "morning")
    await planner.load()
    return task


class TestDragSession:
    async def test_drop_on_other_cell_moves(self, planner, remote, task):
        session = DragSession(planner)
        session.start(task.id)
        assert session.state == DragState.DRAGGING

        result = await session.drop(drop_target_id("2026-01-15", TimeBlock.AFTERNOON))
        assert result.status == MutationStatus.SUCCESS
        assert session.state == DragState.IDLE
        assert session.task_id is None
        moved = planner.get_task(task.id)
        assert (moved.date, moved.time_block) == ("2026-01-15", TimeBlock.AFTERNOON)

    async def test_committing_state_during_write(self, planner, remote, task):
        session = DragSession(planner)
        session.start(task.id)
        remote.gate("update_task")

        dropping = asyncio.create_task(session.drop("2026-01-15|evening"))
        await asyncio.sleep(0.01)
        assert session.state == DragState.COMMITTING
        with pytest.raises(RuntimeError):
            session.start(task.id)

        remote.release("update_task")
        await dropping
        assert session.state == DragState.IDLE

    async def test_drop_on_same_cell_does_nothing(self, planner, remote, task):
        session = DragSession(planner)
        session.start(task.id)
        assert await session.drop("2026-01-14|morning") is None
        assert session.state == DragState.IDLE
        assert remote.calls_to("update_task") == []

    async def test_drop_outside_grid_cancels(self, planner, remote, task):
        session = DragSession(planner)
        session.start(task.id)
        assert await session.drop(None) is None
        assert session.state == DragState.IDLE
        assert remote.calls_to("update_task") == []

    async def test_failed_move_returns_to_idle(self, planner, remote, task):
        session = DragSession(planner)
        session.start(task.id)
        remote.fail("update_task")

        result = await session.drop("2026-01-16|evening")
        assert result.status == MutationStatus.ERROR
        assert session.state == DragState.IDLE
        assert planner.get_task(task.id).date == "2026-01-14"

    async def test_start_unknown_task(self, planner, task):
        with pytest.raises(LookupError):
            DragSession(planner).start(999)

    async def test_drop_without_drag(self, planner, task):
        with pytest.raises(RuntimeError):
            await DragSession(planner).drop("2026-01-15|evening")

    async def test_cancel(self, planner, task):
        session = DragSession(planner)
        session.start(task.id)
        session.cancel()
        assert session.state == DragState.IDLE
