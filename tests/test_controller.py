"""Tests del controlador: eventos, puntos, persistencia y misión activa."""

import pytest

from conftest import FakeSuggestions
from controller import AppController, AppState
from models import GoalKind, QuestType, TimeBlockType
from schemas import (
    GoalCreate, HabitCreate, HabitSuggestion, QuestCreate, QuestSuggestion, TimeBlockCreate,
)

DAY = "2024-05-01"


def add_quest(controller, reward=25, type=QuestType.generic):
    return controller.add_quest(QuestCreate(title="Misión", description="Hazlo", reward=reward, type=type))


# ============================================================================
# CARGA Y PERSISTENCIA
# ============================================================================


class TestLoad:

    def test_empty_storage_loads_seed_data(self, storage) -> None:
        controller = AppController.load(storage, FakeSuggestions(), tz_name="UTC")

        state = controller.state
        assert state.sublime_points == 50
        assert state.avatar.level == 1
        assert len(state.habits) == 3
        assert len(state.goals) == 1 and len(state.short_term_goals) == 1
        assert [b.start_time for b in controller.time_blocks(controller.today())] == ["09:00", "12:00"]
        assert {q.type for q in state.quests} == {QuestType.breathing, QuestType.generic}

    def test_state_survives_reload(self, storage, controller) -> None:
        habit = controller.add_habit(HabitCreate(name="Correr", sp_value=10))
        controller.toggle_habit(habit.id, DAY)

        reloaded = AppController.load(storage, FakeSuggestions(), tz_name="UTC")

        assert reloaded.state.sublime_points == 60
        assert reloaded.state.avatar.current_xp == 10
        assert reloaded.state.habits[0].completed_on == [DAY]

    def test_invalid_slice_falls_back_to_seed(self, storage) -> None:
        storage.set("sublime_habits", [{"sin": "nombre"}])
        storage.set("sublime_points", 80)

        controller = AppController.load(storage, FakeSuggestions(), tz_name="UTC")

        assert len(controller.state.habits) == 3
        assert controller.state.sublime_points == 80

    def test_negative_stored_balance_is_clamped(self, storage) -> None:
        storage.set("sublime_points", -20)

        controller = AppController.load(storage, FakeSuggestions(), tz_name="UTC")

        assert controller.state.sublime_points == 0


# ============================================================================
# TOGGLES Y PUNTOS
# ============================================================================


class TestProgress:

    def test_habit_toggle_pairing(self, controller) -> None:
        habit = controller.add_habit(HabitCreate(name="Leer", sp_value=20))

        done = controller.toggle_habit(habit.id, DAY)
        undone = controller.toggle_habit(habit.id, DAY)

        assert done.sublime_points == 70 and done.point_delta == 20
        assert undone.sublime_points == 50
        assert controller.state.avatar.current_xp == 0

    def test_unknown_ids_change_nothing(self, controller) -> None:
        before = controller.state.model_copy(deep=True)

        results = [
            controller.toggle_habit("h-404", DAY),
            controller.toggle_milestone(GoalKind.long_term, "g-404", "m-404"),
            controller.toggle_time_block(DAY, "tb-404"),
            controller.toggle_quest("q-404"),
        ]

        assert all(not r.changed for r in results)
        assert controller.state == before

    def test_deleting_unknown_ids_keeps_every_collection(self, controller) -> None:
        controller.add_habit(HabitCreate(name="Leer"))
        controller.add_goal(GoalKind.long_term, GoalCreate(name="Prototipo"))
        controller.add_goal(GoalKind.short_term, GoalCreate(name="Trimestre"))
        controller.add_time_block(DAY, TimeBlockCreate(title="Foco", start_time="09:00", end_time="10:00"))
        add_quest(controller)
        before = controller.state.model_copy(deep=True)

        assert controller.delete_habit("h-404") == before.habits
        assert controller.delete_goal(GoalKind.long_term, "g-404") == before.goals
        assert controller.delete_goal(GoalKind.short_term, "sg-404") == before.short_term_goals
        assert controller.delete_time_block(DAY, "tb-404") == before.schedules[DAY]
        assert controller.delete_quest("q-404") == before.quests
        assert controller.state == before

    def test_balance_never_goes_negative(self, controller) -> None:
        quest = add_quest(controller, reward=80)
        controller.toggle_quest(quest.id)
        controller.state.sublime_points = 10

        result = controller.toggle_quest(quest.id)

        assert result.sublime_points == 0
        assert result.point_delta == -80

    def test_level_up(self, controller) -> None:
        quest = add_quest(controller, reward=250)

        result = controller.toggle_quest(quest.id)

        assert result.leveled_up
        assert (result.avatar.level, result.avatar.current_xp, result.avatar.xp_to_next_level) == (3, 0, 225)

    def test_milestone_rewards_depend_on_collection(self, controller) -> None:
        long_goal = controller.add_goal(GoalKind.long_term, GoalCreate(name="Prototipo"))
        short_goal = controller.add_goal(GoalKind.short_term, GoalCreate(name="Trimestre"))
        controller.add_milestone(GoalKind.long_term, long_goal.id, "Ideas")
        controller.add_milestone(GoalKind.short_term, short_goal.id, "Tareas")
        long_ms = controller.goals(GoalKind.long_term)[0].milestones[0]
        short_ms = controller.goals(GoalKind.short_term)[0].milestones[0]

        first = controller.toggle_milestone(GoalKind.long_term, long_goal.id, long_ms.id)
        second = controller.toggle_milestone(GoalKind.short_term, short_goal.id, short_ms.id)

        assert (first.point_delta, first.xp_delta) == (50, 25)
        assert (second.point_delta, second.xp_delta) == (30, 15)
        assert controller.state.sublime_points == 130
        assert short_goal.id.startswith("sg-")

    def test_time_block_toggle(self, controller) -> None:
        block = controller.add_time_block(DAY, TimeBlockCreate(
            title="Foco", start_time="09:00", end_time="10:00", type=TimeBlockType.deep_work, sp_value=25,
        ))

        result = controller.toggle_time_block(DAY, block.id)

        assert result.point_delta == 25
        assert controller.time_blocks(DAY)[0].completed is True


# ============================================================================
# MISIÓN ACTIVA
# ============================================================================


class TestActiveQuest:

    def test_generic_quest_completes_on_start(self, controller) -> None:
        quest = add_quest(controller, reward=30)

        result = controller.start_quest(quest.id)

        assert result.changed and result.point_delta == 30
        assert controller.state.quests[0].completed is True
        assert controller.active_quest().phase == "idle"

    def test_breathing_quest_waits_for_confirmation(self, controller) -> None:
        quest = add_quest(controller, reward=25, type=QuestType.breathing)

        started = controller.start_quest(quest.id)
        active = controller.active_quest()

        assert not started.changed
        assert controller.state.sublime_points == 50
        assert active.phase == "active"
        assert active.quest.id == quest.id
        assert [p.seconds for p in active.breathing_phases] == [4, 4, 6]
        assert active.repetitions == 5
        assert controller.snapshot().active_quest_id == quest.id

        confirmed = controller.confirm_active_quest()

        assert confirmed.point_delta == 25
        assert controller.state.quests[0].completed is True
        assert controller.active_quest().phase == "completed"
        assert not controller.confirm_active_quest().changed

    def test_cancel_grants_nothing(self, controller) -> None:
        quest = add_quest(controller, type=QuestType.breathing)
        controller.start_quest(quest.id)

        controller.cancel_active_quest()

        assert controller.active_quest().phase == "idle"
        assert not controller.confirm_active_quest().changed
        assert controller.state.sublime_points == 50

    def test_completed_quest_cannot_be_started(self, controller) -> None:
        quest = add_quest(controller, type=QuestType.breathing)
        controller.toggle_quest(quest.id)

        assert not controller.start_quest(quest.id).changed
        assert controller.active_quest().phase == "idle"

    def test_deleting_active_quest_releases_it(self, controller) -> None:
        quest = add_quest(controller, type=QuestType.breathing)
        controller.start_quest(quest.id)

        controller.delete_quest(quest.id)

        assert controller.active_quest().phase == "idle"

    def test_starting_another_quest_replaces_active(self, controller) -> None:
        first = add_quest(controller, type=QuestType.breathing)
        second = add_quest(controller, type=QuestType.breathing)

        controller.start_quest(first.id)
        controller.start_quest(second.id)

        assert controller.active_quest().quest.id == second.id


# ============================================================================
# SUGERENCIAS
# ============================================================================


class TestSuggestions:

    @pytest.mark.asyncio
    async def test_suggested_habits_are_appended(self, storage) -> None:
        suggestions = FakeSuggestions(habits=[HabitSuggestion(name="Esbozar"), HabitSuggestion()])
        controller = AppController(AppState(), storage, suggestions, max_age=None, tz_name="UTC")
        controller.add_habit(HabitCreate(name="Leer"))

        added = await controller.suggest_habits()

        assert [h.name for h in controller.state.habits] == ["Leer", "Esbozar", "Nuevo hábito"]
        assert [h.sp_value for h in added] == [15, 15]

    @pytest.mark.asyncio
    async def test_suggested_quests_are_generic(self, storage) -> None:
        suggestions = FakeSuggestions(quests=[
            QuestSuggestion(title="Tutorial", description="2 horas", reward=50),
        ])
        controller = AppController(AppState(), storage, suggestions, max_age=None, tz_name="UTC")

        added = await controller.suggest_quests()

        assert len(added) == 1
        assert controller.state.quests[-1].type == QuestType.generic

    @pytest.mark.asyncio
    async def test_failed_suggestions_leave_collections_untouched(self, controller) -> None:
        controller.add_habit(HabitCreate(name="Leer"))
        points = controller.state.sublime_points

        assert await controller.suggest_habits() == []
        assert await controller.suggest_quests() == []
        assert len(controller.state.habits) == 1
        assert controller.state.quests == []
        assert controller.state.sublime_points == points
