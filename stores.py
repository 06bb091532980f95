"""
=============================================================================
STORES.PY — Colecciones de entidades
=============================================================================
Cuatro colecciones independientes:
  - Hábitos                 → list[Habit]
  - Objetivos (largo/corto) → list[Goal]
  - Agenda                  → dict[fecha, list[TimeBlock]] ordenada por hora
  - Misiones                → list[Quest]

Las funciones NO modifican la colección recibida: devuelven una nueva.
Añadir, editar o borrar nunca toca puntos ni XP (eso solo lo hacen los toggles).

¿Crear o actualizar?
  El que llama lo dice explícitamente con Create(datos) o Update(entidad).
  Nada de adivinar mirando si los datos traen "id".
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from gamification import SUGGESTED_HABIT_SP
from models import QuestType
from schemas import (
    Habit, HabitCreate, HabitSuggestion,
    Goal, GoalCreate, Milestone,
    TimeBlock, TimeBlockCreate,
    Quest, QuestCreate, QuestSuggestion,
)

E = TypeVar("E")
D = TypeVar("D")


def new_id(prefix: str) -> str:
    """Id único para una entidad nueva: 'h-3f2a...'"""
    return f"{prefix}-{uuid.uuid4().hex}"


# =============================================================================
# ===================== CREATE / UPDATE =======================================
# =============================================================================

@dataclass(frozen=True)
class Create(Generic[D]):
    data: D

@dataclass(frozen=True)
class Update(Generic[E]):
    entity: E


SaveAction = Union[Create, Update]


# =============================================================================
# ===================== OPERACIONES GENÉRICAS =================================
# =============================================================================

def find_item(items: list, item_id: str):
    return next((item for item in items if item.id == item_id), None)


def add_item(items: list, item) -> list:
    """Añade al PRINCIPIO (lo más nuevo arriba)"""
    return [item, *items]


def replace_item(items: list, item) -> list:
    """Reemplaza la entidad con el mismo id. Si no existe, no cambia nada."""
    return [item if existing.id == item.id else existing for existing in items]


def remove_item(items: list, item_id: str) -> list:
    return [item for item in items if item.id != item_id]


def save_item(items: list, action: SaveAction, factory: Callable) -> list:
    if isinstance(action, Create):
        return add_item(items, factory(action.data))
    return replace_item(items, action.entity)


# =============================================================================
# ===================== FÁBRICAS DE ENTIDADES =================================
# =============================================================================

def new_habit(data: HabitCreate) -> Habit:
    return Habit(id=new_id("h"), **data.model_dump(), streak=0, completed_on=[])


def habit_from_suggestion(suggestion: HabitSuggestion) -> Habit:
    return Habit(
        id=new_id("h"),
        name=suggestion.name or "Nuevo hábito",
        description=suggestion.description or "Un nuevo hábito útil.",
        sp_value=SUGGESTED_HABIT_SP,
        streak=0,
        completed_on=[],
    )


def new_goal(data: GoalCreate, prefix: str = "g") -> Goal:
    return Goal(id=new_id(prefix), **data.model_dump(), milestones=[])


def new_milestone(name: str) -> Milestone:
    return Milestone(id=new_id("m"), name=name, completed=False)


def add_milestone(goals: list[Goal], goal_id: str, name: str) -> list[Goal]:
    """Añade un hito (al final) a un objetivo. Si el objetivo no existe, no-op."""
    goal = find_item(goals, goal_id)
    if goal is None:
        return goals
    updated = goal.model_copy(update={"milestones": [*goal.milestones, new_milestone(name)]})
    return replace_item(goals, updated)


def new_time_block(data: TimeBlockCreate) -> TimeBlock:
    return TimeBlock(id=new_id("tb"), **data.model_dump())


def new_quest(data: QuestCreate) -> Quest:
    return Quest(id=new_id("q"), **data.model_dump(), completed=False)


def quest_from_suggestion(suggestion: QuestSuggestion) -> Quest:
    return Quest(
        id=new_id("q"),
        title=suggestion.title,
        description=suggestion.description,
        reward=suggestion.reward,
        completed=False,
        type=QuestType.generic,
    )


# =============================================================================
# ===================== AGENDA (por fecha) ====================================
# =============================================================================
# Los bloques de cada día se reordenan por hora de inicio en cada alta/edición.
# Las horas son "HH:MM", así que el orden alfabético es el orden horario.

def sort_blocks(blocks: list[TimeBlock]) -> list[TimeBlock]:
    return sorted(blocks, key=lambda b: b.start_time)


def blocks_for(schedules: dict[str, list[TimeBlock]], day: str) -> list[TimeBlock]:
    return schedules.get(day, [])


def add_time_block(schedules: dict, day: str, block: TimeBlock) -> dict:
    return {**schedules, day: sort_blocks([*blocks_for(schedules, day), block])}


def update_time_block(schedules: dict, day: str, block: TimeBlock) -> dict:
    if day not in schedules:
        return schedules
    return {**schedules, day: sort_blocks(replace_item(blocks_for(schedules, day), block))}


def delete_time_block(schedules: dict, day: str, block_id: str) -> dict:
    if day not in schedules:
        return schedules
    return {**schedules, day: remove_item(blocks_for(schedules, day), block_id)}


def save_time_block(schedules: dict, day: str, action: SaveAction) -> dict:
    if isinstance(action, Create):
        return add_time_block(schedules, day, new_time_block(action.data))
    return update_time_block(schedules, day, action.entity)
