"""
=============================================================================
TOGGLES.PY — Completar / descompletar entidades
=============================================================================
Cada toggle traduce "lo marqué / lo desmarqué" en:
  - la entidad nueva (con su campo de completado actualizado)
  - cuántos SP y cuánta XP hay que sumar o restar

No aplican nada: el controlador recibe el ToggleResult y aplica puntos,
XP y entidad a la vez. Desmarcar devuelve exactamente lo que marcar dio.

Si el id no existe → changed=False y deltas a 0 (se ignora en silencio).
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from gamification import MilestoneReward
from schemas import Habit, Goal, TimeBlock, Quest

T = TypeVar("T")


@dataclass(frozen=True)
class ToggleResult(Generic[T]):
    value: T
    point_delta: int = 0
    xp_delta: int = 0
    changed: bool = True


def unchanged(value: T) -> ToggleResult[T]:
    return ToggleResult(value=value, changed=False)


# =============================================================================
# ===================== HÁBITOS ===============================================
# =============================================================================

def toggle_habit(habit: Habit, day: str) -> ToggleResult[Habit]:
    """
    Marca/desmarca un hábito para un día.
    1 SP = 1 XP en los hábitos. La racha sube o baja 1 (nunca por debajo de 0).
    """
    was_completed = day in habit.completed_on
    sign = -1 if was_completed else 1

    if was_completed:
        completed_on = [d for d in habit.completed_on if d != day]
    else:
        completed_on = [*habit.completed_on, day]

    updated = habit.model_copy(update={
        "completed_on": completed_on,
        "streak": max(0, habit.streak + sign),
    })
    delta = sign * habit.sp_value
    return ToggleResult(value=updated, point_delta=delta, xp_delta=delta)


# =============================================================================
# ===================== HITOS DE OBJETIVOS ====================================
# =============================================================================

def toggle_milestone(goal: Goal, milestone_id: str, reward: MilestoneReward) -> ToggleResult[Goal]:
    """La recompensa depende de la colección (largo o corto plazo), no del hito"""
    milestone = next((m for m in goal.milestones if m.id == milestone_id), None)
    if milestone is None:
        return unchanged(goal)

    is_now_completed = not milestone.completed
    milestones = [
        m.model_copy(update={"completed": is_now_completed}) if m.id == milestone_id else m
        for m in goal.milestones
    ]
    sign = 1 if is_now_completed else -1
    return ToggleResult(
        value=goal.model_copy(update={"milestones": milestones}),
        point_delta=sign * reward.sp,
        xp_delta=sign * reward.xp,
    )


# =============================================================================
# ===================== BLOQUES DE TIEMPO =====================================
# =============================================================================

def toggle_time_block(blocks: list[TimeBlock], block_id: str) -> ToggleResult[list[TimeBlock]]:
    block = next((b for b in blocks if b.id == block_id), None)
    if block is None:
        return unchanged(blocks)

    is_now_completed = not block.completed
    updated = [
        b.model_copy(update={"completed": is_now_completed}) if b.id == block_id else b
        for b in blocks
    ]
    delta = block.sp_value if is_now_completed else -block.sp_value
    return ToggleResult(value=updated, point_delta=delta, xp_delta=delta)


# =============================================================================
# ===================== MISIONES ==============================================
# =============================================================================

def toggle_quest(quest: Quest) -> ToggleResult[Quest]:
    is_now_completed = not quest.completed
    delta = quest.reward if is_now_completed else -quest.reward
    return ToggleResult(
        value=quest.model_copy(update={"completed": is_now_completed}),
        point_delta=delta,
        xp_delta=delta,
    )
