"""
=============================================================================
GAMIFICATION.PY — Motor de progresión
=============================================================================
Gestiona:
  - XP y niveles del avatar (curva ×1.5 por nivel)
  - Sublime Points (SP), la moneda que se gana completando cosas
  - Recompensas fijas por hito de objetivo

Todo aquí son funciones PURAS: reciben el estado actual y un delta, y
devuelven el estado nuevo. Guardarlo es cosa del controlador.
"""

import math
from typing import NamedTuple

from models import GoalKind
from schemas import Avatar, LevelInfo


# =============================================================================
# ===================== SISTEMA DE NIVELES ====================================
# =============================================================================
# Nivel 1 → 100 XP, nivel 2 → 150 XP, nivel 3 → 225 XP...
# Cada umbral es el anterior × 1.5 (redondeado hacia abajo).

INITIAL_XP_TO_NEXT_LEVEL = 100
XP_GROWTH_FACTOR = 1.5


def next_threshold(current: int) -> int:
    """XP necesario para el siguiente nivel a partir del umbral actual"""
    return math.floor(current * XP_GROWTH_FACTOR)


def add_experience(avatar: Avatar, xp_delta: int) -> Avatar:
    """
    Suma (o resta) XP al avatar y sube de nivel las veces que haga falta.

    Ejemplo: avatar nuevo + 250 XP
      250 - 100 → nivel 2, umbral 150
      150 - 150 → nivel 3, umbral 225
      resultado: {level: 3, current_xp: 0, xp_to_next_level: 225}

    Con XP negativo nunca se baja de nivel: la XP del nivel actual se queda en 0.
    """
    new_xp = avatar.current_xp + xp_delta
    level = avatar.level
    threshold = avatar.xp_to_next_level

    while new_xp >= threshold:
        new_xp -= threshold
        level += 1
        threshold = next_threshold(threshold)

    return Avatar(level=level, current_xp=max(0, new_xp), xp_to_next_level=threshold)


def get_level_info(avatar: Avatar) -> LevelInfo:
    """Información del nivel para el panel (incluye % de la barra de progreso)"""
    return LevelInfo(
        level=avatar.level,
        current_xp=avatar.current_xp,
        xp_to_next_level=avatar.xp_to_next_level,
        xp_progress=round((avatar.current_xp / avatar.xp_to_next_level) * 100, 1),
    )


# =============================================================================
# ===================== SUBLIME POINTS ========================================
# =============================================================================

INITIAL_SUBLIME_POINTS = 50


def apply_points(balance: int, delta: int) -> int:
    """Aplica un delta al saldo de SP. El saldo nunca baja de 0."""
    return max(0, balance + delta)


# =============================================================================
# ===================== RECOMPENSAS POR HITO ==================================
# =============================================================================

class MilestoneReward(NamedTuple):
    sp: int
    xp: int


MILESTONE_REWARDS = {
    GoalKind.long_term: MilestoneReward(sp=50, xp=25),
    GoalKind.short_term: MilestoneReward(sp=30, xp=15),
}

# SP que vale un hábito aceptado desde las sugerencias
SUGGESTED_HABIT_SP = 15
