"""
=============================================================================
SCHEMAS.PY — Entidades y esquemas de validación (Pydantic)
=============================================================================
Aquí viven las ENTIDADES del juego (Avatar, Habit, Goal, TimeBlock, Quest)
y los esquemas que acepta/devuelve la API.

Las entidades son también el formato en que se guarda el estado: se
serializan con model_dump(mode="json") y se validan de vuelta al cargar.

Convención de nombres:
  XxxCreate → datos para crear algo nuevo (POST). El id lo pone el servidor.
  XxxUpdate → datos completos para reemplazar algo (PUT).
  XxxResponse → lo que devuelve la API cuando no es directamente una entidad.
"""

import re
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional

from models import TimeBlockType, QuestType

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# =============================================================================
# ===================== AVATAR ================================================
# =============================================================================

class Avatar(BaseModel):
    """Nivel y experiencia del avatar. Solo lo modifica add_experience()."""
    level: int = Field(default=1, ge=1)
    current_xp: int = Field(default=0, ge=0)
    xp_to_next_level: int = Field(default=100, gt=0)

class LevelInfo(BaseModel):
    level: int
    current_xp: int
    xp_to_next_level: int
    xp_progress: float


# =============================================================================
# ===================== HABITS ================================================
# =============================================================================

class Habit(BaseModel):
    id: str
    name: str
    description: str = ""
    sp_value: int = Field(gt=0)
    streak: int = Field(default=0, ge=0)
    completed_on: list[str] = []
    # completed_on → fechas "YYYY-MM-DD" (sin repetir) en que se completó

class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    sp_value: int = Field(default=10, gt=0)

class HabitUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    sp_value: int = Field(gt=0)
    streak: int = Field(default=0, ge=0)
    completed_on: list[str] = []

    @field_validator("completed_on")
    @classmethod
    def check_completed_on(cls, days: list[str]) -> list[str]:
        """Fechas "YYYY-MM-DD" y sin repetir"""
        for day in days:
            if not re.match(DATE_PATTERN, day):
                raise ValueError(f"Fecha inválida: {day!r} (formato YYYY-MM-DD)")
        if len(set(days)) != len(days):
            raise ValueError("completed_on no puede repetir fechas")
        return days

class HabitSuggestion(BaseModel):
    """Hábito propuesto por el generador de sugerencias"""
    name: Optional[str] = None
    description: Optional[str] = None


# =============================================================================
# ===================== GOALS =================================================
# =============================================================================

class Milestone(BaseModel):
    id: str
    name: str
    completed: bool = False

class Goal(BaseModel):
    id: str
    name: str
    description: str = ""
    milestones: list[Milestone] = []

class GoalCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""

class GoalUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    milestones: list[Milestone] = []

class MilestoneCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


# =============================================================================
# ===================== SCHEDULE (TIME BLOCKS) ================================
# =============================================================================

class TimeBlock(BaseModel):
    id: str
    title: str
    start_time: str
    end_time: str
    type: TimeBlockType
    completed: bool = False
    sp_value: int = Field(default=0, ge=0)

class TimeBlockCreate(BaseModel):
    """
    Datos de un bloque nuevo o editado.
    La regla "empieza antes de terminar" se valida AQUÍ, en la entrada,
    no en el bloque guardado.
    """
    title: str = Field(min_length=1, max_length=150)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    type: TimeBlockType = TimeBlockType.deep_work
    completed: bool = False
    sp_value: int = Field(default=10, ge=0)

    @model_validator(mode="after")
    def check_time_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("La hora de inicio debe ser anterior a la hora de fin")
        return self

class TimeBlockUpdate(TimeBlockCreate):
    pass


# =============================================================================
# ===================== QUESTS ================================================
# =============================================================================

class Quest(BaseModel):
    id: str
    title: str
    description: str = ""
    reward: int = Field(ge=0)
    completed: bool = False
    type: QuestType = QuestType.generic

class QuestCreate(BaseModel):
    title: str = Field(min_length=1, max_length=150)
    description: str = Field(min_length=1)
    reward: int = Field(default=25, ge=0)
    type: QuestType = QuestType.generic

class QuestUpdate(QuestCreate):
    completed: bool = False

class QuestSuggestion(BaseModel):
    """Misión propuesta por el generador de sugerencias (siempre genérica)"""
    title: str
    description: str
    reward: int = Field(ge=0)
    type: QuestType = QuestType.generic


class BreathingPhase(BaseModel):
    name: str
    seconds: int

class ActiveQuestResponse(BaseModel):
    phase: str
    quest: Optional[Quest] = None
    breathing_phases: list[BreathingPhase] = []
    repetitions: int = 0


# =============================================================================
# ===================== RESPUESTAS DE PROGRESO ================================
# =============================================================================

class ProgressResponse(BaseModel):
    """
    Resultado de un toggle:
      {
        "changed": true,
        "point_delta": 10,
        "xp_delta": 10,
        "sublime_points": 60,
        "avatar": {"level": 1, "current_xp": 10, "xp_to_next_level": 100},
        "leveled_up": false
      }
    changed=false → el id no existía (no-op silencioso).
    """
    changed: bool
    point_delta: int = 0
    xp_delta: int = 0
    sublime_points: int
    avatar: Avatar
    leveled_up: bool = False

class StateResponse(BaseModel):
    avatar: Avatar
    level: LevelInfo
    sublime_points: int
    habits: list[Habit]
    goals: list[Goal]
    short_term_goals: list[Goal]
    schedules: dict[str, list[TimeBlock]]
    quests: list[Quest]
    active_quest_id: Optional[str] = None
