"""
=============================================================================
MODELS.PY — Tipos predefinidos y tabla de almacenamiento
=============================================================================
SublimeQuest no tiene una tabla por entidad: cada "rebanada" del estado
(avatar, puntos, hábitos, objetivos...) se guarda serializada en JSON como
un registro clave/valor. Así el estado completo se puede restaurar tal cual
al arrancar.

  state_records
  ├── sublime_avatar            → {"level": 1, "current_xp": 0, ...}
  ├── sublime_points            → 50
  ├── sublime_habits            → [...]
  ├── sublime_goals             → [...]
  ├── sublime_short_term_goals  → [...]
  ├── sublime_schedules         → {"2025-01-31": [...]}
  └── sublime_quests            → [...]
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime
from database import Base
import enum


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class TimeBlockType(str, enum.Enum):
    """Tipo de bloque de tiempo en la agenda"""
    deep_work = "deep-work"    # 🧠 Trabajo profundo
    learning = "learning"      # 📚 Aprendizaje
    rest = "rest"              # 🛋️ Descanso
    planning = "planning"      # 🗺️ Planificación
    personal = "personal"      # 👤 Personal

class QuestType(str, enum.Enum):
    """Tipo de misión"""
    breathing = "breathing"  # Requiere completar el ejercicio guiado de respiración
    generic = "generic"      # Se completa al instante al empezarla

class GoalKind(str, enum.Enum):
    """Colección de objetivos (cada una con su propia recompensa por hito)"""
    long_term = "long_term"
    short_term = "short_term"


# =============================================================================
# ===================== TABLA: STATE RECORDS ==================================
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateRecord(Base):
    __tablename__ = "state_records"

    key = Column(String(100), primary_key=True)

    payload = Column(Text, nullable=False)
    # payload → JSON. Si el registro caduca, va envuelto: {"value": ..., "timestamp": ms}

    max_age = Column(Integer, nullable=True)
    # max_age → segundos de vida del registro (NULL = no caduca nunca)

    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
