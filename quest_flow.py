"""
=============================================================================
QUEST_FLOW.PY — Misión activa (ejercicio guiado)
=============================================================================
Las misiones "breathing" no se completan al empezarlas: primero hay que
hacer el ejercicio de respiración. Mientras tanto la misión está ACTIVA.

Estados:
  idle                → no hay misión en curso
  active(quest_id)    → ejercicio en marcha
  completed(quest_id) → el ejercicio terminó y la misión se completó

Transiciones:
  start    → active      (si ya había otra activa, se reemplaza)
  confirm  → completed   (solo desde active)
  cancel   → idle
"""

from dataclasses import dataclass
from typing import Optional
import enum

# Guion del ejercicio: 5 repeticiones de (inhala 4s, mantén 4s, exhala 6s)
BREATHING_PHASES = (
    ("Inhala", 4),
    ("Mantén", 4),
    ("Exhala", 6),
)
BREATHING_REPETITIONS = 5


class QuestPhase(str, enum.Enum):
    idle = "idle"
    active = "active"
    completed = "completed"


@dataclass(frozen=True)
class QuestFlow:
    phase: QuestPhase = QuestPhase.idle
    quest_id: Optional[str] = None

    @property
    def active_quest_id(self) -> Optional[str]:
        """Id de la misión en curso (solo si está activa)"""
        return self.quest_id if self.phase == QuestPhase.active else None

    def start(self, quest_id: str) -> "QuestFlow":
        return QuestFlow(QuestPhase.active, quest_id)

    def confirm(self) -> "QuestFlow":
        if self.phase != QuestPhase.active:
            return self
        return QuestFlow(QuestPhase.completed, self.quest_id)

    def cancel(self) -> "QuestFlow":
        return QuestFlow()

    def release(self, quest_id: str) -> "QuestFlow":
        """
        La misión dejó de estar disponible (completada por otra vía o borrada).
        Si era la activa, volvemos a idle.
        """
        if self.active_quest_id == quest_id:
            return QuestFlow()
        return self
