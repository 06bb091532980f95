"""
=============================================================================
CONTROLLER.PY — Estado de la aplicación y eventos
=============================================================================
El AppController es el ÚNICO dueño del estado:

  AppState
  ├── avatar             (nivel / XP)
  ├── sublime_points     (saldo de SP)
  ├── habits[]
  ├── goals[]            (largo plazo)
  ├── short_term_goals[] (corto plazo)
  ├── schedules{fecha: [bloques]}
  └── quests[]
  (+ quest_flow: la misión activa, no se guarda)

Cada evento de la interfaz = un método. Flujo de un toggle:
  1. Leer la entidad actual
  2. Calcular (entidad nueva, ΔSP, ΔXP) con toggles.py
  3. Aplicar SP y XP con gamification.py
  4. Guardar la entidad nueva
  5. Persistir las rebanadas tocadas con StateStorage

Todo es síncrono salvo las sugerencias (red), que solo AÑADEN entidades
cuando llegan y nunca bloquean los puntos.
"""

import logging
import os
from datetime import datetime
from functools import partial
from typing import Optional

import pytz
from pydantic import BaseModel, TypeAdapter, ValidationError

from gamification import (
    INITIAL_SUBLIME_POINTS, MILESTONE_REWARDS, add_experience, apply_points, get_level_info
)
from models import GoalKind, QuestType, TimeBlockType
from quest_flow import BREATHING_PHASES, BREATHING_REPETITIONS, QuestFlow
from schemas import (
    Avatar, Habit, HabitCreate, Goal, GoalCreate, Milestone,
    TimeBlock, TimeBlockCreate, Quest, QuestCreate,
    ProgressResponse, StateResponse, ActiveQuestResponse, BreathingPhase,
)
from storage import StateStorage
from stores import (
    Create, Update, SaveAction,
    find_item, replace_item, remove_item, save_item, new_id,
    new_habit, habit_from_suggestion, new_goal, add_milestone,
    new_quest, quest_from_suggestion,
    blocks_for, save_time_block, delete_time_block,
)
from suggestions import SuggestionClient
import toggles

logger = logging.getLogger("sublimequest.controller")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")
# APP_TIMEZONE → zona horaria con la que se decide qué día es "hoy"

_max_age_days = os.getenv("STATE_MAX_AGE_DAYS")
STATE_MAX_AGE = int(_max_age_days) * 86400 if _max_age_days else None
# STATE_MAX_AGE → segundos de vida de cada rebanada guardada (None = no caduca)


def today_string(tz_name: str = APP_TIMEZONE) -> str:
    """Fecha de hoy 'YYYY-MM-DD' en la zona horaria de la app"""
    return datetime.now(pytz.timezone(tz_name)).date().isoformat()


# =============================================================================
# ===================== ESTADO ================================================
# =============================================================================

class AppState(BaseModel):
    avatar: Avatar = Avatar()
    sublime_points: int = INITIAL_SUBLIME_POINTS
    habits: list[Habit] = []
    goals: list[Goal] = []
    short_term_goals: list[Goal] = []
    schedules: dict[str, list[TimeBlock]] = {}
    quests: list[Quest] = []


# Rebanada del estado → (clave en el almacén, validador)
SLICES = {
    "avatar": ("sublime_avatar", TypeAdapter(Avatar)),
    "sublime_points": ("sublime_points", TypeAdapter(int)),
    "habits": ("sublime_habits", TypeAdapter(list[Habit])),
    "goals": ("sublime_goals", TypeAdapter(list[Goal])),
    "short_term_goals": ("sublime_short_term_goals", TypeAdapter(list[Goal])),
    "schedules": ("sublime_schedules", TypeAdapter(dict[str, list[TimeBlock]])),
    "quests": ("sublime_quests", TypeAdapter(list[Quest])),
}

GOAL_SLICES = {
    GoalKind.long_term: ("goals", "g"),
    GoalKind.short_term: ("short_term_goals", "sg"),
}


# =============================================================================
# ===================== DATOS INICIALES =======================================
# =============================================================================
# Lo que ve el usuario la primera vez que abre la app.

def build_seed_state(today: str) -> AppState:
    def habit(name, description, sp_value, streak):
        return Habit(id=new_id("h"), name=name, description=description,
                     sp_value=sp_value, streak=streak, completed_on=[])

    def goal(prefix, name, description, milestones):
        return Goal(
            id=new_id(prefix), name=name, description=description,
            milestones=[Milestone(id=new_id("m"), name=n, completed=c) for n, c in milestones],
        )

    return AppState(
        habits=[
            habit("Meditar 10 minutos", "Gana claridad y foco para el día.", 10, 3),
            habit("Leer investigación sobre IA", "Mantente al día de las últimas tendencias en IA.", 20, 7),
            habit("Escribir ideas de negocio", "Cultiva la creatividad y encuentra nuevas oportunidades.", 15, 1),
        ],
        goals=[
            goal("g", "Prototipo de IA para aeropuertos",
                 "Desarrollar un prototipo funcional de un sistema de IA innovador para aeropuertos.",
                 [("Generar 5 ideas clave", True),
                  ("Definir las funciones del prototipo", False),
                  ("Desarrollar la prueba de concepto", False)]),
        ],
        short_term_goals=[
            goal("sg", "Cerrar el plan del trimestre",
                 "Definir tareas, asignar recursos y fijar plazos para el próximo trimestre.",
                 [("Redactar la lista inicial de tareas", True),
                  ("Recoger feedback de los responsables", False),
                  ("Publicar el plan final", False)]),
        ],
        schedules={
            today: [
                TimeBlock(id=new_id("tb"), title="Trabajo profundo: prototipo IA", start_time="09:00",
                          end_time="11:30", type=TimeBlockType.deep_work, completed=False, sp_value=25),
                TimeBlock(id=new_id("tb"), title="Leer investigación sobre IA", start_time="12:00",
                          end_time="13:00", type=TimeBlockType.learning, completed=True, sp_value=15),
            ]
        },
        quests=[
            Quest(id=new_id("q"), title="Misión de recuperación: reinicio rápido",
                  description="¿Te sientes descentrado? Haz 5 minutos de respiración para recuperar "
                              "el foco y proteger tus rachas.",
                  reward=25, completed=False, type=QuestType.breathing),
            Quest(id=new_id("q"), title="Sprint de planificación",
                  description="Dedica 15 minutos sin interrupciones a planificar el próximo hito "
                              "de tu gran proyecto.",
                  reward=30, completed=False, type=QuestType.generic),
        ],
    )


# =============================================================================
# ===================== CONTROLADOR ===========================================
# =============================================================================

class AppController:

    def __init__(
        self,
        state: AppState,
        storage: StateStorage,
        suggestions: SuggestionClient,
        max_age: Optional[int] = STATE_MAX_AGE,
        tz_name: str = APP_TIMEZONE,
    ):
        self.state = state
        self.storage = storage
        self.suggestions = suggestions
        self.max_age = max_age
        self.tz_name = tz_name
        self.quest_flow = QuestFlow()

    @classmethod
    def load(cls, storage: StateStorage, suggestions: SuggestionClient, **kwargs) -> "AppController":
        """
        Restaura el estado desde el almacén.
        Cada rebanada que falte (o no pase la validación) toma el valor inicial.
        """
        tz_name = kwargs.get("tz_name", APP_TIMEZONE)
        seed = build_seed_state(today_string(tz_name))
        values = {}
        for attr, (key, adapter) in SLICES.items():
            raw = storage.get(key)
            if raw is None:
                values[attr] = getattr(seed, attr)
                continue
            try:
                values[attr] = adapter.validate_python(raw)
            except ValidationError as e:
                logger.warning(f"⚠️ '{key}' no es válido, se usan los datos iniciales: {e}")
                values[attr] = getattr(seed, attr)

        values["sublime_points"] = max(0, values["sublime_points"])
        controller = cls(AppState(**values), storage, suggestions, **kwargs)
        logger.info(f"✅ Estado cargado (nivel {controller.state.avatar.level}, "
                    f"{controller.state.sublime_points} SP)")
        return controller

    def today(self) -> str:
        return today_string(self.tz_name)

    # ─────────────────────────────────────────────────────────────────────────
    # PERSISTENCIA Y RECOMPENSAS
    # ─────────────────────────────────────────────────────────────────────────

    def _persist(self, *attrs: str) -> None:
        for attr in attrs:
            key, adapter = SLICES[attr]
            value = adapter.dump_python(getattr(self.state, attr), mode="json")
            self.storage.set(key, value, max_age=self.max_age)

    def _progress(self, result: toggles.ToggleResult, leveled_up: bool = False) -> ProgressResponse:
        return ProgressResponse(
            changed=result.changed,
            point_delta=result.point_delta,
            xp_delta=result.xp_delta,
            sublime_points=self.state.sublime_points,
            avatar=self.state.avatar,
            leveled_up=leveled_up,
        )

    def _unchanged(self) -> ProgressResponse:
        return self._progress(toggles.unchanged(None))

    def _commit(self, result: toggles.ToggleResult, attr: str, new_value) -> ProgressResponse:
        """
        Aplica un toggle completo: SP, XP y entidad van juntos.
        Se calcula todo antes de tocar el estado.
        """
        if not result.changed:
            return self._progress(result)

        points = apply_points(self.state.sublime_points, result.point_delta)
        avatar = add_experience(self.state.avatar, result.xp_delta)
        leveled_up = avatar.level > self.state.avatar.level

        self.state.sublime_points = points
        self.state.avatar = avatar
        setattr(self.state, attr, new_value)
        self._persist("sublime_points", "avatar", attr)

        if leveled_up:
            logger.info(f"⬆️ ¡Subida de nivel! Ahora nivel {avatar.level}")
        return self._progress(result, leveled_up)

    # ─────────────────────────────────────────────────────────────────────────
    # HÁBITOS
    # ─────────────────────────────────────────────────────────────────────────

    def toggle_habit(self, habit_id: str, day: Optional[str] = None) -> ProgressResponse:
        habit = find_item(self.state.habits, habit_id)
        if habit is None:
            return self._unchanged()
        result = toggles.toggle_habit(habit, day or self.today())
        return self._commit(result, "habits", replace_item(self.state.habits, result.value))

    def save_habit(self, action: SaveAction) -> list[Habit]:
        self.state.habits = save_item(self.state.habits, action, new_habit)
        self._persist("habits")
        return self.state.habits

    def add_habit(self, data: HabitCreate) -> Habit:
        self.save_habit(Create(data))
        logger.info(f"➕ Hábito creado: {data.name}")
        return self.state.habits[0]

    def update_habit(self, habit: Habit) -> list[Habit]:
        return self.save_habit(Update(habit))

    def delete_habit(self, habit_id: str) -> list[Habit]:
        self.state.habits = remove_item(self.state.habits, habit_id)
        self._persist("habits")
        return self.state.habits

    async def suggest_habits(self) -> list[Habit]:
        """Pide sugerencias y AÑADE al final los hábitos propuestos"""
        suggested = await self.suggestions.suggest_habits(self.state.goals)
        new_habits = [habit_from_suggestion(s) for s in suggested]
        if new_habits:
            self.state.habits = [*self.state.habits, *new_habits]
            self._persist("habits")
            logger.info(f"💡 {len(new_habits)} hábitos sugeridos añadidos")
        return new_habits

    # ─────────────────────────────────────────────────────────────────────────
    # OBJETIVOS (largo y corto plazo)
    # ─────────────────────────────────────────────────────────────────────────

    def goals(self, kind: GoalKind) -> list[Goal]:
        attr, _ = GOAL_SLICES[kind]
        return getattr(self.state, attr)

    def _set_goals(self, kind: GoalKind, goals: list[Goal]) -> list[Goal]:
        attr, _ = GOAL_SLICES[kind]
        setattr(self.state, attr, goals)
        self._persist(attr)
        return goals

    def toggle_milestone(self, kind: GoalKind, goal_id: str, milestone_id: str) -> ProgressResponse:
        attr, _ = GOAL_SLICES[kind]
        goals = self.goals(kind)
        goal = find_item(goals, goal_id)
        if goal is None:
            return self._unchanged()
        result = toggles.toggle_milestone(goal, milestone_id, MILESTONE_REWARDS[kind])
        return self._commit(result, attr, replace_item(goals, result.value))

    def save_goal(self, kind: GoalKind, action: SaveAction) -> list[Goal]:
        _, prefix = GOAL_SLICES[kind]
        factory = partial(new_goal, prefix=prefix)
        return self._set_goals(kind, save_item(self.goals(kind), action, factory))

    def add_goal(self, kind: GoalKind, data: GoalCreate) -> Goal:
        goals = self.save_goal(kind, Create(data))
        logger.info(f"🎯 Objetivo creado ({kind.value}): {data.name}")
        return goals[0]

    def update_goal(self, kind: GoalKind, goal: Goal) -> list[Goal]:
        return self.save_goal(kind, Update(goal))

    def delete_goal(self, kind: GoalKind, goal_id: str) -> list[Goal]:
        return self._set_goals(kind, remove_item(self.goals(kind), goal_id))

    def add_milestone(self, kind: GoalKind, goal_id: str, name: str) -> list[Goal]:
        return self._set_goals(kind, add_milestone(self.goals(kind), goal_id, name))

    # ─────────────────────────────────────────────────────────────────────────
    # AGENDA
    # ─────────────────────────────────────────────────────────────────────────

    def time_blocks(self, day: str) -> list[TimeBlock]:
        return blocks_for(self.state.schedules, day)

    def toggle_time_block(self, day: str, block_id: str) -> ProgressResponse:
        result = toggles.toggle_time_block(self.time_blocks(day), block_id)
        return self._commit(result, "schedules", {**self.state.schedules, day: result.value})

    def save_time_block(self, day: str, action: SaveAction) -> list[TimeBlock]:
        self.state.schedules = save_time_block(self.state.schedules, day, action)
        self._persist("schedules")
        return self.time_blocks(day)

    def add_time_block(self, day: str, data: TimeBlockCreate) -> TimeBlock:
        before = {b.id for b in self.time_blocks(day)}
        blocks = self.save_time_block(day, Create(data))
        return next(b for b in blocks if b.id not in before)

    def update_time_block(self, day: str, block: TimeBlock) -> list[TimeBlock]:
        return self.save_time_block(day, Update(block))

    def delete_time_block(self, day: str, block_id: str) -> list[TimeBlock]:
        self.state.schedules = delete_time_block(self.state.schedules, day, block_id)
        self._persist("schedules")
        return self.time_blocks(day)

    # ─────────────────────────────────────────────────────────────────────────
    # MISIONES
    # ─────────────────────────────────────────────────────────────────────────

    def toggle_quest(self, quest_id: str) -> ProgressResponse:
        quest = find_item(self.state.quests, quest_id)
        if quest is None:
            return self._unchanged()
        result = toggles.toggle_quest(quest)
        if result.value.completed:
            self.quest_flow = self.quest_flow.release(quest_id)
        return self._commit(result, "quests", replace_item(self.state.quests, result.value))

    def start_quest(self, quest_id: str) -> ProgressResponse:
        """
        generic   → se completa al instante
        breathing → queda ACTIVA hasta que el ejercicio guiado la confirme
        """
        quest = find_item(self.state.quests, quest_id)
        if quest is None or quest.completed:
            return self._unchanged()
        if quest.type == QuestType.generic:
            return self.toggle_quest(quest_id)

        self.quest_flow = self.quest_flow.start(quest_id)
        logger.info(f"🌬️ Misión guiada iniciada: {quest.title}")
        return self._unchanged()

    def confirm_active_quest(self) -> ProgressResponse:
        """El ejercicio guiado terminó: se completa la misión activa"""
        quest_id = self.quest_flow.active_quest_id
        quest = find_item(self.state.quests, quest_id) if quest_id else None
        if quest is None:
            self.quest_flow = self.quest_flow.cancel()
            return self._unchanged()

        self.quest_flow = self.quest_flow.confirm()
        if quest.completed:
            return self._unchanged()
        result = toggles.toggle_quest(quest)
        return self._commit(result, "quests", replace_item(self.state.quests, result.value))

    def cancel_active_quest(self) -> None:
        self.quest_flow = self.quest_flow.cancel()

    def active_quest(self) -> ActiveQuestResponse:
        quest_id = self.quest_flow.active_quest_id
        quest = find_item(self.state.quests, quest_id) if quest_id else None
        if quest is None:
            return ActiveQuestResponse(phase=self.quest_flow.phase.value)
        return ActiveQuestResponse(
            phase=self.quest_flow.phase.value,
            quest=quest,
            breathing_phases=[BreathingPhase(name=n, seconds=s) for n, s in BREATHING_PHASES],
            repetitions=BREATHING_REPETITIONS,
        )

    def save_quest(self, action: SaveAction) -> list[Quest]:
        self.state.quests = save_item(self.state.quests, action, new_quest)
        self._persist("quests")
        return self.state.quests

    def add_quest(self, data: QuestCreate) -> Quest:
        self.save_quest(Create(data))
        return self.state.quests[0]

    def update_quest(self, quest: Quest) -> list[Quest]:
        return self.save_quest(Update(quest))

    def delete_quest(self, quest_id: str) -> list[Quest]:
        self.state.quests = remove_item(self.state.quests, quest_id)
        self.quest_flow = self.quest_flow.release(quest_id)
        self._persist("quests")
        return self.state.quests

    async def suggest_quests(self) -> list[Quest]:
        suggested = await self.suggestions.suggest_quests(self.state.goals, self.state.habits)
        new_quests = [quest_from_suggestion(s) for s in suggested]
        if new_quests:
            self.state.quests = [*self.state.quests, *new_quests]
            self._persist("quests")
            logger.info(f"💡 {len(new_quests)} misiones sugeridas añadidas")
        return new_quests

    # ─────────────────────────────────────────────────────────────────────────
    # VISTA GENERAL
    # ─────────────────────────────────────────────────────────────────────────

    def snapshot(self) -> StateResponse:
        return StateResponse(
            **self.state.model_dump(),
            level=get_level_info(self.state.avatar),
            active_quest_id=self.quest_flow.active_quest_id,
        )
