"""
=============================================================================
MAIN.PY — La API de SublimeQuest
=============================================================================
Cada acción de la interfaz es un endpoint. Todos delegan en el AppController,
que es el único que toca el estado.

Organización por secciones:
  1. STATE       → Vista general, avatar
  2. HABITS      → CRUD, marcar/desmarcar, sugerencias
  3. GOALS       → CRUD de objetivos (largo y corto plazo), hitos
  4. SCHEDULE    → CRUD de bloques de tiempo por día, marcar/desmarcar
  5. QUESTS      → CRUD, empezar, completar, misión activa, sugerencias

Ids inexistentes NO son un error: la operación no hace nada y se devuelve
el estado actual (en los toggles, changed=false).

Los endpoints son async: corren todos en el mismo hilo (el event loop),
así que dos eventos nunca se pisan.
"""

import logging
import traceback
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from controller import AppController
from database import init_db
from gamification import get_level_info
from models import GoalKind
from scheduler import create_scheduler, start_scheduler, stop_scheduler
from schemas import *
from storage import StateStorage
from suggestions import SuggestionClient

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("sublimequest.api")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Arranque:
      1. Crear tablas si no existen
      2. Cargar el estado guardado (o los datos iniciales)
      3. Arrancar el scheduler de mantenimiento

    Apagado:
      - Parar el scheduler
    """
    logger.info("🚀 Arrancando SublimeQuest...")

    init_db()
    logger.info("✅ Base de datos inicializada")

    storage = StateStorage()
    app.state.controller = AppController.load(storage, SuggestionClient())

    create_scheduler(storage)
    start_scheduler()

    logger.info("🎉 SublimeQuest operativo")

    yield

    logger.info("🛑 Apagando SublimeQuest...")
    stop_scheduler()
    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="SublimeQuest API",
    description="Hábitos, objetivos, agenda y misiones convertidos en puntos y niveles",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: Request) -> AppController:
    """Dependencia: el controlador cargado en el arranque"""
    return request.app.state.controller


# ─────────────────────────────────────────────────────────────────────────────
# GLOBAL ERROR HANDLER
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura errores no manejados y devuelve detalles útiles"""
    error_msg = str(exc)
    error_trace = traceback.format_exc()
    logger.error(f"❌ Error no manejado en {request.url}: {error_msg}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    """Verifica que la API está viva"""
    return {
        "status": "ok",
        "app": "SublimeQuest",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# =============================================================================
# ===================== SECCIÓN 1: STATE ======================================
# =============================================================================

@app.get("/state", response_model=StateResponse, tags=["State"])
async def get_state(controller: AppController = Depends(get_controller)):
    """Todo el estado de la app de una vez (lo que pinta la pantalla principal)"""
    return controller.snapshot()


@app.get("/avatar", response_model=LevelInfo, tags=["State"])
async def get_avatar(controller: AppController = Depends(get_controller)):
    """Nivel, XP y % de la barra de progreso"""
    return get_level_info(controller.state.avatar)


# =============================================================================
# ===================== SECCIÓN 2: HABITS =====================================
# =============================================================================

@app.get("/habits", response_model=list[Habit], tags=["Habits"])
async def list_habits(controller: AppController = Depends(get_controller)):
    return controller.state.habits


@app.post("/habits", response_model=Habit, tags=["Habits"])
async def create_habit(data: HabitCreate, controller: AppController = Depends(get_controller)):
    """Crea un hábito (racha 0, sin días completados)"""
    return controller.add_habit(data)


@app.put("/habits/{habit_id}", response_model=list[Habit], tags=["Habits"])
async def update_habit(habit_id: str, data: HabitUpdate, controller: AppController = Depends(get_controller)):
    """Reemplaza un hábito. Devuelve la lista actualizada."""
    return controller.update_habit(Habit(id=habit_id, **data.model_dump()))


@app.delete("/habits/{habit_id}", response_model=list[Habit], tags=["Habits"])
async def delete_habit(habit_id: str, controller: AppController = Depends(get_controller)):
    return controller.delete_habit(habit_id)


@app.post("/habits/{habit_id}/toggle", response_model=ProgressResponse, tags=["Habits"])
async def toggle_habit(
    habit_id: str,
    day: Optional[str] = Query(None, pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    """
    Marca/desmarca un hábito para un día (por defecto, hoy).
    Marcar da sp_value SP y la misma XP; desmarcar lo quita.
    """
    return controller.toggle_habit(habit_id, day)


@app.post("/habits/suggest", response_model=list[Habit], tags=["Habits"])
async def suggest_habits(controller: AppController = Depends(get_controller)):
    """Pide hábitos a la IA y los añade. Devuelve solo los nuevos ([] si falla)."""
    return await controller.suggest_habits()


# =============================================================================
# ===================== SECCIÓN 3: GOALS ======================================
# =============================================================================

@app.get("/goals/{kind}", response_model=list[Goal], tags=["Goals"])
async def list_goals(kind: GoalKind, controller: AppController = Depends(get_controller)):
    return controller.goals(kind)


@app.post("/goals/{kind}", response_model=Goal, tags=["Goals"])
async def create_goal(kind: GoalKind, data: GoalCreate, controller: AppController = Depends(get_controller)):
    """Crea un objetivo (sin hitos todavía)"""
    return controller.add_goal(kind, data)


@app.put("/goals/{kind}/{goal_id}", response_model=list[Goal], tags=["Goals"])
async def update_goal(
    kind: GoalKind, goal_id: str, data: GoalUpdate,
    controller: AppController = Depends(get_controller)
):
    return controller.update_goal(kind, Goal(id=goal_id, **data.model_dump()))


@app.delete("/goals/{kind}/{goal_id}", response_model=list[Goal], tags=["Goals"])
async def delete_goal(kind: GoalKind, goal_id: str, controller: AppController = Depends(get_controller)):
    """Elimina un objetivo y sus hitos"""
    return controller.delete_goal(kind, goal_id)


@app.post("/goals/{kind}/{goal_id}/milestones", response_model=list[Goal], tags=["Goals"])
async def create_milestone(
    kind: GoalKind, goal_id: str, data: MilestoneCreate,
    controller: AppController = Depends(get_controller)
):
    return controller.add_milestone(kind, goal_id, data.name)


@app.patch("/goals/{kind}/{goal_id}/milestones/{milestone_id}", response_model=ProgressResponse, tags=["Goals"])
async def toggle_milestone(
    kind: GoalKind, goal_id: str, milestone_id: str,
    controller: AppController = Depends(get_controller)
):
    """
    Marca/desmarca un hito.
      largo plazo → ±50 SP / ±25 XP
      corto plazo → ±30 SP / ±15 XP
    """
    return controller.toggle_milestone(kind, goal_id, milestone_id)


# =============================================================================
# ===================== SECCIÓN 4: SCHEDULE ===================================
# =============================================================================

@app.get("/schedule/{day}", response_model=list[TimeBlock], tags=["Schedule"])
async def list_time_blocks(
    day: str = Path(pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    """Bloques del día, ordenados por hora de inicio"""
    return controller.time_blocks(day)


@app.post("/schedule/{day}", response_model=TimeBlock, tags=["Schedule"])
async def create_time_block(
    data: TimeBlockCreate,
    day: str = Path(pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    return controller.add_time_block(day, data)


@app.put("/schedule/{day}/{block_id}", response_model=list[TimeBlock], tags=["Schedule"])
async def update_time_block(
    block_id: str,
    data: TimeBlockUpdate,
    day: str = Path(pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    return controller.update_time_block(day, TimeBlock(id=block_id, **data.model_dump()))


@app.delete("/schedule/{day}/{block_id}", response_model=list[TimeBlock], tags=["Schedule"])
async def delete_time_block(
    block_id: str,
    day: str = Path(pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    return controller.delete_time_block(day, block_id)


@app.patch("/schedule/{day}/{block_id}/toggle", response_model=ProgressResponse, tags=["Schedule"])
async def toggle_time_block(
    block_id: str,
    day: str = Path(pattern=DATE_PATTERN),
    controller: AppController = Depends(get_controller)
):
    """Marca/desmarca un bloque: ±sp_value SP y XP"""
    return controller.toggle_time_block(day, block_id)


# =============================================================================
# ===================== SECCIÓN 5: QUESTS =====================================
# =============================================================================

@app.get("/quests", response_model=list[Quest], tags=["Quests"])
async def list_quests(controller: AppController = Depends(get_controller)):
    return controller.state.quests


@app.post("/quests", response_model=Quest, tags=["Quests"])
async def create_quest(data: QuestCreate, controller: AppController = Depends(get_controller)):
    return controller.add_quest(data)


@app.get("/quests/active", response_model=ActiveQuestResponse, tags=["Quests"])
async def get_active_quest(controller: AppController = Depends(get_controller)):
    """Misión en curso y guion del ejercicio de respiración"""
    return controller.active_quest()


@app.post("/quests/active/complete", response_model=ProgressResponse, tags=["Quests"])
async def complete_active_quest(controller: AppController = Depends(get_controller)):
    """El ejercicio guiado terminó → se completa la misión activa"""
    return controller.confirm_active_quest()


@app.post("/quests/active/cancel", response_model=ActiveQuestResponse, tags=["Quests"])
async def cancel_active_quest(controller: AppController = Depends(get_controller)):
    controller.cancel_active_quest()
    return controller.active_quest()


@app.post("/quests/suggest", response_model=list[Quest], tags=["Quests"])
async def suggest_quests(controller: AppController = Depends(get_controller)):
    """Pide misiones a la IA y las añade. Devuelve solo las nuevas ([] si falla)."""
    return await controller.suggest_quests()


@app.put("/quests/{quest_id}", response_model=list[Quest], tags=["Quests"])
async def update_quest(quest_id: str, data: QuestUpdate, controller: AppController = Depends(get_controller)):
    return controller.update_quest(Quest(id=quest_id, **data.model_dump()))


@app.delete("/quests/{quest_id}", response_model=list[Quest], tags=["Quests"])
async def delete_quest(quest_id: str, controller: AppController = Depends(get_controller)):
    return controller.delete_quest(quest_id)


@app.post("/quests/{quest_id}/toggle", response_model=ProgressResponse, tags=["Quests"])
async def toggle_quest(quest_id: str, controller: AppController = Depends(get_controller)):
    """Marca/desmarca una misión: ±reward SP y XP (el saldo nunca baja de 0)"""
    return controller.toggle_quest(quest_id)


@app.post("/quests/{quest_id}/start", response_model=ProgressResponse, tags=["Quests"])
async def start_quest(quest_id: str, controller: AppController = Depends(get_controller)):
    """
    generic   → se completa al instante
    breathing → queda activa; consulte GET /quests/active para el ejercicio
    """
    return controller.start_quest(quest_id)
