"""
=============================================================================
SCHEDULER.PY — Mantenimiento automático del almacén
=============================================================================
Tareas en segundo plano:
  1. Volcar a la BD lo que quedó guardado solo en memoria (si la BD falló)
  2. Borrar los registros caducados

Usa APScheduler con CronTrigger. Se arranca y se para en el lifespan de
la API (main.py).
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from storage import StateStorage

logger = logging.getLogger("sublimequest.scheduler")

scheduler: Optional[AsyncIOScheduler] = None


async def storage_maintenance(storage: StateStorage) -> dict:
    """
    Se ejecuta cada 15 minutos, en el event loop de la API (como los endpoints),
    así que nunca se cruza con un set() a medias.
    Devuelve {"flushed": n, "purged": m} (útil en los tests).
    """
    flushed = storage.flush_fallback()
    purged = storage.purge_expired()
    pending = storage.pending_keys
    if pending:
        logger.warning(f"⚠️ Siguen pendientes de volcar: {', '.join(pending)}")
    return {"flushed": flushed, "purged": purged}


def create_scheduler(storage: StateStorage) -> AsyncIOScheduler:
    """Crea y configura el scheduler con la tarea de mantenimiento"""
    global scheduler

    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        storage_maintenance,
        CronTrigger(minute="*/15"),
        args=[storage],
        id="storage_maintenance",
        name="Mantenimiento del almacén",
        replace_existing=True
    )

    logger.info("⏰ Scheduler configurado: mantenimiento del almacén cada 15 minutos")
    return scheduler


def start_scheduler():
    """Arranca el scheduler"""
    if scheduler and not scheduler.running:
        scheduler.start()
        logger.info("⏰ Scheduler arrancado")


def stop_scheduler():
    """Para el scheduler"""
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler parado")
