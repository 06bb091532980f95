"""
=============================================================================
STORAGE.PY — Almacén clave/valor del estado
=============================================================================
Guarda cada "rebanada" del estado como JSON en la tabla state_records.

  storage.set("sublime_points", 120)
  storage.get("sublime_points", 50)  → 120

Caducidad opcional:
  storage.set("clave", valor, max_age=3600)
  → se guarda como {"value": valor, "timestamp": <ms>} y a la hora caduca.

Nunca lanza errores al que llama:
  - Registro caducado o corrupto → se borra y se devuelve el valor por defecto
  - La BD falla al escribir (disco lleno, bloqueada...) → el valor se queda en
    un almacén en memoria que tiene prioridad al leer hasta que se pueda
    volcar a la BD (flush_fallback, lo llama el scheduler).
"""

import json
import logging
import time
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import SessionLocal
from models import StateRecord, utc_now

logger = logging.getLogger("sublimequest.storage")

_MISSING = object()


class StateStorage:

    def __init__(self, session_factory=SessionLocal, clock: Callable[[], float] = time.time):
        self._session_factory = session_factory
        self._clock = clock
        self._fallback: dict[str, tuple[str, Optional[int]]] = {}
        # _fallback → {clave: (payload, max_age)} pendientes de volcar a la BD

    # ─────────────────────────────────────────────────────────────────────────
    # LECTURA
    # ─────────────────────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Devuelve el valor guardado, o default si no hay, caducó o está corrupto"""
        if key in self._fallback:
            payload, max_age = self._fallback[key]
        else:
            db = self._session_factory()
            try:
                record = db.get(StateRecord, key)
                if record is None:
                    return default
                payload, max_age = record.payload, record.max_age
            except SQLAlchemyError as e:
                logger.error(f"❌ Error leyendo '{key}': {e}")
                return default
            finally:
                db.close()

        value = self._decode(key, payload, max_age)
        if value is _MISSING:
            self.remove(key)
            return default
        return value

    def _decode(self, key: str, payload: str, max_age: Optional[int]) -> Any:
        try:
            data = json.loads(payload)
        except ValueError as e:
            logger.warning(f"⚠️ Valor corrupto en '{key}', se descarta: {e}")
            return _MISSING

        if max_age is None:
            return data

        if not isinstance(data, dict) or "value" not in data or "timestamp" not in data:
            logger.warning(f"⚠️ Envoltorio inválido en '{key}', se descarta")
            return _MISSING

        if self._is_expired(data["timestamp"], max_age):
            logger.info(f"⌛ '{key}' ha caducado")
            return _MISSING
        return data["value"]

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_expired(self, timestamp: Any, max_age: int) -> bool:
        if not isinstance(timestamp, (int, float)):
            return True
        return self._now_ms() - timestamp > max_age * 1000

    # ─────────────────────────────────────────────────────────────────────────
    # ESCRITURA
    # ─────────────────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any, max_age: Optional[int] = None) -> None:
        """
        Guarda un valor (debe ser serializable a JSON).
        max_age → segundos de vida. None = no caduca.
        """
        try:
            if max_age is None:
                payload = json.dumps(value, ensure_ascii=False)
            else:
                payload = json.dumps({"value": value, "timestamp": self._now_ms()}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"❌ No se pudo serializar '{key}': {e}")
            return

        if self._write(key, payload, max_age):
            self._fallback.pop(key, None)
        else:
            self._fallback[key] = (payload, max_age)
            logger.warning(f"⚠️ '{key}' guardado en memoria (BD no disponible)")

    def _write(self, key: str, payload: str, max_age: Optional[int], pending=None) -> bool:
        """
        pending → entrada de _fallback que se está volcando. Si set() la ha
        reemplazado mientras tanto, no se escribe: el valor nuevo manda.
        """
        db = self._session_factory()
        try:
            record = db.get(StateRecord, key)
            if record is None:
                db.add(StateRecord(key=key, payload=payload, max_age=max_age))
            else:
                record.payload = payload
                record.max_age = max_age
                record.updated_at = utc_now()
            if pending is not None and self._fallback.get(key) is not pending:
                db.rollback()
                logger.info(f"↩️ '{key}' cambió durante el volcado, se conserva el valor nuevo")
                return False
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error escribiendo '{key}': {e}")
            return False
        finally:
            db.close()

    def remove(self, key: str) -> None:
        self._fallback.pop(key, None)
        db = self._session_factory()
        try:
            record = db.get(StateRecord, key)
            if record is not None:
                db.delete(record)
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error borrando '{key}': {e}")
        finally:
            db.close()

    # ─────────────────────────────────────────────────────────────────────────
    # MANTENIMIENTO (lo ejecuta el scheduler)
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def pending_keys(self) -> list[str]:
        """Claves que solo están en memoria"""
        return list(self._fallback)

    def flush_fallback(self) -> int:
        """Intenta volcar a la BD lo que quedó en memoria. Devuelve cuántas claves volcó."""
        flushed = 0
        for key, entry in list(self._fallback.items()):
            payload, max_age = entry
            if self._write(key, payload, max_age, pending=entry):
                if self._fallback.get(key) is entry:
                    self._fallback.pop(key)
                flushed += 1
        if flushed:
            logger.info(f"💾 {flushed} registros volcados desde memoria a la BD")
        return flushed

    def purge_expired(self) -> int:
        """Borra los registros caducados (o con envoltorio corrupto). Devuelve cuántos."""
        db = self._session_factory()
        purged = 0
        try:
            records = db.query(StateRecord).filter(StateRecord.max_age != None).all()
            for record in records:
                try:
                    data = json.loads(record.payload)
                    expired = not isinstance(data, dict) or self._is_expired(data.get("timestamp"), record.max_age)
                except ValueError:
                    expired = True
                if expired:
                    db.delete(record)
                    purged += 1
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Error purgando registros caducados: {e}")
            return 0
        finally:
            db.close()

        if purged:
            logger.info(f"🧹 {purged} registros caducados eliminados")
        return purged
