"""
=============================================================================
SUGGESTIONS.PY — Sugerencias de hábitos y misiones con IA
=============================================================================
Pide a un modelo de OpenAI (modo JSON) ideas de:
  - Hábitos nuevos para los objetivos a largo plazo (3-5)
  - Misiones puntuales según objetivos y hábitos (2-3)

Es un "mejor esfuerzo": si no hay API key, la red falla, tarda demasiado o
la respuesta no tiene el formato esperado → se registra en el log y se
devuelve una lista vacía. Nunca lanza errores al que llama.
"""

import json
import logging
import os
from typing import Optional

import openai
from openai import AsyncOpenAI
from pydantic import TypeAdapter, ValidationError

from schemas import Goal, Habit, HabitSuggestion, QuestSuggestion

logger = logging.getLogger("sublimequest.suggestions")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
SUGGESTION_TIMEOUT = float(os.getenv("SUGGESTION_TIMEOUT", "30"))

_habits_adapter = TypeAdapter(list[HabitSuggestion])
_quests_adapter = TypeAdapter(list[QuestSuggestion])

SYSTEM_PROMPT = (
    "Eres el coach de SublimeQuest, una app de productividad gamificada. "
    "Respondes SIEMPRE con un único objeto JSON válido, sin texto adicional."
)


# =============================================================================
# ===================== PROMPTS ===============================================
# =============================================================================

def build_habits_prompt(goals: list[Goal]) -> str:
    goal_lines = "\n".join(f"- {g.name}: {g.description}" for g in goals)
    return f"""
A partir de los siguientes objetivos a largo plazo, sugiere 3-5 hábitos nuevos,
diarios o semanales, que ayuden a conseguirlos.
Deben ser concretos, accionables y lo bastante pequeños para encajar en la rutina diaria.
Evita hábitos que probablemente ya haga. Céntrate en hábitos creativos o de apoyo.

Mis objetivos:
{goal_lines}

Formato: {{"habits": [{{"name": "nombre corto y accionable", "description": "por qué ayuda a mis objetivos"}}]}}
"""


def build_quests_prompt(goals: list[Goal], habits: list[Habit]) -> str:
    goal_lines = "\n".join(f"- {g.name}" for g in goals)
    habit_lines = "\n".join(f"- {h.name}" for h in habits)
    return f"""
A partir de mis objetivos a largo plazo y mis hábitos diarios, sugiere 2-3 "misiones"
únicas y puntuales. Una misión es un reto concreto y corto que me saca un poco de la
rutina para acelerar el progreso.
Por ejemplo, si un objetivo es "Aprender una habilidad nueva", una misión podría ser
"Completar un tutorial de 2 horas sobre el tema".
Evita cosas que ya estén en mis hábitos.

Mis objetivos:
{goal_lines}

Mis hábitos:
{habit_lines}

Formato: {{"quests": [{{"title": "título corto y atractivo", "description": "descripción motivadora",
"reward": <SP entre 20 y 100>, "type": "generic"}}]}}
El "type" debe ser SIEMPRE "generic".
"""


# =============================================================================
# ===================== CLIENTE ===============================================
# =============================================================================

class SuggestionClient:

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_MODEL,
        timeout: float = SUGGESTION_TIMEOUT,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        if self.client is None:
            logger.warning("⚠️ OPENAI_API_KEY no configurada: las sugerencias están desactivadas")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def suggest_habits(self, goals: list[Goal]) -> list[HabitSuggestion]:
        items = await self._request(build_habits_prompt(goals), "habits")
        try:
            return _habits_adapter.validate_python(items)
        except ValidationError as e:
            logger.error(f"❌ Sugerencias de hábitos con formato inválido: {e}")
            return []

    async def suggest_quests(self, goals: list[Goal], habits: list[Habit]) -> list[QuestSuggestion]:
        items = await self._request(build_quests_prompt(goals, habits), "quests")
        try:
            return _quests_adapter.validate_python(items)
        except ValidationError as e:
            logger.error(f"❌ Sugerencias de misiones con formato inválido: {e}")
            return []

    async def _request(self, prompt: str, field: str) -> list:
        """Llama al modelo y devuelve la lista bajo `field` ([] ante cualquier fallo)"""
        if not self.enabled:
            return []

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.7,
                timeout=self.timeout,
            )
            content = (response.choices[0].message.content or "").strip()
        except openai.APITimeoutError:
            logger.warning(f"⌛ Timeout pidiendo sugerencias de {field}")
            return []
        except openai.OpenAIError as e:
            logger.error(f"❌ Error de OpenAI pidiendo sugerencias de {field}: {e}")
            return []

        try:
            data = json.loads(content)
        except ValueError as e:
            logger.error(f"❌ Respuesta no es JSON ({field}): {e}")
            return []

        items = data.get(field) if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.error(f"❌ Respuesta sin lista '{field}'")
            return []

        logger.info(f"💡 {len(items)} sugerencias de {field} recibidas")
        return items
