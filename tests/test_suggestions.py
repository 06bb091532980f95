"""Tests del cliente de sugerencias con un cliente OpenAI falso."""

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from models import QuestType
from schemas import Goal, Habit
from suggestions import SuggestionClient, build_habits_prompt, build_quests_prompt

GOALS = [Goal(id="g-1", name="Prototipo de IA", description="Para aeropuertos")]
HABITS = [Habit(id="h-1", name="Meditar", sp_value=10)]


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(content=None, error=None) -> tuple[SuggestionClient, FakeCompletions]:
    completions = FakeCompletions(content, error)
    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return SuggestionClient(api_key="", model="gpt-4o-mini", timeout=5, client=fake_openai), completions


# ============================================================================
# PROMPTS
# ============================================================================


class TestPrompts:

    def test_habits_prompt_lists_goals(self) -> None:
        prompt = build_habits_prompt(GOALS)

        assert "- Prototipo de IA: Para aeropuertos" in prompt
        assert '"habits"' in prompt

    def test_quests_prompt_lists_goals_and_habits(self) -> None:
        prompt = build_quests_prompt(GOALS, HABITS)

        assert "- Prototipo de IA" in prompt
        assert "- Meditar" in prompt
        assert '"generic"' in prompt


# ============================================================================
# RESPUESTAS
# ============================================================================


class TestSuggestHabits:

    @pytest.mark.asyncio
    async def test_parses_json_response(self) -> None:
        content = json.dumps({"habits": [
            {"name": "Esbozar 1 idea", "description": "Alimenta el prototipo"},
            {"name": "Leer 1 paper"},
        ]})
        client, completions = make_client(content)

        result = await client.suggest_habits(GOALS)

        assert [s.name for s in result] == ["Esbozar 1 idea", "Leer 1 paper"]
        assert result[1].description is None
        assert completions.calls[0]["response_format"] == {"type": "json_object"}
        assert completions.calls[0]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_malformed_json_returns_empty(self) -> None:
        client, _ = make_client("esto no es json")

        assert await client.suggest_habits(GOALS) == []

    @pytest.mark.asyncio
    async def test_missing_list_returns_empty(self) -> None:
        client, _ = make_client(json.dumps({"ideas": []}))

        assert await client.suggest_habits(GOALS) == []

    @pytest.mark.asyncio
    async def test_api_error_returns_empty(self) -> None:
        client, _ = make_client(error=openai.OpenAIError("sin conexión"))

        assert await client.suggest_habits(GOALS) == []

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client, _ = make_client(error=openai.APITimeoutError(request=request))

        assert await client.suggest_habits(GOALS) == []

    @pytest.mark.asyncio
    async def test_disabled_without_api_key(self) -> None:
        client = SuggestionClient(api_key="")

        assert not client.enabled
        assert await client.suggest_habits(GOALS) == []


class TestSuggestQuests:

    @pytest.mark.asyncio
    async def test_parses_quests(self) -> None:
        content = json.dumps({"quests": [
            {"title": "Tutorial de 2 horas", "description": "Aprende algo nuevo", "reward": 60, "type": "generic"},
        ]})
        client, _ = make_client(content)

        result = await client.suggest_quests(GOALS, HABITS)

        assert len(result) == 1
        assert result[0].reward == 60
        assert result[0].type == QuestType.generic

    @pytest.mark.asyncio
    async def test_invalid_items_return_empty(self) -> None:
        content = json.dumps({"quests": [{"title": "Sin recompensa"}]})
        client, _ = make_client(content)

        assert await client.suggest_quests(GOALS, HABITS) == []
