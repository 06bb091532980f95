"""Fixtures comunes: BD SQLite en memoria, almacén, controlador y cliente HTTP."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from controller import AppController, AppState
from database import init_db
from storage import StateStorage


# ============================================================================
# DOBLES DE PRUEBA
# ============================================================================


class FakeSuggestions:
    """Sustituye a SuggestionClient: devuelve listas fijas y anota las llamadas."""

    def __init__(self, habits=None, quests=None):
        self.habits = habits or []
        self.quests = quests or []
        self.calls = []

    async def suggest_habits(self, goals):
        self.calls.append(("habits", len(goals)))
        return list(self.habits)

    async def suggest_quests(self, goals, habits):
        self.calls.append(("quests", len(goals), len(habits)))
        return list(self.quests)


class BrokenSession:
    """Sesión que falla en todo, como una BD llena o bloqueada."""

    def _fail(self, *args, **kwargs):
        raise OperationalError("UPDATE state_records", {}, Exception("database or disk is full"))

    get = add = delete = commit = query = _fail

    def rollback(self):
        pass

    def close(self):
        pass


class FlakySessionFactory:
    """Fábrica de sesiones que se puede "romper" y "arreglar" durante un test."""

    def __init__(self, real_factory):
        self.real_factory = real_factory
        self.broken = False
        self.on_open = None
        # on_open → se ejecuta una sola vez al abrir la siguiente sesión

    def __call__(self):
        if self.on_open is not None:
            hook, self.on_open = self.on_open, None
            hook()
        return BrokenSession() if self.broken else self.real_factory()


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def flaky_factory(session_factory):
    return FlakySessionFactory(session_factory)


@pytest.fixture
def storage(session_factory):
    return StateStorage(session_factory=session_factory)


@pytest.fixture
def suggestions():
    return FakeSuggestions()


@pytest.fixture
def controller(storage, suggestions):
    """Controlador con estado vacío (sin datos iniciales) y 50 SP."""
    return AppController(AppState(), storage, suggestions, max_age=None, tz_name="UTC")


@pytest.fixture
def client(controller):
    from main import app, get_controller

    app.dependency_overrides[get_controller] = lambda: controller
    yield TestClient(app)
    app.dependency_overrides.clear()
