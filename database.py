"""
=============================================================================
DATABASE.PY — Configuración del almacenamiento local
=============================================================================
SublimeQuest es una app de un solo usuario. Todo su estado (avatar, puntos,
hábitos, objetivos, agenda y misiones) se guarda como registros clave/valor
en una base de datos local.

Por defecto usa SQLite (un archivo .db junto a la app).
Si existe la variable de entorno DATABASE_URL, se usa esa URL.

SQLAlchemy: librería para hablar con la base de datos usando Python en vez
de escribir SQL directamente.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sublimequest.db")


def make_engine(url: str = DATABASE_URL):
    """
    Crea un engine para la URL dada.
    connect_args={"check_same_thread": False} → solo necesario para SQLite,
    porque el scheduler y la API pueden tocar la BD desde hilos distintos.
    """
    engine_args = {}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
    return create_engine(url, echo=False, **engine_args)


engine = make_engine()

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────
# SessionLocal es una "fábrica" de sesiones. El almacenamiento abre una por
# operación y la cierra al terminar.

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def init_db(bind=None):
    """
    Crea todas las tablas si no existen.
    Se llama una vez al arrancar (y en los tests, con su propio engine).
    """
    # Importar los modelos para que se registren en Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
