from typing import Iterator

from fastapi import Request
from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings

# Base para los modelos ORM
Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        # in-memory sqlite has to share one connection across threads
        return create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        future=True,
        echo=False,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


# Dependencia para usar en FastAPI
def get_db(request: Request) -> Iterator[Session]:
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


# JSONB en Postgres, JSON genérico en sqlite (tests / dev local)
JSONType = JSON().with_variant(JSONB(), "postgresql")
