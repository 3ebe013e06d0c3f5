from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings


def build_engine(url: str, *, echo: bool = False) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=echo, **kwargs)


engine = build_engine(get_settings().database_url)


def init_db(bind: Engine = engine) -> None:
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
