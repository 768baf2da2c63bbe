from sqlmodel import SQLModel, Session, create_engine

from parallel_life.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)


def create_db_models():
    # Import registers the tables on SQLModel.metadata
    from parallel_life.db import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
