from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config.llm_config import RATE_LIMIT_DATABASE_URL

Base = declarative_base()

_IN_MEMORY_SQLITE_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_rate_limit_engine(url: str = RATE_LIMIT_DATABASE_URL) -> Engine:
    if url in _IN_MEMORY_SQLITE_URLS:
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,  # Check connection health before checking out
        connect_args=connect_args,
    )


def init_db(engine: Engine) -> None:
    # Registers the ORM models on Base.metadata
    from .models import RateLimitRecordRow  # noqa

    Base.metadata.create_all(engine)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)
