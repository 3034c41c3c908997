from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from smartcanteen.config import get_settings

DATABASE_URL = get_settings().database_url

# SQLite connections are handed between FastAPI's worker threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Register tables on Base before creating them
    import smartcanteen.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
