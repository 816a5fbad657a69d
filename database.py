from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import Settings

connect_args = {}
if Settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI may hand the session to a different thread than the one that created it
    connect_args["check_same_thread"] = False

engine = create_engine(Settings.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
