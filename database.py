from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config import DATABASE_URL


def make_engine(url: str = DATABASE_URL):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

Base = declarative_base()


def init_db(bind=None):
    # Models have to be imported before create_all so their tables are registered
    from models import booking, resource, review, user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
