from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from labtrack.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


_store = None


def get_store():
    """Dependency: the process-wide row store backed by DATABASE_URL."""
    global _store
    if _store is None:
        from labtrack.services.table_store import SqlTableStore

        _store = SqlTableStore(SessionLocal)
    return _store


def init_db():
    # Import models so Base.metadata knows about them
    import labtrack.models.sheet  # noqa: F401
    from labtrack.services.table_store import init_tables

    Base.metadata.create_all(bind=engine)
    init_tables(get_store())
