# storefront/database.py
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

# ---------------------------------------------------------
# Device-local SQLite database
#
# - check_same_thread=False : FastAPI may run sync dependencies in a
#                             worker thread; the store itself is only
#                             written from the event loop thread.
# ---------------------------------------------------------


def create_local_engine(url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine backing the device-local store.

    Usage:

        engine = create_local_engine("sqlite:///./storefront_local.db")
        create_db_and_tables(engine)
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    # Import models so SQLModel metadata is populated before create_all()
    from storefront.models import local as _local_models  # noqa: F401

    SQLModel.metadata.create_all(engine)
