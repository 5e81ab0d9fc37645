# core/db.py
from __future__ import annotations
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from core.errors import StoreUnavailable
from core.schema_registry import auto_discover, run_all

log = logging.getLogger(__name__)

SCHEMAS_DIR = Path(__file__).resolve().parents[1] / "schemas"

def get_engine(db_url: str) -> Engine:
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        engine = create_engine(db_url, future=True, poolclass=StaticPool,
                               connect_args={"check_same_thread": False})
    else:
        if db_url.startswith("sqlite:///"):
            db_file = db_url.replace("sqlite:///", "")
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(db_url, future=True)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()
    return engine

def init_db(engine: Engine) -> None:
    # import schemas/*.py so their @register installers are known, then run them
    auto_discover(SCHEMAS_DIR, package="schemas")
    run_all(engine)

@contextmanager
def transaction(engine_or_conn: Union[Engine, Connection]) -> Iterator[Connection]:
    """
    Yield a connection inside a transaction.

    An open Connection is reused as-is so the work joins the caller's transaction.
    Operational store failures become StoreUnavailable; IntegrityError is left for
    the caller, which knows what a constraint violation means in its context.
    """
    if isinstance(engine_or_conn, Connection):
        yield engine_or_conn
        return
    try:
        with engine_or_conn.begin() as conn:
            yield conn
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        log.error("Store failure: %s", e)
        raise StoreUnavailable() from e
