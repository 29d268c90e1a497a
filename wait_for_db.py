import logging
import os
import time

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

logger = logging.getLogger("wait_for_db")


def wait_for_db(database_url: str, timeout_s: int | None = None) -> None:
    """Block until a trivial query succeeds or the timeout elapses."""
    if timeout_s is None:
        timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
    engine = create_engine(database_url, pool_pre_ping=True)
    start = time.time()
    logger.info("waiting for database (timeout=%ss)", timeout_s)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("database is ready")
                return
            except OperationalError as e:
                if time.time() - start > timeout_s:
                    logger.error("timed out waiting for database: %s", e)
                    raise
                time.sleep(1)
    finally:
        engine.dispose()


if __name__ == "__main__":
    from app.core.config import get_settings
    logging.basicConfig(level=logging.INFO)
    wait_for_db(get_settings().DATABASE_URL)
