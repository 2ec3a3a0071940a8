# database.py
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from settings.settings import settings


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = settings.db_url()
    if url.startswith("sqlite"):
        return create_engine(url, echo=settings.SQL_ECHO, future=True,
                             connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=settings.SQL_ECHO,
        pool_size=settings.POOL_SIZE,
        pool_pre_ping=True,
        pool_recycle=settings.POOL_RECYCLE,
        future=True,
    )
