from db.engine import make_engine, make_sessionmaker
from db.init import init_db

__all__ = ["make_engine", "make_sessionmaker", "init_db"]
