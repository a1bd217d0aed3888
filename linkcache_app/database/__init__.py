from .connection import Base, SessionLocal, engine, make_engine

__all__ = ["Base", "SessionLocal", "engine", "make_engine"]
