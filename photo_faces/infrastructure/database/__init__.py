"""Relational persistence for the embedding store."""
from .session import create_engine, create_session_factory
from .store import EmbeddingStore
from .unit_of_work import UnitOfWork

__all__ = ["EmbeddingStore", "UnitOfWork", "create_engine", "create_session_factory"]
