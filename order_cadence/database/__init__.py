"""
Database Module
"""
from .connection import (
    close_database,
    create_tables,
    get_db,
    get_session_factory,
    init_database,
)
from .models import Base, CategorizedOrdersRecord
from .repository import CategorizedOrdersRepository

__all__ = [
    "init_database",
    "close_database",
    "create_tables",
    "get_db",
    "get_session_factory",
    "Base",
    "CategorizedOrdersRecord",
    "CategorizedOrdersRepository",
]
