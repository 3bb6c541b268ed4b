"""Persistence layer: SQLite connection management and typed queries."""

from Price_Alerts.data.database import Database
from Price_Alerts.data.repository import Repository

__all__ = ["Database", "Repository"]
