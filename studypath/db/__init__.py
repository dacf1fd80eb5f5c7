# SQLAlchemy persistence for learning sessions
from .database import create_db_engine, init_db, session_scope
from .models import Base, LearningSessionRecord

__all__ = [
    "Base",
    "LearningSessionRecord",
    "create_db_engine",
    "init_db",
    "session_scope",
]
