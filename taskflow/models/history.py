from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from taskflow.database import Base

HISTORY_ACTIONS = (
    "CREATE_TASK",
    "UPDATE_TASK",
    "DELETE_TASK",
    "UPDATE_TASK_STATUS",
    "UPDATE_TASK_ASSIGNEE",
    "CREATE_STAGE",
    "UPDATE_STAGE",
    "DELETE_STAGE",
    "CREATE_PROJECT",
    "UPDATE_PROJECT",
    "DELETE_PROJECT",
)

ENTITY_TYPES = ("task", "stage", "project")

class HistoryEntry(Base):
    """Append-only audit row. Never updated or deleted except with its project."""
    __tablename__ = "history_entries"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False)
    entity_id = Column(Integer, nullable=False)
    entity_type = Column(String, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    details = Column(JSON, nullable=False, default=dict)
