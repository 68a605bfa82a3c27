from taskflow.models.department import Department
from taskflow.models.user import User
from taskflow.models.project import Project
from taskflow.models.stage import Stage
from taskflow.models.task import Task, RevisionHistory, TaskAttachment
from taskflow.models.history import HistoryEntry

__all__ = [
    "Department",
    "User",
    "Project",
    "Stage",
    "Task",
    "RevisionHistory",
    "TaskAttachment",
    "HistoryEntry",
]
