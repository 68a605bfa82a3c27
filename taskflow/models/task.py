from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Boolean, JSON, func
from sqlalchemy.orm import relationship
from taskflow.database import Base

USER_STATUSES = ("pending", "in-progress", "complete")
PRIORITIES = ("low", "medium", "high")

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(Date, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    user_status = Column(String, nullable=False, default="pending")  # pending, in-progress, complete
    project_stage_id = Column(Integer, ForeignKey("stages.id", ondelete="SET NULL"), nullable=True)
    priority = Column(String, nullable=False, default="medium")  # low, medium, high
    tags = Column(JSON, nullable=False, default=list)

    # Review workflow markers
    is_in_specific_stage = Column(Boolean, nullable=False, default=False)
    revision_comment = Column(Text, nullable=True)
    previous_stage_id = Column(Integer, ForeignKey("stages.id", ondelete="SET NULL"), nullable=True)
    original_assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="tasks", lazy="raise")
    assignee = relationship("User", foreign_keys=[assignee_id], lazy="raise")
    original_assignee = relationship("User", foreign_keys=[original_assignee_id], lazy="raise")
    revision_history = relationship(
        "RevisionHistory",
        back_populates="task",
        order_by="RevisionHistory.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    attachments = relationship(
        "TaskAttachment",
        back_populates="task",
        order_by="TaskAttachment.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )


class RevisionHistory(Base):
    __tablename__ = "revision_histories"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    comment = Column(Text, nullable=False)
    requested_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    requested_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    task = relationship("Task", back_populates="revision_history", lazy="raise")
    requested_by = relationship("User", lazy="raise")


class TaskAttachment(Base):
    __tablename__ = "task_attachments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    type = Column(String, nullable=False, default="link")  # file, link
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    task = relationship("Task", back_populates="attachments", lazy="raise")
