from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import relationship
from taskflow.database import Base

class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)  # uniqueness is also checked case-insensitively
    description = Column(Text, nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    emails = Column(JSON, nullable=False, default=list)
    phone_numbers = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    department = relationship("Department", lazy="raise")
    stages = relationship(
        "Stage",
        back_populates="project",
        order_by="Stage.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    tasks = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
