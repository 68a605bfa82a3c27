from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from taskflow.database import Base

class Stage(Base):
    __tablename__ = "stages"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    color = Column(String, nullable=False, default="bg-status-todo")
    order = Column(Integer, nullable=False, default=0)  # 0..n-1, left to right
    type = Column(String, nullable=False, default="project")  # user, project

    main_responsible_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    backup_responsible_id_1 = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    backup_responsible_id_2 = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    is_review_stage = Column(Boolean, nullable=False, default=False)
    linked_review_stage_id = Column(Integer, ForeignKey("stages.id", ondelete="SET NULL"), nullable=True)
    approved_target_stage_id = Column(Integer, ForeignKey("stages.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="stages", lazy="raise")
