import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

TITLE_MAX_LENGTH = 140


def _new_id() -> str:
    return str(uuid.uuid4())


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    tags = relationship(
        "TaskTag",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TaskTag.tag",
    )

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', completed={self.completed})>"


class TaskTag(Base):
    __tablename__ = "task_tags"

    tag = Column(String, primary_key=True, nullable=False)
    task_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
        index=True,
    )

    task = relationship("Task", back_populates="tags")

    def __repr__(self):
        return f"<TaskTag(tag='{self.tag}', task_id={self.task_id})>"
