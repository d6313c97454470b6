from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, Date as SQLAlchemyDate
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class Project(Base):
    """Модель проекта в БД."""
    __tablename__ = 'projects'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    start_date = Column(SQLAlchemyDate, nullable=True)

    snapshots = relationship(
        "ProjectSnapshot",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectSnapshot.id"
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"


class ProjectSnapshot(Base):
    """Сохраненный снимок проекта (DTO текущей версии в виде JSON)."""
    __tablename__ = 'project_snapshots'

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey('projects.id'), nullable=False)
    format_version = Column(Integer, nullable=False)
    data = Column(JSON, nullable=False)
    saved_at = Column(DateTime, default=datetime.now)

    project = relationship("Project", back_populates="snapshots")

    def __repr__(self):
        return f"<ProjectSnapshot(project_id={self.project_id}, format_version={self.format_version})>"
