"""
Database models for teams, people, leave records, projects and tasks.

The decision core only reads these tables; the request layer writes leave
records and manager overrides.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Float, ForeignKey
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Team(Base):
    """A group of people whose leave is capacity-checked together."""
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    members = relationship("User", back_populates="team")
    projects = relationship("Project", back_populates="team")


class User(Base):
    """An employee or manager."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(50), nullable=False, default="EMPLOYEE")  # 'EMPLOYEE', 'MANAGER'
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    team = relationship("Team", back_populates="members")


class Leave(Base):
    """A leave request with its current status."""
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, index=True)  # see LeaveStatus
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    manager_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class Task(Base):
    """A work item assigned to a user."""
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(50), nullable=False, default="TODO")  # 'TODO', 'IN_PROGRESS', 'DONE'
    due_date = Column(Date, nullable=True, index=True)
    estimated_hours = Column(Float, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class Project(Base):
    """A body of team work whose tasks feed the workload picture."""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    deadline = Column(Date, nullable=True, index=True)
    status = Column(String(50), nullable=False, default="ACTIVE")  # 'ACTIVE', 'ON_HOLD', 'COMPLETED'
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    team = relationship("Team", back_populates="projects")
