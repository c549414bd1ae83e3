"""
Modèles SQLAlchemy pour les équipes et leurs assignations de stations.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Team(Base):
    __tablename__ = "teams"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    participants = Column(JSON, default=list)
    status = Column(String(20), default="active")      # active, completed, inactive
    current_station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id"), nullable=True)
    score = Column(Integer, default=0)                 # Toujours recalculé depuis team_progress
    completion_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class TeamAssignment(Base):
    """Liaison équipe ↔ station ↔ mission fixée à la configuration de l'événement."""
    __tablename__ = "team_assignments"
    __table_args__ = (
        UniqueConstraint("team_id", "station_id", name="uq_team_station_assignment"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
    mission_id = Column(UUID(as_uuid=True), ForeignKey("missions.id"), nullable=True)
    sequence_order = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
