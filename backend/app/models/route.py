"""
Modèle SQLAlchemy pour les parcours suggérés par équipe.
Remplacés en bloc à chaque régénération pour l'événement.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class TeamRoute(Base):
    __tablename__ = "team_routes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    strategy = Column(String(30), nullable=False)
    total_distance = Column(Float, nullable=False)
    total_time_minutes = Column(Integer, nullable=False)
    optimization_score = Column(Integer, nullable=False)
    route_data = Column(JSON, nullable=False)   # TeamRouteResponse.model_dump(mode="json")
    created_at = Column(DateTime, server_default=func.now())
