"""
Modèles SQLAlchemy pour les stations physiques d'un événement, les missions
qui y mènent et les temps de trajet saisis (ou précalculés) entre stations.
"""

import uuid
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Station(Base):
    """Point de passage physique. Immuable une fois l'événement publié."""
    __tablename__ = "stations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    difficulty_level = Column(Integer, default=1)        # Échelle 1 (facile) → 5 (expert)
    estimated_duration = Column(Integer, default=15)     # Minutes passées sur place
    station_type = Column(String(100), nullable=True)    # Ex: "outdoor,landmark"
    capacity = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Mission(Base):
    """Indice / contenu qui oriente une équipe vers une station."""
    __tablename__ = "missions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    to_station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=True)
    clue = Column(Text, nullable=True)
    active = Column(Boolean, default=True)               # Au plus une mission active par station
    estimated_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class StationTravelTime(Base):
    """Temps de trajet imposé pour une paire ordonnée de stations (prioritaire sur l'estimation)."""
    __tablename__ = "station_travel_times"
    __table_args__ = (
        UniqueConstraint("event_id", "from_station_id", "to_station_id", name="uq_travel_time_pair"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    from_station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
    to_station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
    travel_time_minutes = Column(Integer, nullable=False)
    distance_meters = Column(Integer, nullable=True)
    computed_at = Column(DateTime, server_default=func.now())
