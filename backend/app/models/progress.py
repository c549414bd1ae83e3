"""
Modèle SQLAlchemy pour la progression d'une équipe sur une station.

Machine à états : not_started → in_progress → completed | skipped.
La clé primaire (team_id, station_id) est la clé d'upsert : un seul
enregistrement par paire, créé au premier démarrage puis mis à jour.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class TeamProgress(Base):
    __tablename__ = "team_progress"

    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True)
    station_id = Column(UUID(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(20), nullable=False, default="not_started")
    start_time = Column(DateTime, nullable=True)
    completion_time = Column(DateTime, nullable=True)
    score_earned = Column(Integer, default=0)
    user_clips = Column(JSON, default=list)   # Chemins des clips vidéo soumis
    notes = Column(Text, nullable=True)
