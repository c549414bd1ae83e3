"""
Modèle SQLAlchemy pour les demandes de rendu vidéo (table du service de rendu).

Index unique partiel (event_id, team_id) sur les jobs non échoués :
au plus un job pending/processing/completed par équipe.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base

ACTIVE_RENDER_STATUSES = ("pending", "processing", "completed")


class RenderJob(Base):
    __tablename__ = "render_jobs"
    __table_args__ = (
        Index(
            "uq_render_jobs_active_team",
            "event_id",
            "team_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'processing', 'completed')"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    video_template_id = Column(String(100), nullable=False)
    user_clips = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="pending")   # pending, processing, completed, failed
    progress = Column(Integer, default=0)
    output_path = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
