"""
Modèle SQLAlchemy pour les événements (chasses au trésor).
"""

import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    starts_at = Column(DateTime, nullable=True)            # Horloge de départ des parcours simulés
    video_template_id = Column(String(100), nullable=True)  # Gabarit vidéo de fin de chasse
    status = Column(String(20), default="DRAFT")           # DRAFT, ACTIVE, COMPLETED, ARCHIVED
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
