"""
Schémas Pydantic échangés avec le service de rendu vidéo.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class UserClip(BaseModel):
    """Clip d'équipe transmis au rendu de la vidéo souvenir."""
    id: str
    file_path: str
    duration_ms: int
    station_id: uuid.UUID
    timestamp: datetime


class RenderJobSummary(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    status: str                      # pending, processing, completed, failed

    model_config = {"from_attributes": True}
