"""
Schémas Pydantic pour la progression des équipes en cours de jeu.
Utilisés par l'app mobile (démarrer / valider / passer une station)
et par le tableau de bord organisateur.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.station import MissionPoint, StationPoint

VALID_DECISIONS = {"continue", "completed", "blocked"}


class StationCompleteRequest(BaseModel):
    score_earned: int = Field(default=0, ge=0)
    user_clips: List[str] = []       # Chemins des clips vidéo déjà téléversés
    notes: Optional[str] = None


class StationSkipRequest(BaseModel):
    reason: Optional[str] = None


class TeamResponse(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    name: str
    participants: List[str] = []
    status: str
    current_station_id: Optional[uuid.UUID] = None
    score: int = 0
    completion_time: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("participants", mode="before")
    @classmethod
    def participants_default(cls, v):
        return v or []

    @field_validator("score", mode="before")
    @classmethod
    def score_default(cls, v):
        return v or 0


class TeamProgressItem(BaseModel):
    team_id: uuid.UUID
    station_id: uuid.UUID
    status: str                      # not_started, in_progress, completed, skipped
    start_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    score_earned: int = 0
    user_clips: List[str] = []
    notes: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("user_clips", mode="before")
    @classmethod
    def clips_default(cls, v):
        return v or []

    @field_validator("score_earned", mode="before")
    @classmethod
    def score_default(cls, v):
        return v or 0


class ProgressUpdateResponse(BaseModel):
    """Réponse des opérations start / complete / skip."""
    progress: TeamProgressItem
    team: TeamResponse


class RouteDecision(BaseModel):
    """Décision de navigation temps réel pour une équipe."""
    next_station_id: Optional[uuid.UUID] = None
    mission: Optional[MissionPoint] = None
    status: str                      # continue, completed, blocked
    estimated_remaining_minutes: Optional[int] = None
    message: Optional[str] = None

    @field_validator("status")
    @classmethod
    def valid_decision(cls, v: str) -> str:
        if v not in VALID_DECISIONS:
            raise ValueError(f"Décision invalide. Valeurs acceptées : {VALID_DECISIONS}")
        return v


class StationCompleteResponse(ProgressUpdateResponse):
    next_station: RouteDecision


class TeamProgressResponse(BaseModel):
    team: TeamResponse
    progress: List[TeamProgressItem]
    current_station: Optional[StationPoint] = None
    next_station: Optional[StationPoint] = None
    completion_percentage: int
    estimated_time_remaining_minutes: int
