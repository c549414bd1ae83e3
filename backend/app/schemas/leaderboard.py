"""
Schémas Pydantic pour le classement et le suivi en direct d'un événement.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel

from app.schemas.progress import TeamResponse


class LeaderboardEntry(BaseModel):
    team: TeamResponse
    completed_stations: int
    total_score: int
    completion_time: Optional[datetime] = None
    rank: int


class EventStatusResponse(BaseModel):
    total_teams: int
    active_teams: int
    completed_teams: int
    average_progress_percent: int
    currently_playing_teams: int
    station_utilization: Dict[str, int]   # station_id → nb d'équipes présentes
