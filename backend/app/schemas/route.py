"""
Schémas Pydantic pour la génération des parcours d'équipes.
Endpoint : POST /api/v1/events/{event_id}/routes
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.station import MissionPoint, StationPoint

VALID_STRATEGIES = {"optimal_time", "balanced_difficulty", "scenic_route", "shortest_distance"}
VALID_SKILL_LEVELS = {"beginner", "intermediate", "advanced"}


class RouteConstraints(BaseModel):
    """
    Contraintes de planification. Acceptées et restituées telles quelles :
    elles n'élaguent ni ne réordonnent les stations (seul max_route_time
    alimente l'indicateur within_time_budget de chaque parcours).
    """
    max_route_time: Optional[int] = Field(default=None, ge=30, le=480)  # minutes
    avoid_crowded_stations: bool = True
    prioritize_outdoor_stations: bool = False
    include_rest_stops: bool = True
    team_skill_level: Optional[str] = None

    @field_validator("team_skill_level")
    @classmethod
    def valid_skill_level(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in VALID_SKILL_LEVELS:
            raise ValueError(f"Niveau invalide. Valeurs acceptées : {VALID_SKILL_LEVELS}")
        return v


class RouteGenerationRequest(BaseModel):
    strategy: str = "optimal_time"
    constraints: RouteConstraints = RouteConstraints()

    @field_validator("strategy")
    @classmethod
    def valid_strategy(cls, v: str) -> str:
        if v not in VALID_STRATEGIES:
            raise ValueError(f"Stratégie invalide. Valeurs acceptées : {VALID_STRATEGIES}")
        return v


class RouteStop(BaseModel):
    """Assignation résolue (station + mission) avant ordonnancement."""
    sequence_order: int
    station: StationPoint
    mission: Optional[MissionPoint] = None
    duration_minutes: int

    model_config = {"frozen": True}


class TravelLeg(BaseModel):
    """Estimation brute d'un trajet : distance, durée et mode de transport déduit."""
    distance_meters: float
    travel_minutes: int
    transport_mode: str

    model_config = {"frozen": True}


class RouteSegment(BaseModel):
    """Trajet entre deux stations consécutives d'un parcours."""
    from_station_id: uuid.UUID
    to_station_id: uuid.UUID
    distance: float               # mètres
    estimated_time: int           # minutes
    transport_mode: str           # walking, driving, public_transport
    instructions: List[str] = []


class RouteStationVisit(BaseModel):
    """Passage planifié sur une station, avec horaires simulés."""
    station_id: uuid.UUID
    station_name: str
    arrival_time: datetime
    departure_time: datetime
    mission_id: Optional[uuid.UUID] = None
    mission_title: Optional[str] = None
    estimated_duration: int
    sequence: int


class TeamRouteResponse(BaseModel):
    team_id: uuid.UUID
    team_name: str
    strategy: str
    total_distance: float
    total_time: int
    difficulty: float
    segments: List[RouteSegment]
    stations: List[RouteStationVisit]
    optimization_score: int
    within_time_budget: Optional[bool] = None


class RouteAnalytics(BaseModel):
    """Synthèse d'un lot de parcours générés pour un événement."""
    total_routes: int
    average_time: int = 0
    average_distance: int = 0
    average_optimization_score: int = 0
    difficulty_distribution: Dict[str, int] = {}
    transport_mode_breakdown: Dict[str, int] = {}
    longest_route: Optional[int] = None
    shortest_route: Optional[int] = None
    most_optimized_score: Optional[int] = None
    least_optimized_score: Optional[int] = None


class RouteGenerationResponse(BaseModel):
    event_id: uuid.UUID
    strategy: str
    constraints: RouteConstraints
    routes: List[TeamRouteResponse]
    analytics: RouteAnalytics
    total_teams_routed: int


class TravelMatrixRequest(BaseModel):
    force_recalculate: bool = False


class TravelMatrixResult(BaseModel):
    """Rapport de précalcul de la matrice des temps de trajet."""
    ok: bool
    message: str
    station_count: int
    pair_count: int = 0
    skipped: bool = False
    average_minutes: Optional[int] = None
    max_minutes: Optional[int] = None
