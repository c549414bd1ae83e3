"""
Schémas Pydantic des stations, missions et temps de trajet imposés.

Ces enregistrements figés servent d'instantanés aux calculs de parcours :
ils sont construits depuis les modèles SQLAlchemy (from_attributes) avant
tout calcul, si bien qu'aucun objet ORM ne circule entre threads.
"""

import uuid
from typing import Optional

from pydantic import BaseModel


class StationPoint(BaseModel):
    """Station telle que vue par le moteur de parcours."""
    id: uuid.UUID
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    difficulty_level: Optional[int] = None   # None traité comme 1
    estimated_duration: Optional[int] = None
    station_type: Optional[str] = None
    capacity: Optional[int] = None

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def difficulty(self) -> int:
        return self.difficulty_level or 1


class MissionPoint(BaseModel):
    """Mission menant à une station (résumé exposé au client de jeu)."""
    id: uuid.UUID
    to_station_id: uuid.UUID
    title: Optional[str] = None
    active: bool = True
    estimated_minutes: Optional[int] = None

    model_config = {"from_attributes": True, "frozen": True}


class TravelOverride(BaseModel):
    """Temps (et éventuellement distance) imposé pour une paire ordonnée de stations."""
    from_station_id: uuid.UUID
    to_station_id: uuid.UUID
    travel_time_minutes: int
    distance_meters: Optional[int] = None

    model_config = {"from_attributes": True, "frozen": True}
