"""
Routers organisateur pour un événement : parcours suggérés, matrice des
trajets, classement et tableau de bord en direct.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.leaderboard import EventStatusResponse, LeaderboardEntry
from app.schemas.route import (
    RouteGenerationRequest,
    RouteGenerationResponse,
    TeamRouteResponse,
    TravelMatrixRequest,
    TravelMatrixResult,
)
from app.services import distance_service, leaderboard_service, route_service

router = APIRouter(prefix="/api/v1/events", tags=["Événements"])


def _raise_http(e: ValueError):
    msg = str(e)
    if "introuvable" in msg:
        raise HTTPException(status_code=404, detail=msg)
    raise HTTPException(status_code=400, detail=msg)


@router.post(
    "/{event_id}/routes",
    response_model=RouteGenerationResponse,
    summary="Générer les parcours suggérés des équipes",
)
def generate_routes(
    event_id: uuid.UUID,
    data: RouteGenerationRequest = RouteGenerationRequest(),
    db: Session = Depends(get_db),
):
    """
    Calcule un parcours indicatif pour chaque équipe selon la stratégie choisie
    et remplace les parcours précédemment enregistrés.

    Les équipes sans assignation sont ignorées. Retourne 404 si l'événement
    est introuvable, 422 si la stratégie ou les contraintes sont invalides.
    """
    try:
        return route_service.generate_routes(db, event_id, data.strategy, data.constraints)
    except ValueError as e:
        _raise_http(e)


@router.get(
    "/{event_id}/routes",
    response_model=List[TeamRouteResponse],
    summary="Lister les parcours enregistrés",
)
def list_routes(event_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return route_service.get_event_routes(db, event_id)
    except ValueError as e:
        _raise_http(e)


@router.post(
    "/{event_id}/travel-matrix",
    response_model=TravelMatrixResult,
    summary="Précalculer la matrice des temps de trajet",
)
def build_travel_matrix(
    event_id: uuid.UUID,
    data: TravelMatrixRequest = TravelMatrixRequest(),
    db: Session = Depends(get_db),
):
    """
    Enregistre les temps de trajet estimés entre toutes les stations géolocalisées.
    Une matrice déjà complète à 90 % n'est recalculée qu'avec force_recalculate.
    """
    try:
        return distance_service.build_travel_matrix(db, event_id, data.force_recalculate)
    except ValueError as e:
        _raise_http(e)


@router.get(
    "/{event_id}/leaderboard",
    response_model=List[LeaderboardEntry],
    summary="Classement des équipes",
)
def get_leaderboard(event_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return leaderboard_service.get_leaderboard(db, event_id)
    except ValueError as e:
        _raise_http(e)


@router.get(
    "/{event_id}/status",
    response_model=EventStatusResponse,
    summary="État en direct de l'événement",
)
def get_event_status(event_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return leaderboard_service.get_event_status(db, event_id)
    except ValueError as e:
        _raise_http(e)
