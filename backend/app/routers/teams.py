"""
Routers de jeu appelés par l'app mobile d'une équipe :
démarrer / valider / passer une station, prochaine station, progression.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.progress import (
    ProgressUpdateResponse,
    RouteDecision,
    StationCompleteRequest,
    StationCompleteResponse,
    StationSkipRequest,
    TeamProgressResponse,
)
from app.services import next_station_service, progress_service
from app.services.render_client import RenderJobClient, get_render_client

router = APIRouter(prefix="/api/v1/teams", tags=["Équipes"])


@router.post(
    "/{team_id}/stations/{station_id}/start",
    response_model=ProgressUpdateResponse,
    summary="Démarrer une station",
)
def start_station(
    team_id: uuid.UUID,
    station_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    """
    Passe la station en in_progress et en fait la station courante de l'équipe.
    Sans effet sur une station déjà validée ou passée.
    """
    try:
        return progress_service.start_station(db, team_id, station_id)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)


@router.post(
    "/{team_id}/stations/{station_id}/complete",
    response_model=StationCompleteResponse,
    summary="Valider une station",
)
def complete_station(
    team_id: uuid.UUID,
    station_id: uuid.UUID,
    data: StationCompleteRequest = StationCompleteRequest(),
    db: Session = Depends(get_db),
    renderer: RenderJobClient = Depends(get_render_client),
):
    """
    Valide la station (points, clips, notes), recalcule le score de l'équipe
    et retourne directement la décision de navigation suivante.

    Rejouer la même validation ne rajoute aucun point.
    Retourne 404 si l'équipe ou la station est introuvable.
    """
    try:
        result = progress_service.complete_station(
            db, team_id, station_id,
            score_earned=data.score_earned,
            user_clips=data.user_clips,
            notes=data.notes,
            renderer=renderer,
        )
        decision = next_station_service.get_next_station(db, team_id, station_id, renderer=renderer)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)

    return StationCompleteResponse(progress=result.progress, team=result.team, next_station=decision)


@router.post(
    "/{team_id}/stations/{station_id}/skip",
    response_model=ProgressUpdateResponse,
    summary="Passer une station",
)
def skip_station(
    team_id: uuid.UUID,
    station_id: uuid.UUID,
    data: StationSkipRequest = StationSkipRequest(),
    db: Session = Depends(get_db),
    renderer: RenderJobClient = Depends(get_render_client),
):
    try:
        return progress_service.skip_station(db, team_id, station_id, data.reason, renderer=renderer)
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)


@router.get(
    "/{team_id}/next-station",
    response_model=RouteDecision,
    summary="Prochaine station de l'équipe",
)
def get_next_station(
    team_id: uuid.UUID,
    current_station_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    renderer: RenderJobClient = Depends(get_render_client),
):
    """
    Retourne continue (station + mission), completed ou blocked (avec message).
    Seule une équipe introuvable produit une erreur (404).
    """
    try:
        return next_station_service.get_next_station(db, team_id, current_station_id, renderer=renderer)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "/{team_id}/progress",
    response_model=TeamProgressResponse,
    summary="Progression détaillée de l'équipe",
)
def get_team_progress(team_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return progress_service.get_team_progress(db, team_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
