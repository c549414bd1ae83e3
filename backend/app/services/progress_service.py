"""
Service de progression des équipes en cours de jeu (ProgressTracker).

Machine à états par (équipe, station) :
    not_started → in_progress → completed | skipped

- Upsert par clé (team_id, station_id) : un appel répété converge vers le
  même état au lieu de créer un doublon
- Le score d'équipe est toujours recalculé (somme des score_earned des
  enregistrements completed), jamais incrémenté
- Recalcul du score et passage de l'équipe à "completed" sont commités
  dans la même transaction, sous verrou de ligne sur l'équipe
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.progress import TeamProgress
from app.models.station import Mission, Station
from app.models.team import Team, TeamAssignment
from app.schemas.progress import (
    ProgressUpdateResponse,
    TeamProgressItem,
    TeamProgressResponse,
    TeamResponse,
)
from app.schemas.station import MissionPoint, StationPoint
from app.services import completion_service

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "skipped"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------------------------------------------
# Règles de calcul
# ----------------------------------------------------------------

def compute_team_score(progress: Iterable[TeamProgress]) -> int:
    """Somme des points des stations validées (les stations passées rapportent 0)."""
    return sum(p.score_earned or 0 for p in progress if p.status == "completed")


def finished_statuses() -> Set[str]:
    """Statuts qui comptent pour la fin de chasse (skipped selon la configuration)."""
    if settings.SKIPPED_COUNTS_TOWARD_COMPLETION:
        return {"completed", "skipped"}
    return {"completed"}


def count_finished(progress: Iterable[TeamProgress], assigned_station_ids: Set[uuid.UUID]) -> int:
    """Nombre de stations assignées terminées (jamais plus que le nombre d'assignations)."""
    statuses = finished_statuses()
    return len({
        p.station_id for p in progress
        if p.status in statuses and p.station_id in assigned_station_ids
    })


# ----------------------------------------------------------------
# Chargements partagés (utilisés aussi par next_station_service)
# ----------------------------------------------------------------

def get_team_or_raise(db: Session, team_id: uuid.UUID, lock: bool = False) -> Team:
    """Charge l'équipe (verrouillée FOR UPDATE si lock) ou lève ValueError."""
    stmt = select(Team).where(Team.id == team_id)
    if lock:
        stmt = stmt.with_for_update()
    team = db.execute(stmt).scalar()
    if team is None:
        raise ValueError(f"Équipe {team_id} introuvable.")
    return team


def load_team_stations(db: Session, team_id: uuid.UUID) -> List[StationPoint]:
    """Stations assignées à l'équipe, dans l'ordre d'assignation."""
    stations = db.execute(
        select(Station)
        .join(TeamAssignment, TeamAssignment.station_id == Station.id)
        .where(TeamAssignment.team_id == team_id)
        .order_by(TeamAssignment.sequence_order)
    ).scalars().all()
    return [StationPoint.model_validate(s) for s in stations]


def load_active_missions(db: Session, event_id: uuid.UUID) -> List[MissionPoint]:
    missions = db.execute(
        select(Mission).where(Mission.event_id == event_id, Mission.active.is_(True))
    ).scalars().all()
    return [MissionPoint.model_validate(m) for m in missions]


def load_team_progress(db: Session, team_id: uuid.UUID) -> List[TeamProgress]:
    return db.execute(
        select(TeamProgress)
        .where(TeamProgress.team_id == team_id)
        .order_by(TeamProgress.start_time)
    ).scalars().all()


def _get_station_or_raise(db: Session, team: Team, station_id: uuid.UUID) -> Station:
    station = db.get(Station, station_id)
    if station is None or station.event_id != team.event_id:
        raise ValueError(f"Station {station_id} introuvable pour cet événement.")
    return station


def _get_or_create_progress(db: Session, team_id: uuid.UUID, station_id: uuid.UUID) -> TeamProgress:
    progress = db.get(TeamProgress, (team_id, station_id))
    if progress is None:
        progress = TeamProgress(
            team_id=team_id,
            station_id=station_id,
            status="not_started",
            score_earned=0,
            user_clips=[],
        )
        db.add(progress)
    return progress


def _refresh_team_totals(db: Session, team: Team, now: datetime) -> bool:
    """
    Recalcule le score de l'équipe et détecte la fin de chasse.
    Retourne True si l'équipe vient de passer à "completed".
    Une équipe déjà "completed" le reste : la fin de chasse n'est jamais
    annulée, même si une station validée est ensuite repassée en skipped.
    """
    # autoflush=False : l'upsert en attente doit être visible par le SELECT
    db.flush()

    progress = db.execute(
        select(TeamProgress).where(TeamProgress.team_id == team.id)
    ).scalars().all()
    assigned = set(db.execute(
        select(TeamAssignment.station_id).where(TeamAssignment.team_id == team.id)
    ).scalars().all())

    team.score = compute_team_score(progress)

    if not assigned or team.status == "completed":
        return False
    if count_finished(progress, assigned) >= len(assigned):
        team.status = "completed"
        team.completion_time = now
        return True
    return False


def _to_update_response(progress: TeamProgress, team: Team) -> ProgressUpdateResponse:
    return ProgressUpdateResponse(
        progress=TeamProgressItem.model_validate(progress),
        team=TeamResponse.model_validate(team),
    )


# ----------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------

def start_station(db: Session, team_id: uuid.UUID, station_id: uuid.UUID) -> ProgressUpdateResponse:
    """
    Passe la station en in_progress et positionne la station courante de l'équipe.

    Une station déjà terminée (completed ou skipped) n'est pas rouverte :
    l'appel est sans effet. Lève ValueError si l'équipe ou la station est introuvable.
    """
    team = get_team_or_raise(db, team_id, lock=True)
    _get_station_or_raise(db, team, station_id)

    existing = db.get(TeamProgress, (team_id, station_id))
    if existing is not None and existing.status in TERMINAL_STATUSES:
        logger.debug(
            "Station %s déjà %s pour l'équipe %s : démarrage ignoré",
            station_id, existing.status, team_id,
        )
        return _to_update_response(existing, team)

    try:
        progress = existing or _get_or_create_progress(db, team_id, station_id)
        if progress.status != "in_progress":
            progress.status = "in_progress"
            progress.start_time = _utcnow()
        team.current_station_id = station_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(progress)
    db.refresh(team)

    logger.info("Équipe %s : station %s démarrée", team_id, station_id)
    return _to_update_response(progress, team)


def complete_station(
    db: Session,
    team_id: uuid.UUID,
    station_id: uuid.UUID,
    score_earned: int = 0,
    user_clips: Optional[List[str]] = None,
    notes: Optional[str] = None,
    renderer=None,
) -> ProgressUpdateResponse:
    """
    Valide une station pour une équipe.

    Étapes (une seule transaction, équipe verrouillée) :
    1. Upsert (team_id, station_id) → completed avec clips, notes et points
    2. Recalcul du score d'équipe depuis tous les enregistrements completed
    3. Si toutes les stations assignées sont terminées → équipe "completed"

    Un second appel identique ne rajoute aucun point. Après le commit, si
    l'équipe vient de terminer et qu'un client de rendu est fourni, la vidéo
    souvenir est demandée (best-effort, jamais bloquant).

    Lève ValueError si l'équipe ou la station est introuvable ; les erreurs
    BDD sont propagées après rollback.
    """
    team = get_team_or_raise(db, team_id, lock=True)
    _get_station_or_raise(db, team, station_id)

    now = _utcnow()
    try:
        progress = _get_or_create_progress(db, team_id, station_id)
        progress.status = "completed"
        progress.start_time = progress.start_time or now
        progress.completion_time = now
        progress.score_earned = score_earned
        progress.user_clips = list(user_clips or [])
        progress.notes = notes

        just_completed = _refresh_team_totals(db, team, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(progress)
    db.refresh(team)

    logger.info(
        "Équipe %s : station %s validée (+%d pts, score total %d)",
        team_id, station_id, score_earned, team.score,
    )

    if just_completed:
        logger.info("Équipe %s : chasse terminée", team_id)
        if renderer is not None:
            completion_service.trigger_render_if_needed(db, team, renderer)

    return _to_update_response(progress, team)


def skip_station(
    db: Session,
    team_id: uuid.UUID,
    station_id: uuid.UUID,
    reason: Optional[str] = None,
    renderer=None,
) -> ProgressUpdateResponse:
    """
    Marque une station comme passée (0 point, raison conservée dans notes).

    Le score est recalculé (une station validée puis passée perd ses points).
    Une station passée ne compte pour la fin de chasse que si
    SKIPPED_COUNTS_TOWARD_COMPLETION est activé.
    """
    team = get_team_or_raise(db, team_id, lock=True)
    _get_station_or_raise(db, team, station_id)

    now = _utcnow()
    try:
        progress = _get_or_create_progress(db, team_id, station_id)
        progress.status = "skipped"
        progress.completion_time = now
        progress.score_earned = 0
        progress.user_clips = []
        progress.notes = reason

        just_completed = _refresh_team_totals(db, team, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(progress)
    db.refresh(team)

    logger.info("Équipe %s : station %s passée (%s)", team_id, station_id, reason or "sans raison")

    if just_completed:
        logger.info("Équipe %s : chasse terminée", team_id)
        if renderer is not None:
            completion_service.trigger_render_if_needed(db, team, renderer)

    return _to_update_response(progress, team)


# ----------------------------------------------------------------
# Lecture
# ----------------------------------------------------------------

def get_team_progress(db: Session, team_id: uuid.UUID) -> TeamProgressResponse:
    """
    Vue d'ensemble de la progression d'une équipe : enregistrements, station
    courante, prochaine station suggérée, pourcentage et temps restant estimé.
    """
    # Import local pour éviter l'import circulaire avec next_station_service
    from app.services.next_station_service import select_next_station

    team = get_team_or_raise(db, team_id)
    stations = load_team_stations(db, team_id)
    missions = load_active_missions(db, team.event_id)
    progress = load_team_progress(db, team_id)

    stations_by_id = {s.id: s for s in stations}
    completed_ids = {p.station_id for p in progress if p.status == "completed"}
    completed_count = len(completed_ids & stations_by_id.keys())

    completion_percentage = round(completed_count / len(stations) * 100) if stations else 0
    remaining_minutes = sum(
        s.estimated_duration or settings.DEFAULT_STOP_MINUTES
        for s in stations if s.id not in completed_ids
    )

    next_station = None
    if count_finished(progress, set(stations_by_id)) < len(stations):
        next_station = select_next_station(stations, missions, progress, team.current_station_id)

    return TeamProgressResponse(
        team=TeamResponse.model_validate(team),
        progress=[TeamProgressItem.model_validate(p) for p in progress],
        current_station=stations_by_id.get(team.current_station_id),
        next_station=next_station,
        completion_percentage=completion_percentage,
        estimated_time_remaining_minutes=remaining_minutes,
    )
