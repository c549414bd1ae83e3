"""
Choix de la prochaine station en cours de jeu (NextStationSelector).

Pendant incrémental du calcul de parcours en lot : à chaque passage, on
recalcule la prochaine station à partir de la progression réelle.
Cette opération ne lève jamais d'erreur métier vers l'app mobile :
elle retourne une décision "blocked" avec un message explicatif.
"""

import uuid
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.progress import TeamProgress
from app.schemas.progress import RouteDecision
from app.schemas.station import MissionPoint, StationPoint
from app.services import completion_service
from app.services.distance_service import OverrideIndex, estimate_leg, load_overrides
from app.services.progress_service import (
    count_finished,
    finished_statuses,
    get_team_or_raise,
    load_active_missions,
    load_team_progress,
    load_team_stations,
)

logger = logging.getLogger(__name__)

MSG_COMPLETED = "Félicitations ! Vous avez terminé la chasse. Votre vidéo souvenir est en préparation."
MSG_NO_ASSIGNMENT = "Aucune station n'est assignée à votre équipe. Contactez les organisateurs."
MSG_NO_STATION = "Aucune station disponible pour le moment. Contactez les organisateurs."
MSG_SYSTEM_ERROR = "Erreur du système de navigation. Contactez les organisateurs."
MSG_NO_MISSION = "Continuez vers la prochaine station."


def select_next_station(
    stations: List[StationPoint],
    missions: List[MissionPoint],
    progress: List[TeamProgress],
    current_station_id: Optional[uuid.UUID] = None,
    overrides: Optional[OverrideIndex] = None,
) -> Optional[StationPoint]:
    """
    Retourne la prochaine station à visiter, ou None s'il n'en reste aucune.

    - Candidates : stations non terminées. Une station passée reste
      proposée tant qu'elle ne compte pas pour la fin de chasse
    - Priorité aux stations vers lesquelles pointe une mission active
    - Ordre total : difficulté croissante, puis temps de trajet depuis la
      station courante, puis identifiant de station
    """
    statuses = finished_statuses()
    done = {p.station_id for p in progress if p.status in statuses}
    unvisited = [s for s in stations if s.id not in done]
    if not unvisited:
        return None

    targeted = {m.to_station_id for m in missions if m.active}
    candidates = [s for s in unvisited if s.id in targeted] or unvisited

    current = next((s for s in stations if s.id == current_station_id), None)

    def sort_key(station: StationPoint):
        travel = estimate_leg(current, station, overrides).travel_minutes if current else 0
        return (station.difficulty, travel, str(station.id))

    return min(candidates, key=sort_key)


def get_next_station(
    db: Session,
    team_id: uuid.UUID,
    current_station_id: Optional[uuid.UUID] = None,
    renderer=None,
) -> RouteDecision:
    """
    Décision de navigation pour une équipe : continue, completed ou blocked.

    - Toutes les stations assignées terminées → "completed" et demande de
      la vidéo souvenir (idempotente) si un client de rendu est fourni
    - Aucune assignation ou aucune station restante → "blocked" + message
    - Sinon → "continue" avec la station, sa mission et le temps restant

    Lève ValueError uniquement si l'équipe est introuvable.
    """
    team = get_team_or_raise(db, team_id)

    try:
        stations = load_team_stations(db, team_id)
        missions = load_active_missions(db, team.event_id)
        progress = load_team_progress(db, team_id)
        overrides = load_overrides(db, team.event_id)
    except SQLAlchemyError:
        logger.error("Erreur de lecture pour la navigation de l'équipe %s", team_id, exc_info=True)
        return RouteDecision(status="blocked", message=MSG_SYSTEM_ERROR)

    if not stations:
        logger.warning("Équipe %s sans station assignée", team_id)
        return RouteDecision(status="blocked", message=MSG_NO_ASSIGNMENT)

    if count_finished(progress, {s.id for s in stations}) >= len(stations):
        if renderer is not None:
            completion_service.trigger_render_if_needed(db, team, renderer)
        return RouteDecision(status="completed", estimated_remaining_minutes=0, message=MSG_COMPLETED)

    station = select_next_station(stations, missions, progress, current_station_id, overrides)
    if station is None:
        logger.warning(
            "Équipe %s bloquée : aucune station restante mais chasse non terminée", team_id
        )
        return RouteDecision(status="blocked", message=MSG_NO_STATION)

    mission = min(
        (m for m in missions if m.to_station_id == station.id),
        key=lambda m: str(m.id),
        default=None,
    )

    completed_ids = {p.station_id for p in progress if p.status == "completed"}
    remaining = sum(
        s.estimated_duration or settings.DEFAULT_STOP_MINUTES
        for s in stations if s.id not in completed_ids
    )

    return RouteDecision(
        next_station_id=station.id,
        mission=mission,
        status="continue",
        estimated_remaining_minutes=remaining,
        message=None if mission else MSG_NO_MISSION,
    )
