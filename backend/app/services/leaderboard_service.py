"""
Classement des équipes et suivi en direct d'un événement (LeaderboardCalculator).

Ordre du classement :
1. Équipes "completed" d'abord, quel que soit leur score
2. Score cumulé décroissant
3. Heure de fin croissante (la plus rapide gagne à score égal)
Le tri est stable : deux équipes non terminées à score égal gardent l'ordre d'entrée.
"""

import uuid
import logging
from collections import Counter, defaultdict
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.event import Event
from app.models.progress import TeamProgress
from app.models.team import Team, TeamAssignment
from app.schemas.leaderboard import EventStatusResponse, LeaderboardEntry
from app.schemas.progress import TeamResponse
from app.services.progress_service import compute_team_score

logger = logging.getLogger(__name__)


def _ranking_key(entry: LeaderboardEntry):
    finished = entry.team.status == "completed"
    finish = entry.completion_time
    return (
        not finished,
        -entry.total_score,
        0 if finish else 1,
        finish.timestamp() if finish else 0,
    )


def rank_teams(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Trie les entrées et attribue les rangs (à partir de 1)."""
    ordered = sorted(entries, key=_ranking_key)
    return [e.model_copy(update={"rank": i}) for i, e in enumerate(ordered, start=1)]


def _load_event_teams(db: Session, event_id: uuid.UUID) -> List[Team]:
    if db.get(Event, event_id) is None:
        raise ValueError(f"Événement {event_id} introuvable.")
    return db.execute(
        select(Team).where(Team.event_id == event_id).order_by(Team.created_at, Team.name)
    ).scalars().all()


def _load_progress_by_team(db: Session, event_id: uuid.UUID) -> Dict[uuid.UUID, List[TeamProgress]]:
    rows = db.execute(
        select(TeamProgress)
        .join(Team, Team.id == TeamProgress.team_id)
        .where(Team.event_id == event_id)
    ).scalars().all()
    by_team = defaultdict(list)
    for row in rows:
        by_team[row.team_id].append(row)
    return by_team


def get_leaderboard(db: Session, event_id: uuid.UUID) -> List[LeaderboardEntry]:
    """
    Classement de toutes les équipes d'un événement.
    Lève ValueError si l'événement est introuvable.
    """
    teams = _load_event_teams(db, event_id)
    progress_by_team = _load_progress_by_team(db, event_id)

    entries = []
    for team in teams:
        progress = progress_by_team.get(team.id, [])
        entries.append(LeaderboardEntry(
            team=TeamResponse.model_validate(team),
            completed_stations=len({p.station_id for p in progress if p.status == "completed"}),
            total_score=compute_team_score(progress),
            completion_time=team.completion_time if team.status == "completed" else None,
            rank=0,
        ))

    ranked = rank_teams(entries)
    logger.debug("Classement événement %s : %d équipes", event_id, len(ranked))
    return ranked


def get_event_status(db: Session, event_id: uuid.UUID) -> EventStatusResponse:
    """
    Tableau de bord en direct : compteurs d'équipes, progression moyenne
    et nombre d'équipes positionnées sur chaque station. Une équipe active
    compte comme "en jeu" dès qu'elle a une station courante.
    """
    teams = _load_event_teams(db, event_id)
    progress_by_team = _load_progress_by_team(db, event_id)
    assigned_counts = dict(db.execute(
        select(TeamAssignment.team_id, func.count())
        .where(TeamAssignment.event_id == event_id)
        .group_by(TeamAssignment.team_id)
    ).all())

    percents = []
    playing = 0
    utilization = Counter()
    for team in teams:
        progress = progress_by_team.get(team.id, [])
        assigned = assigned_counts.get(team.id, 0)
        completed = len({p.station_id for p in progress if p.status == "completed"})
        percents.append(min(100, round(completed / assigned * 100)) if assigned else 0)

        if team.current_station_id is None:
            continue
        utilization[str(team.current_station_id)] += 1
        if team.status == "active":
            playing += 1

    return EventStatusResponse(
        total_teams=len(teams),
        active_teams=sum(1 for t in teams if t.status == "active"),
        completed_teams=sum(1 for t in teams if t.status == "completed"),
        average_progress_percent=round(sum(percents) / len(percents)) if percents else 0,
        currently_playing_teams=playing,
        station_utilization=dict(utilization),
    )
