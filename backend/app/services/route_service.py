"""
Service de génération des parcours suggérés par équipe (RouteOptimizer).

Stratégies (choisies par événement) :
- optimal_time        : plus proche voisin sur le temps de trajet
- shortest_distance   : même construction (distance et temps sont liés à vitesse fixe)
- balanced_difficulty : tri stable par difficulté croissante
- scenic_route        : tri stable par score paysager décroissant

Les parcours sont indicatifs : ils sont affichés aux organisateurs et
n'influencent ni la progression ni le classement. Le moteur ne lit que
les assignations, jamais team_progress.
"""

import uuid
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.event import Event
from app.models.route import TeamRoute
from app.models.station import Mission, Station
from app.models.team import Team, TeamAssignment
from app.schemas.route import (
    RouteAnalytics,
    RouteConstraints,
    RouteGenerationResponse,
    RouteSegment,
    RouteStationVisit,
    RouteStop,
    TeamRouteResponse,
)
from app.schemas.station import MissionPoint, StationPoint
from app.services.distance_service import OverrideIndex, estimate_leg, generate_directions, load_overrides

logger = logging.getLogger(__name__)

NEAREST_NEIGHBOR_STRATEGIES = {"optimal_time", "shortest_distance"}

# Mot-clé présent dans station_type → points paysagers
SCENERY_WEIGHTS = (("outdoor", 3), ("landmark", 2), ("park", 2), ("museum", 1))


# ----------------------------------------------------------------
# Ordonnancement
# ----------------------------------------------------------------

def scenery_score(station: StationPoint) -> int:
    station_type = (station.station_type or "").lower()
    return sum(weight for keyword, weight in SCENERY_WEIGHTS if keyword in station_type)


def _nearest_neighbor(stops: List[RouteStop], overrides: OverrideIndex) -> List[RouteStop]:
    """
    Part du premier arrêt puis ajoute à chaque pas l'arrêt restant le plus
    proche en temps. Égalité → ordre d'assignation (les arrêts arrivent triés).
    """
    if len(stops) <= 1:
        return list(stops)

    ordered = [stops[0]]
    remaining = list(stops[1:])
    while remaining:
        current = ordered[-1].station
        nearest_index = min(
            range(len(remaining)),
            key=lambda i: (estimate_leg(current, remaining[i].station, overrides).travel_minutes, i),
        )
        ordered.append(remaining.pop(nearest_index))
    return ordered


def order_stops(
    stops: List[RouteStop],
    strategy: str,
    overrides: Optional[OverrideIndex] = None,
) -> List[RouteStop]:
    """
    Ordonne les arrêts d'une équipe selon la stratégie.

    Les arrêts sont d'abord triés par (sequence_order, station_id) : c'est
    l'ordre total qui départage toutes les égalités des stratégies.
    """
    base = sorted(stops, key=lambda s: (s.sequence_order, str(s.station.id)))

    if strategy in NEAREST_NEIGHBOR_STRATEGIES:
        return _nearest_neighbor(base, overrides or {})
    if strategy == "balanced_difficulty":
        return sorted(base, key=lambda s: s.station.difficulty)
    if strategy == "scenic_route":
        return sorted(base, key=lambda s: -scenery_score(s.station))
    return base


# ----------------------------------------------------------------
# Construction et évaluation d'un parcours
# ----------------------------------------------------------------

def calculate_optimization_score(
    total_time: int,
    total_distance: float,
    avg_difficulty: float,
    segment_count: int,
) -> int:
    """Score indicatif 0–100 : plus il est élevé, plus le parcours est jugé efficace."""
    score = 100

    if total_time > 240:
        score -= 20
    if total_time > 360:
        score -= 30

    score += max(0, 20 - segment_count)

    if 1 < avg_difficulty < 4:
        score += 10

    if total_distance < 5000:
        score += 10

    return max(0, min(100, score))


def build_team_route(
    team_id: uuid.UUID,
    team_name: str,
    stops: List[RouteStop],
    strategy: str,
    start_time: datetime,
    overrides: Optional[OverrideIndex] = None,
    max_route_time: Optional[int] = None,
) -> Optional[TeamRouteResponse]:
    """
    Construit le parcours d'une équipe en simulant l'horloge depuis start_time.

    Chaque arrêt ajoute sa durée de mission, puis le trajet vers l'arrêt
    suivant. Retourne None si l'équipe n'a aucun arrêt.
    """
    if not stops:
        return None

    ordered = order_stops(stops, strategy, overrides)

    visits: List[RouteStationVisit] = []
    segments: List[RouteSegment] = []
    clock = start_time
    total_distance = 0.0
    total_time = 0

    for index, stop in enumerate(ordered):
        arrival = clock
        departure = arrival + timedelta(minutes=stop.duration_minutes)
        visits.append(
            RouteStationVisit(
                station_id=stop.station.id,
                station_name=stop.station.name,
                arrival_time=arrival,
                departure_time=departure,
                mission_id=stop.mission.id if stop.mission else None,
                mission_title=stop.mission.title if stop.mission else None,
                estimated_duration=stop.duration_minutes,
                sequence=index + 1,
            )
        )
        total_time += stop.duration_minutes
        clock = departure

        if index + 1 < len(ordered):
            following = ordered[index + 1].station
            leg = estimate_leg(stop.station, following, overrides)
            segments.append(
                RouteSegment(
                    from_station_id=stop.station.id,
                    to_station_id=following.id,
                    distance=leg.distance_meters,
                    estimated_time=leg.travel_minutes,
                    transport_mode=leg.transport_mode,
                    instructions=generate_directions(stop.station, following, leg),
                )
            )
            total_distance += leg.distance_meters
            total_time += leg.travel_minutes
            clock = departure + timedelta(minutes=leg.travel_minutes)

    avg_difficulty = sum(s.station.difficulty for s in ordered) / len(ordered)

    return TeamRouteResponse(
        team_id=team_id,
        team_name=team_name,
        strategy=strategy,
        total_distance=round(total_distance, 1),
        total_time=total_time,
        difficulty=round(avg_difficulty, 2),
        segments=segments,
        stations=visits,
        optimization_score=calculate_optimization_score(
            total_time, total_distance, avg_difficulty, len(segments)
        ),
        within_time_budget=None if max_route_time is None else total_time <= max_route_time,
    )


def calculate_route_analytics(routes: List[TeamRouteResponse]) -> RouteAnalytics:
    """Agrège un lot de parcours : moyennes, extrêmes, difficulté et modes de transport."""
    if not routes:
        return RouteAnalytics(total_routes=0)

    transport_modes: Dict[str, int] = defaultdict(int)
    for route in routes:
        for segment in route.segments:
            transport_modes[segment.transport_mode] += 1

    difficulty_bins = {"easy": 0, "medium": 0, "hard": 0, "expert": 0}
    for route in routes:
        if route.difficulty <= 1.5:
            difficulty_bins["easy"] += 1
        elif route.difficulty <= 2.5:
            difficulty_bins["medium"] += 1
        elif route.difficulty <= 3.5:
            difficulty_bins["hard"] += 1
        else:
            difficulty_bins["expert"] += 1

    count = len(routes)
    return RouteAnalytics(
        total_routes=count,
        average_time=round(sum(r.total_time for r in routes) / count),
        average_distance=round(sum(r.total_distance for r in routes) / count),
        average_optimization_score=round(sum(r.optimization_score for r in routes) / count),
        difficulty_distribution=difficulty_bins,
        transport_mode_breakdown=dict(transport_modes),
        longest_route=max(r.total_time for r in routes),
        shortest_route=min(r.total_time for r in routes),
        most_optimized_score=max(r.optimization_score for r in routes),
        least_optimized_score=min(r.optimization_score for r in routes),
    )


# ----------------------------------------------------------------
# Génération en lot pour un événement
# ----------------------------------------------------------------

def resolve_stops(
    assignments: List[TeamAssignment],
    stations: Dict[uuid.UUID, StationPoint],
    missions: Dict[uuid.UUID, MissionPoint],
) -> List[RouteStop]:
    """Associe chaque assignation à sa station et sa mission (assignations orphelines ignorées)."""
    stops = []
    for assignment in assignments:
        station = stations.get(assignment.station_id)
        if station is None:
            logger.warning(
                "Assignation %s ignorée : station %s inconnue pour cet événement",
                assignment.id, assignment.station_id,
            )
            continue
        mission = missions.get(assignment.mission_id) if assignment.mission_id else None
        duration = (mission.estimated_minutes if mission else None) or settings.DEFAULT_STOP_MINUTES
        stops.append(
            RouteStop(
                sequence_order=assignment.sequence_order,
                station=station,
                mission=mission,
                duration_minutes=duration,
            )
        )
    return stops


def generate_routes(
    db: Session,
    event_id: uuid.UUID,
    strategy: str = "optimal_time",
    constraints: Optional[RouteConstraints] = None,
) -> RouteGenerationResponse:
    """
    Génère (et remplace en BDD) le parcours suggéré de chaque équipe d'un événement.

    Étapes :
    1. Charger équipes, stations, missions, assignations et temps imposés
    2. Figer ces données en instantanés Pydantic (aucun objet ORM ne sort de la session)
    3. Calculer les parcours en parallèle, une tâche par équipe
    4. Remplacer les parcours existants de l'événement
    5. Calculer la synthèse du lot

    Une équipe sans assignation est ignorée sans faire échouer le lot.
    Lève ValueError si l'événement est introuvable.
    """
    constraints = constraints or RouteConstraints()

    event = db.get(Event, event_id)
    if event is None:
        raise ValueError(f"Événement {event_id} introuvable.")

    teams = db.execute(
        select(Team).where(Team.event_id == event_id).order_by(Team.created_at, Team.name)
    ).scalars().all()
    stations = db.execute(select(Station).where(Station.event_id == event_id)).scalars().all()
    missions = db.execute(select(Mission).where(Mission.event_id == event_id)).scalars().all()
    assignments = db.execute(
        select(TeamAssignment).where(TeamAssignment.event_id == event_id)
    ).scalars().all()
    overrides = load_overrides(db, event_id)

    station_points = {s.id: StationPoint.model_validate(s) for s in stations}
    mission_points = {m.id: MissionPoint.model_validate(m) for m in missions}

    assignments_by_team: Dict[uuid.UUID, List[TeamAssignment]] = defaultdict(list)
    for assignment in assignments:
        assignments_by_team[assignment.team_id].append(assignment)

    start_time = event.starts_at or datetime.now(timezone.utc)

    jobs = []
    for team in teams:
        stops = resolve_stops(assignments_by_team.get(team.id, []), station_points, mission_points)
        if not stops:
            logger.info("Équipe %s sans assignation : aucun parcours généré", team.id)
            continue
        jobs.append((team.id, team.name or f"Équipe {str(team.id)[:6]}", stops))

    def plan(job) -> Optional[TeamRouteResponse]:
        team_id, team_name, stops = job
        return build_team_route(
            team_id, team_name, stops, strategy, start_time,
            overrides=overrides, max_route_time=constraints.max_route_time,
        )

    if settings.ROUTE_WORKERS > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=min(settings.ROUTE_WORKERS, len(jobs))) as executor:
            planned = list(executor.map(plan, jobs))
    else:
        planned = [plan(job) for job in jobs]
    routes = [r for r in planned if r is not None]

    save_routes(db, event_id, routes)
    analytics = calculate_route_analytics(routes)

    logger.info(
        "Parcours générés pour l'événement %s (%s) : %d/%d équipes, score moyen %d",
        event_id, strategy, len(routes), len(teams), analytics.average_optimization_score,
    )

    return RouteGenerationResponse(
        event_id=event_id,
        strategy=strategy,
        constraints=constraints,
        routes=routes,
        analytics=analytics,
        total_teams_routed=len(routes),
    )


def save_routes(db: Session, event_id: uuid.UUID, routes: List[TeamRouteResponse]) -> None:
    """Remplace en bloc les parcours de l'événement (pas de diff incrémental)."""
    try:
        db.execute(delete(TeamRoute).where(TeamRoute.event_id == event_id))
        db.add_all([
            TeamRoute(
                event_id=event_id,
                team_id=route.team_id,
                strategy=route.strategy,
                total_distance=route.total_distance,
                total_time_minutes=route.total_time,
                optimization_score=route.optimization_score,
                route_data=route.model_dump(mode="json"),
            )
            for route in routes
        ])
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def get_event_routes(db: Session, event_id: uuid.UUID) -> List[TeamRouteResponse]:
    """Retourne les derniers parcours enregistrés pour un événement."""
    event = db.get(Event, event_id)
    if event is None:
        raise ValueError(f"Événement {event_id} introuvable.")

    rows = db.execute(
        select(TeamRoute)
        .where(TeamRoute.event_id == event_id)
        .order_by(TeamRoute.created_at)
    ).scalars().all()

    return [TeamRouteResponse.model_validate(row.route_data) for row in rows]
