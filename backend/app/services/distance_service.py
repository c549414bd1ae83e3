"""
Estimation des trajets entre stations (distance, durée, mode de transport).

Ordre de priorité pour une paire ordonnée (from → to) :
1. Temps imposé dans station_travel_times → utilisé tel quel
2. Coordonnées des deux côtés → haversine + vitesse de marche fixe
3. Sinon → valeurs de repli (1000 m / 10 min) : un parcours est toujours produit

Toutes les fonctions sont pures sauf build_travel_matrix (précalcul en BDD).
"""

import math
import uuid
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.event import Event
from app.models.station import Station, StationTravelTime
from app.schemas.route import TravelLeg, TravelMatrixResult
from app.schemas.station import StationPoint, TravelOverride

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
WALKING_MAX_METERS = 2000
PUBLIC_TRANSPORT_MIN_MINUTES = 30
COMPASS_DIRECTIONS = ["Nord", "Nord-Est", "Est", "Sud-Est", "Sud", "Sud-Ouest", "Ouest", "Nord-Ouest"]

OverrideIndex = Dict[Tuple[uuid.UUID, uuid.UUID], TravelOverride]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance orthodromique en kilomètres entre deux points GPS."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def index_overrides(overrides: Iterable[TravelOverride]) -> OverrideIndex:
    """Indexe les temps imposés par paire ordonnée (from_station_id, to_station_id)."""
    return {(o.from_station_id, o.to_station_id): o for o in overrides}


def load_overrides(db: Session, event_id: uuid.UUID) -> OverrideIndex:
    """Charge les temps imposés d'un événement sous forme d'instantanés indexés."""
    rows = db.execute(
        select(StationTravelTime).where(StationTravelTime.event_id == event_id)
    ).scalars().all()
    return index_overrides(TravelOverride.model_validate(r) for r in rows)


def determine_transport_mode(distance_meters: float, travel_minutes: int) -> str:
    """< 2 km → à pied ; sinon > 30 min → transports en commun ; sinon voiture."""
    if distance_meters < WALKING_MAX_METERS:
        return "walking"
    if travel_minutes > PUBLIC_TRANSPORT_MIN_MINUTES:
        return "public_transport"
    return "driving"


def estimate_leg(
    origin: StationPoint,
    destination: StationPoint,
    overrides: Optional[OverrideIndex] = None,
) -> TravelLeg:
    """
    Estime le trajet origin → destination.

    Un temps imposé remplace la durée estimée ; sa distance (si renseignée)
    remplace aussi la distance. Sans coordonnées, on retombe sur les valeurs
    fixes de configuration plutôt que de lever une erreur.
    """
    if origin.has_coordinates and destination.has_coordinates:
        km = haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        distance = round(km * 1000, 1)
        minutes = round(km / settings.WALKING_SPEED_KMH * 60)
    else:
        distance = float(settings.FALLBACK_DISTANCE_METERS)
        minutes = settings.FALLBACK_TRAVEL_MINUTES

    override = (overrides or {}).get((origin.id, destination.id))
    if override is not None:
        minutes = override.travel_time_minutes
        if override.distance_meters is not None:
            distance = float(override.distance_meters)

    return TravelLeg(
        distance_meters=distance,
        travel_minutes=minutes,
        transport_mode=determine_transport_mode(distance, minutes),
    )


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Cap initial en degrés (0 = Nord, sens horaire)."""
    d_lon = math.radians(lon2 - lon1)
    y = math.sin(d_lon) * math.cos(math.radians(lat2))
    x = (
        math.cos(math.radians(lat1)) * math.sin(math.radians(lat2))
        - math.sin(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.cos(d_lon)
    )
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def bearing_to_direction(bearing: float) -> str:
    return COMPASS_DIRECTIONS[round(bearing / 45) % 8]


def generate_directions(origin: StationPoint, destination: StationPoint, leg: TravelLeg) -> List[str]:
    """Consignes textuelles simplifiées (pas de navigation pas-à-pas réelle)."""
    directions = [
        f"Rejoindre {destination.name} depuis {origin.name}",
        f"Temps de trajet estimé : {leg.travel_minutes} minutes",
    ]
    if origin.has_coordinates and destination.has_coordinates:
        bearing = calculate_bearing(origin.latitude, origin.longitude, destination.latitude, destination.longitude)
        directions.insert(0, f"Cap {bearing_to_direction(bearing)}")
    return directions


def build_travel_matrix(
    db: Session,
    event_id: uuid.UUID,
    force_recalculate: bool = False,
) -> TravelMatrixResult:
    """
    Précalcule les temps de trajet entre toutes les paires ordonnées de stations
    géolocalisées d'un événement et les enregistre comme temps imposés.

    - Moins de 2 stations géolocalisées → rapport ok=False, rien n'est écrit
    - Matrice déjà présente à 90 % ou plus → ignorée sauf force_recalculate
    - Les paires recalculées remplacent les anciennes valeurs (delete + insert)

    Lève ValueError si l'événement est introuvable.
    """
    event = db.get(Event, event_id)
    if event is None:
        raise ValueError(f"Événement {event_id} introuvable.")

    stations = db.execute(
        select(Station)
        .where(
            Station.event_id == event_id,
            Station.latitude.is_not(None),
            Station.longitude.is_not(None),
        )
        .order_by(Station.name)
    ).scalars().all()

    if len(stations) < 2:
        return TravelMatrixResult(
            ok=False,
            message="Au moins 2 stations géolocalisées sont nécessaires.",
            station_count=len(stations),
        )

    expected_pairs = len(stations) * (len(stations) - 1)

    if not force_recalculate:
        existing = db.execute(
            select(func.count())
            .select_from(StationTravelTime)
            .where(StationTravelTime.event_id == event_id)
        ).scalar() or 0
        if existing >= expected_pairs * 0.9:
            return TravelMatrixResult(
                ok=True,
                message="Matrice des trajets déjà calculée.",
                station_count=len(stations),
                pair_count=existing,
                skipped=True,
            )

    points = [StationPoint.model_validate(s) for s in stations]
    rows = []
    for origin in points:
        for destination in points:
            if origin.id == destination.id:
                continue
            leg = estimate_leg(origin, destination)
            rows.append({
                "event_id": event_id,
                "from_station_id": origin.id,
                "to_station_id": destination.id,
                "travel_time_minutes": leg.travel_minutes,
                "distance_meters": round(leg.distance_meters),
            })

    station_ids = [p.id for p in points]
    try:
        db.execute(
            delete(StationTravelTime).where(
                and_(
                    StationTravelTime.event_id == event_id,
                    StationTravelTime.from_station_id.in_(station_ids),
                    StationTravelTime.to_station_id.in_(station_ids),
                )
            )
        )
        db.bulk_insert_mappings(StationTravelTime, rows)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    minutes = [r["travel_time_minutes"] for r in rows]
    logger.info(
        "Matrice des trajets de l'événement %s : %d stations, %d paires",
        event_id, len(points), len(rows),
    )
    return TravelMatrixResult(
        ok=True,
        message=f"Matrice des trajets calculée pour {len(points)} stations.",
        station_count=len(points),
        pair_count=len(rows),
        average_minutes=round(sum(minutes) / len(minutes)),
        max_minutes=max(minutes),
    )
