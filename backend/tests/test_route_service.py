"""
Tests unitaires pour la génération des parcours d'équipes.
Couverture : order_stops, calculate_optimization_score, build_team_route,
calculate_route_analytics, resolve_stops, generate_routes, get_event_routes.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models.event import Event
from app.models.route import TeamRoute
from app.models.station import Mission, Station
from app.models.team import Team, TeamAssignment
from app.schemas.route import RouteConstraints, RouteStop
from app.schemas.station import MissionPoint, StationPoint
from app.services.route_service import (
    build_team_route,
    calculate_optimization_score,
    calculate_route_analytics,
    generate_routes,
    get_event_routes,
    order_stops,
    resolve_stops,
    scenery_score,
)

START = datetime(2026, 6, 13, 9, 0, tzinfo=timezone.utc)


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------

def make_point(name, latitude=None, longitude=None, difficulty=1, station_type=None) -> StationPoint:
    return StationPoint(
        id=uuid.uuid4(),
        name=name,
        latitude=latitude,
        longitude=longitude,
        difficulty_level=difficulty,
        estimated_duration=15,
        station_type=station_type,
    )


def make_stop(order, station, duration=15, mission=None) -> RouteStop:
    return RouteStop(sequence_order=order, station=station, mission=mission, duration_minutes=duration)


def make_line_stops():
    """4 stations alignées sur un méridien, assignées dans le désordre (A, D, B, C)."""
    a = make_point("A", 50.000, 4.0, difficulty=3)
    b = make_point("B", 50.005, 4.0, difficulty=1)
    c = make_point("C", 50.010, 4.0, difficulty=4)
    d = make_point("D", 50.015, 4.0, difficulty=2)
    return [make_stop(1, a), make_stop(2, d), make_stop(3, b), make_stop(4, c)]


def scalars_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


# ----------------------------------------------------------------
# order_stops
# ----------------------------------------------------------------

class TestOrderStops:
    def test_plus_proche_voisin_depuis_le_premier_arret(self):
        ordered = order_stops(make_line_stops(), "optimal_time")
        assert [s.station.name for s in ordered] == ["A", "B", "C", "D"]

    def test_shortest_distance_identique_a_optimal_time(self):
        stops = make_line_stops()
        by_time = order_stops(stops, "optimal_time")
        by_distance = order_stops(stops, "shortest_distance")
        assert [s.station.id for s in by_time] == [s.station.id for s in by_distance]

    def test_difficulte_croissante(self):
        ordered = order_stops(make_line_stops(), "balanced_difficulty")
        difficulties = [s.station.difficulty for s in ordered]
        assert difficulties == sorted(difficulties)

    def test_difficulte_egale_garde_ordre_assignation(self):
        first = make_point("Premier", difficulty=2)
        second = make_point("Second", difficulty=2)
        ordered = order_stops([make_stop(2, second), make_stop(1, first)], "balanced_difficulty")
        assert [s.station.name for s in ordered] == ["Premier", "Second"]

    def test_parcours_paysager(self):
        musee = make_point("Musée", station_type="museum")
        parc = make_point("Parc", station_type="outdoor,park")
        cave = make_point("Cave", station_type="indoor")
        ordered = order_stops([make_stop(1, cave), make_stop(2, musee), make_stop(3, parc)], "scenic_route")
        assert [s.station.name for s in ordered] == ["Parc", "Musée", "Cave"]

    def test_score_paysager(self):
        assert scenery_score(make_point("X", station_type="Outdoor Landmark")) == 5
        assert scenery_score(make_point("X")) == 0

    def test_sans_coordonnees_ordre_assignation(self):
        """Tous les trajets valent 10 min : l'égalité est départagée par l'ordre d'assignation."""
        stops = [make_stop(i, make_point(f"S{i}")) for i in (3, 1, 2)]
        ordered = order_stops(stops, "optimal_time")
        assert [s.sequence_order for s in ordered] == [1, 2, 3]


# ----------------------------------------------------------------
# calculate_optimization_score
# ----------------------------------------------------------------

class TestOptimizationScore:
    def test_parcours_court_plafonne_a_100(self):
        assert calculate_optimization_score(60, 1000, 2.0, 3) == 100

    def test_penalites_de_duree(self):
        # 100 - 20 - 30 + (20 - 10) = 60
        assert calculate_optimization_score(400, 10000, 1.0, 10) == 60

    def test_jamais_negatif(self):
        assert 0 <= calculate_optimization_score(10_000, 1_000_000, 5.0, 500) <= 100

    def test_bonus_segments_nul_au_dela_de_20(self):
        # 100 - 20 - 30 + 0 = 50
        assert calculate_optimization_score(500, 9000, 5.0, 25) == 50


# ----------------------------------------------------------------
# build_team_route
# ----------------------------------------------------------------

class TestBuildTeamRoute:
    def test_sans_arret_retourne_none(self):
        assert build_team_route(uuid.uuid4(), "Les Renards", [], "optimal_time", START) is None

    def test_segments_adjacents(self):
        route = build_team_route(uuid.uuid4(), "Les Renards", make_line_stops(), "optimal_time", START)

        assert len(route.segments) == len(route.stations) - 1
        for i, segment in enumerate(route.segments):
            assert segment.from_station_id == route.stations[i].station_id
            assert segment.to_station_id == route.stations[i + 1].station_id
        assert [v.sequence for v in route.stations] == [1, 2, 3, 4]

    def test_horloge_simulee(self):
        a, b = make_point("A"), make_point("B")
        route = build_team_route(
            uuid.uuid4(), "Les Renards", [make_stop(1, a, 20), make_stop(2, b, 30)], "optimal_time", START,
        )

        first, second = route.stations
        assert first.arrival_time == START
        assert (first.departure_time - START).total_seconds() == 20 * 60
        # 20 min sur place + 10 min de trajet de repli
        assert (second.arrival_time - START).total_seconds() == 30 * 60
        assert route.total_time == 20 + 10 + 30
        assert route.total_distance == 1000.0

    def test_une_seule_station_sans_segment(self):
        route = build_team_route(uuid.uuid4(), "Solo", [make_stop(1, make_point("A"))], "scenic_route", START)
        assert route.segments == []
        assert route.total_distance == 0
        assert 0 <= route.optimization_score <= 100

    def test_mission_reprise_dans_la_visite(self):
        station = make_point("A")
        mission = MissionPoint(id=uuid.uuid4(), to_station_id=station.id, title="Trouver la clé")
        route = build_team_route(
            uuid.uuid4(), "Les Renards", [make_stop(1, station, mission=mission)], "optimal_time", START,
        )
        assert route.stations[0].mission_title == "Trouver la clé"

    def test_indicateur_budget_temps(self):
        stops = make_line_stops()
        dans_budget = build_team_route(uuid.uuid4(), "A", stops, "optimal_time", START, max_route_time=480)
        hors_budget = build_team_route(uuid.uuid4(), "B", stops, "optimal_time", START, max_route_time=30)
        sans_budget = build_team_route(uuid.uuid4(), "C", stops, "optimal_time", START)

        assert dans_budget.within_time_budget is True
        assert hors_budget.within_time_budget is False
        assert sans_budget.within_time_budget is None

    def test_difficulte_moyenne(self):
        route = build_team_route(uuid.uuid4(), "A", make_line_stops(), "balanced_difficulty", START)
        assert route.difficulty == 2.5


# ----------------------------------------------------------------
# calculate_route_analytics
# ----------------------------------------------------------------

class TestRouteAnalytics:
    def test_lot_vide(self):
        analytics = calculate_route_analytics([])
        assert analytics.total_routes == 0
        assert analytics.longest_route is None

    def test_synthese(self):
        stops = make_line_stops()
        facile = build_team_route(uuid.uuid4(), "A", [make_stop(1, make_point("X"))], "optimal_time", START)
        moyen = build_team_route(uuid.uuid4(), "B", stops, "optimal_time", START)

        analytics = calculate_route_analytics([facile, moyen])

        assert analytics.total_routes == 2
        assert analytics.difficulty_distribution["easy"] == 1
        assert analytics.difficulty_distribution["medium"] == 1
        assert analytics.longest_route == moyen.total_time
        assert analytics.shortest_route == facile.total_time
        assert analytics.transport_mode_breakdown == {"walking": 3}


# ----------------------------------------------------------------
# resolve_stops
# ----------------------------------------------------------------

class TestResolveStops:
    def test_assignation_orpheline_ignoree(self):
        station = make_point("A")
        assignments = [
            TeamAssignment(id=1, station_id=station.id, mission_id=None, sequence_order=1),
            TeamAssignment(id=2, station_id=uuid.uuid4(), mission_id=None, sequence_order=2),
        ]
        stops = resolve_stops(assignments, {station.id: station}, {})
        assert len(stops) == 1
        assert stops[0].duration_minutes == 15

    def test_duree_de_la_mission(self):
        station = make_point("A")
        mission = MissionPoint(id=uuid.uuid4(), to_station_id=station.id, estimated_minutes=25)
        assignments = [TeamAssignment(id=1, station_id=station.id, mission_id=mission.id, sequence_order=1)]

        stops = resolve_stops(assignments, {station.id: station}, {mission.id: mission})

        assert stops[0].duration_minutes == 25
        assert stops[0].mission == mission


# ----------------------------------------------------------------
# generate_routes
# ----------------------------------------------------------------

def make_event_db(event, teams, stations, missions, assignments):
    """DB mock : get(Event) puis execute() dans l'ordre des chargements du service."""
    db = MagicMock()
    db.get.return_value = event
    db.execute.side_effect = [
        scalars_result(teams),
        scalars_result(stations),
        scalars_result(missions),
        scalars_result(assignments),
        scalars_result([]),        # temps imposés
        MagicMock(),               # delete des anciens parcours
    ]
    return db


class TestGenerateRoutes:
    def test_evenement_introuvable_leve_erreur(self):
        db = MagicMock()
        db.get.return_value = None

        with pytest.raises(ValueError, match="introuvable"):
            generate_routes(db, uuid.uuid4())

    def test_generation_par_equipe(self):
        event_id = uuid.uuid4()
        event = Event(id=event_id, name="Chasse", starts_at=START)
        renards = Team(id=uuid.uuid4(), event_id=event_id, name="Les Renards")
        hiboux = Team(id=uuid.uuid4(), event_id=event_id, name="Les Hiboux")
        sans_assignation = Team(id=uuid.uuid4(), event_id=event_id, name="Les Retardataires")
        s1 = Station(id=uuid.uuid4(), event_id=event_id, name="Fontaine", difficulty_level=1, estimated_duration=15)
        s2 = Station(id=uuid.uuid4(), event_id=event_id, name="Beffroi", difficulty_level=2, estimated_duration=15)
        mission = Mission(id=uuid.uuid4(), event_id=event_id, to_station_id=s2.id, title="Sonner", active=True)
        assignments = [
            TeamAssignment(id=1, event_id=event_id, team_id=renards.id, station_id=s1.id, sequence_order=1),
            TeamAssignment(id=2, event_id=event_id, team_id=renards.id, station_id=s2.id,
                           mission_id=mission.id, sequence_order=2),
            TeamAssignment(id=3, event_id=event_id, team_id=hiboux.id, station_id=s2.id, sequence_order=1),
        ]
        db = make_event_db(event, [renards, hiboux, sans_assignation], [s1, s2], [mission], assignments)

        response = generate_routes(db, event_id, "balanced_difficulty", RouteConstraints(max_route_time=60))

        assert response.total_teams_routed == 2
        assert [r.team_name for r in response.routes] == ["Les Renards", "Les Hiboux"]
        assert response.routes[0].stations[0].arrival_time == START
        assert response.routes[0].within_time_budget is True
        assert response.analytics.total_routes == 2
        assert response.constraints.max_route_time == 60
        db.add_all.assert_called_once()
        assert len(db.add_all.call_args[0][0]) == 2
        db.commit.assert_called_once()

    def test_execution_sequentielle_meme_resultat(self):
        event_id = uuid.uuid4()
        event = Event(id=event_id, name="Chasse", starts_at=START)
        teams = [Team(id=uuid.uuid4(), event_id=event_id, name=f"Équipe {i}") for i in range(3)]
        station = Station(id=uuid.uuid4(), event_id=event_id, name="Fontaine")
        assignments = [
            TeamAssignment(id=i, event_id=event_id, team_id=t.id, station_id=station.id, sequence_order=1)
            for i, t in enumerate(teams)
        ]

        parallel = generate_routes(make_event_db(event, teams, [station], [], assignments), event_id)
        with patch("app.services.route_service.settings.ROUTE_WORKERS", 1):
            sequential = generate_routes(make_event_db(event, teams, [station], [], assignments), event_id)

        assert [r.model_dump() for r in parallel.routes] == [r.model_dump() for r in sequential.routes]

    def test_erreur_sauvegarde_rollback(self):
        event_id = uuid.uuid4()
        event = Event(id=event_id, name="Chasse", starts_at=START)
        db = make_event_db(event, [], [], [], [])
        db.commit.side_effect = SQLAlchemyError("connexion perdue")

        with pytest.raises(SQLAlchemyError):
            generate_routes(db, event_id)

        db.rollback.assert_called_once()


class TestGetEventRoutes:
    def test_relit_les_parcours_enregistres(self):
        event_id = uuid.uuid4()
        route = build_team_route(uuid.uuid4(), "Les Renards", make_line_stops(), "optimal_time", START)
        row = TeamRoute(event_id=event_id, team_id=route.team_id, route_data=route.model_dump(mode="json"))
        db = MagicMock()
        db.get.return_value = Event(id=event_id, name="Chasse")
        db.execute.return_value.scalars.return_value.all.return_value = [row]

        routes = get_event_routes(db, event_id)

        assert routes == [route]

    def test_evenement_introuvable(self):
        db = MagicMock()
        db.get.return_value = None
        with pytest.raises(ValueError, match="introuvable"):
            get_event_routes(db, uuid.uuid4())
