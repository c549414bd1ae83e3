"""
Tests unitaires pour le classement et le suivi en direct d'un événement.
Couverture : rank_teams, get_leaderboard, get_event_status.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.models.event import Event
from app.models.progress import TeamProgress
from app.models.team import Team
from app.schemas.leaderboard import LeaderboardEntry
from app.schemas.progress import TeamResponse
from app.services.leaderboard_service import get_event_status, get_leaderboard, rank_teams

T_10H = datetime(2026, 6, 13, 10, 0, tzinfo=timezone.utc)
T_11H = datetime(2026, 6, 13, 11, 0, tzinfo=timezone.utc)


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------

def make_team(event_id, name, status="active", score=0, completion_time=None, current_station_id=None):
    return Team(
        id=uuid.uuid4(),
        event_id=event_id,
        name=name,
        participants=[],
        status=status,
        score=score,
        completion_time=completion_time,
        current_station_id=current_station_id,
    )


def make_row(team, status, score=0, station_id=None):
    return TeamProgress(
        team_id=team.id,
        station_id=station_id or uuid.uuid4(),
        status=status,
        score_earned=score,
        user_clips=[],
    )


def make_entry(name, status, score, completion_time=None) -> LeaderboardEntry:
    team = TeamResponse(id=uuid.uuid4(), event_id=uuid.uuid4(), name=name, status=status, score=score)
    return LeaderboardEntry(
        team=team,
        completed_stations=0,
        total_score=score,
        completion_time=completion_time,
        rank=0,
    )


def scalars_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def rows_result(rows):
    result = MagicMock()
    result.all.return_value = rows
    return result


# ----------------------------------------------------------------
# rank_teams
# ----------------------------------------------------------------

class TestRankTeams:
    def test_equipes_terminees_devant_quel_que_soit_le_score(self):
        t1 = make_entry("T1", "completed", 500, T_10H)
        t2 = make_entry("T2", "active", 900)
        t3 = make_entry("T3", "completed", 500, T_11H)

        ranked = rank_teams([t2, t3, t1])

        assert [e.team.name for e in ranked] == ["T1", "T3", "T2"]
        assert [e.rank for e in ranked] == [1, 2, 3]

    def test_score_decroissant(self):
        ranked = rank_teams([make_entry("Bas", "active", 10), make_entry("Haut", "active", 90)])
        assert [e.team.name for e in ranked] == ["Haut", "Bas"]

    def test_egalite_non_terminees_garde_ordre_entree(self):
        ranked = rank_teams([
            make_entry("Premier", "active", 50),
            make_entry("Second", "active", 50),
            make_entry("Troisième", "inactive", 50),
        ])
        assert [e.team.name for e in ranked] == ["Premier", "Second", "Troisième"]

    def test_liste_vide(self):
        assert rank_teams([]) == []


# ----------------------------------------------------------------
# get_leaderboard
# ----------------------------------------------------------------

class TestGetLeaderboard:
    def test_evenement_introuvable_leve_erreur(self):
        db = MagicMock()
        db.get.return_value = None

        with pytest.raises(ValueError, match="introuvable"):
            get_leaderboard(db, uuid.uuid4())

    def test_classement_depuis_la_progression(self):
        event_id = uuid.uuid4()
        t1 = make_team(event_id, "T1", "completed", 500, T_10H)
        t2 = make_team(event_id, "T2", "active", 900)
        t3 = make_team(event_id, "T3", "completed", 500, T_11H)
        rows = [
            make_row(t1, "completed", 300), make_row(t1, "completed", 200),
            make_row(t2, "completed", 900), make_row(t2, "in_progress"),
            make_row(t3, "completed", 500), make_row(t3, "skipped"),
        ]
        db = MagicMock()
        db.get.return_value = Event(id=event_id, name="Chasse")
        db.execute.side_effect = [scalars_result([t2, t3, t1]), scalars_result(rows)]

        ranked = get_leaderboard(db, event_id)

        assert [e.team.name for e in ranked] == ["T1", "T3", "T2"]
        assert [e.total_score for e in ranked] == [500, 500, 900]
        assert [e.completed_stations for e in ranked] == [2, 1, 1]
        assert ranked[2].completion_time is None

    def test_heure_de_fin_ignoree_si_non_terminee(self):
        event_id = uuid.uuid4()
        team = make_team(event_id, "T1", "active", 0, completion_time=T_10H)
        db = MagicMock()
        db.get.return_value = Event(id=event_id, name="Chasse")
        db.execute.side_effect = [scalars_result([team]), scalars_result([])]

        ranked = get_leaderboard(db, event_id)

        assert ranked[0].completion_time is None
        assert ranked[0].rank == 1


# ----------------------------------------------------------------
# get_event_status
# ----------------------------------------------------------------

class TestGetEventStatus:
    def test_evenement_sans_equipe(self):
        event_id = uuid.uuid4()
        db = MagicMock()
        db.get.return_value = Event(id=event_id, name="Chasse")
        db.execute.side_effect = [scalars_result([]), scalars_result([]), rows_result([])]

        status = get_event_status(db, event_id)

        assert status.total_teams == 0
        assert status.average_progress_percent == 0
        assert status.station_utilization == {}

    def test_tableau_de_bord(self):
        event_id = uuid.uuid4()
        station_id = uuid.uuid4()
        last_station_id = uuid.uuid4()
        playing = make_team(event_id, "En jeu", "active", current_station_id=station_id)
        between = make_team(event_id, "Entre deux stations", "active", current_station_id=station_id)
        idle = make_team(event_id, "Pas encore partie", "active")
        finished = make_team(event_id, "Finie", "completed", current_station_id=last_station_id)
        rows = [
            make_row(playing, "completed", 10), make_row(playing, "in_progress"),
            make_row(between, "completed", 10), make_row(between, "completed", 10),
            make_row(finished, "completed", 10), make_row(finished, "completed", 10),
        ]
        db = MagicMock()
        db.get.return_value = Event(id=event_id, name="Chasse")
        db.execute.side_effect = [
            scalars_result([playing, between, idle, finished]),
            scalars_result(rows),
            rows_result([(playing.id, 4), (between.id, 4), (idle.id, 4), (finished.id, 2)]),
        ]

        status = get_event_status(db, event_id)

        assert status.total_teams == 4
        assert status.active_teams == 3
        assert status.completed_teams == 1
        # Équipes actives positionnées sur une station, avec ou sans in_progress
        assert status.currently_playing_teams == 2
        # (25 + 50 + 0 + 100) / 4
        assert status.average_progress_percent == 44
        # Toutes les équipes positionnées, terminées comprises
        assert status.station_utilization == {str(station_id): 2, str(last_station_id): 1}
