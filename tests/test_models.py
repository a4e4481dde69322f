"""
Unit tests for data models.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from knockout.models import Team, Player, Match, Bracket
from knockout.elimination import build_bracket, apply_result


class TestTeam:
    """Tests for Team class."""

    def test_team_creation(self):
        team = Team(id="a", name="Team A")
        assert team.id == "a"
        assert team.name == "Team A"
        assert team.delegate == {'name': None, 'phone': None}
        assert team.players == []

    def test_equality_ignores_roster(self):
        """Roster and delegate are registration details."""
        with_roster = Team(id="a", name="A", players=[Player("p1", "Ana Diaz", "12345678")])
        assert with_roster == Team(id="a", name="A")
        assert Team(id="a", name="A") != Team(id="b", name="A")

    def test_team_repr(self):
        assert "Team A" in repr(Team(id="a", name="Team A"))

    def test_roster_round_trip(self):
        team = Team(id="a", name="A", delegate={'name': 'Luis', 'phone': '999'},
                    players=[Player("p1", "Ana Diaz", "12345678", "2026-01-01T10:00:00")])
        restored = Team.from_dict(team.to_dict(include_roster=True))
        assert restored.delegate == {'name': 'Luis', 'phone': '999'}
        assert restored.players == team.players
        assert restored.players[0].created_at == "2026-01-01T10:00:00"

    def test_plain_dict_has_no_roster(self):
        assert Team(id="a", name="A").to_dict() == {'id': 'a', 'name': 'A'}


class TestMatch:
    """Tests for Match class."""

    def test_defaults(self):
        match = Match("match-0-0", 0, 0)
        assert match.team1 is None and match.team2 is None
        assert not match.completed
        assert not match.walkover
        assert match.status == 'created'
        assert not match.is_ready

    def test_copy_is_independent(self):
        match = Match("match-0-0", 0, 0, team1=Team("a", "A"), team2=Team("b", "B"))
        clone = match.copy()
        clone.score1 = 3
        assert match.score1 is None
        assert clone.team1 is match.team1


class TestBracketSerialization:
    """Tests for Bracket to_dict/from_dict."""

    def test_round_trip_reuses_teams(self, four_teams):
        bracket = apply_result(build_bracket(four_teams), "match-0-0", 2, 1)
        restored = Bracket.from_dict(bracket.to_dict(), four_teams)

        assert restored == bracket
        assert restored.get_match("match-1-0").team1 is four_teams[0]
        assert restored.get_match("match-0-0").winner is four_teams[0]

    def test_round_trip_without_teams(self, make_teams):
        bracket = build_bracket(make_teams(20))
        restored = Bracket.from_dict(bracket.to_dict())
        assert restored == bracket
        assert restored.main_rounds == 5

    def test_find_match(self, make_teams):
        bracket = build_bracket(make_teams(9))
        assert bracket.find_match("prelim-0") == (0, 0)
        assert bracket.find_match("match-0-3") == (1, 3)
        assert bracket.find_match("match-7-0") is None
        assert bracket.get_match("match-7-0") is None
