"""
Value types for knockout brackets: teams, players, matches and the bracket itself.
"""
import copy
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple


class Player:
    def __init__(self, id, full_name, dni, created_at=None):
        self.id = id
        self.full_name = full_name
        self.dni = dni
        self.created_at = created_at or datetime.now().isoformat()

    def __repr__(self):
        return f"Player(id={self.id}, full_name={self.full_name}, dni={self.dni})"

    def __eq__(self, other):
        if not isinstance(other, Player):
            return NotImplemented
        return (self.id, self.full_name, self.dni) == (other.id, other.full_name, other.dni)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'full_name': self.full_name,
            'dni': self.dni,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Player':
        return cls(data['id'], data['full_name'], data['dni'], data.get('created_at'))


class Team:
    """A registered team. Matches reference teams, they never own them.

    Two teams are equal when their id and name match; the delegate contact
    and the player roster are registration details the bracket ignores.
    """

    def __init__(self, id, name, delegate=None, players=None):
        self.id = id
        self.name = name
        self.delegate = delegate if delegate else {'name': None, 'phone': None}
        self.players = players if players else []

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name})"

    def __eq__(self, other):
        if not isinstance(other, Team):
            return NotImplemented
        return self.id == other.id and self.name == other.name

    def __hash__(self):
        return hash((self.id, self.name))

    def to_dict(self, include_roster: bool = False) -> Dict:
        data = {'id': self.id, 'name': self.name}
        if include_roster:
            data['delegate'] = dict(self.delegate)
            data['players'] = [p.to_dict() for p in self.players]
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['Team']:
        if data is None:
            return None
        players = [Player.from_dict(p) for p in data.get('players', [])]
        return cls(data['id'], data['name'], data.get('delegate'), players)


class Match:
    def __init__(self, id, round, position, team1=None, team2=None, score1=None, score2=None,
                 winner=None, completed=False, walkover=False, status='created', scheduled_time=None):
        self.id = id
        self.round = round
        self.position = position
        self.team1 = team1
        self.team2 = team2
        self.score1 = score1
        self.score2 = score2
        self.winner = winner
        self.completed = completed
        self.walkover = walkover
        self.status = status
        self.scheduled_time = scheduled_time

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, position={self.position}, "
                f"team1={self.team1}, team2={self.team2}, score={self.score1}-{self.score2}, "
                f"winner={self.winner}, completed={self.completed})")

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_ready(self) -> bool:
        """Both teams are known and the match can be played."""
        return self.team1 is not None and self.team2 is not None and not self.walkover

    def copy(self) -> 'Match':
        # Teams are shared, never mutated by the bracket functions
        return copy.copy(self)

    def clear_result(self):
        """Drop a result that no longer matches the teams in the slots."""
        self.score1 = None
        self.score2 = None
        self.winner = None
        self.completed = False
        self.status = 'scheduled' if self.scheduled_time else 'created'

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round': self.round,
            'position': self.position,
            'team1': self.team1.to_dict() if self.team1 else None,
            'team2': self.team2.to_dict() if self.team2 else None,
            'score1': self.score1,
            'score2': self.score2,
            'winner': self.winner.to_dict() if self.winner else None,
            'completed': self.completed,
            'walkover': self.walkover,
            'status': self.status,
            'scheduled_time': self.scheduled_time,
        }

    @classmethod
    def from_dict(cls, data: Dict, teams_by_id: Optional[Dict[str, Team]] = None) -> 'Match':
        def resolve(team_data):
            if team_data is None:
                return None
            if teams_by_id and team_data['id'] in teams_by_id:
                return teams_by_id[team_data['id']]
            return Team.from_dict(team_data)

        return cls(
            id=data['id'],
            round=data['round'],
            position=data['position'],
            team1=resolve(data.get('team1')),
            team2=resolve(data.get('team2')),
            score1=data.get('score1'),
            score2=data.get('score2'),
            winner=resolve(data.get('winner')),
            completed=data.get('completed', False),
            walkover=data.get('walkover', False),
            status=data.get('status', 'created'),
            scheduled_time=data.get('scheduled_time'),
        )


class Bracket:
    """Rounds of matches, earliest first. The last round holds only the final.

    Matches are addressed by (round index, position); nothing links a match
    to its parent, the winner of position p always feeds position p // 2.
    """

    def __init__(self, rounds: List[List[Match]], total_teams: int):
        self.rounds = rounds
        self.total_teams = total_teams

    def __repr__(self):
        return f"Bracket(total_teams={self.total_teams}, rounds={[len(r) for r in self.rounds]})"

    def __eq__(self, other):
        if not isinstance(other, Bracket):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def preliminary_round(self) -> Optional[List[Match]]:
        if self.rounds and self.rounds[0] and self.rounds[0][0].round == -1:
            return self.rounds[0]
        return None

    @property
    def main_rounds(self) -> int:
        """Number of rounds numbered 0 and up."""
        return len(self.rounds) - (1 if self.preliminary_round is not None else 0)

    @property
    def final(self) -> Optional[Match]:
        return self.rounds[-1][0] if self.rounds else None

    @property
    def champion(self) -> Optional[Team]:
        final = self.final
        if final is not None and final.completed:
            return final.winner
        return None

    def matches(self) -> Iterator[Match]:
        for round_matches in self.rounds:
            yield from round_matches

    def find_match(self, match_id: str) -> Optional[Tuple[int, int]]:
        """Return (round_index, match_index) of a match, scanning rounds in order."""
        for r, round_matches in enumerate(self.rounds):
            for m, match in enumerate(round_matches):
                if match.id == match_id:
                    return r, m
        return None

    def get_match(self, match_id: str) -> Optional[Match]:
        location = self.find_match(match_id)
        if location is None:
            return None
        r, m = location
        return self.rounds[r][m]

    def to_dict(self) -> Dict:
        return {
            'rounds': [[match.to_dict() for match in round_matches] for round_matches in self.rounds],
            'total_teams': self.total_teams,
        }

    @classmethod
    def from_dict(cls, data: Dict, teams: Optional[List[Team]] = None) -> 'Bracket':
        """Rebuild a bracket, reusing the given Team objects for matching ids."""
        teams_by_id = {team.id: team for team in teams} if teams else None
        rounds = [
            [Match.from_dict(match_data, teams_by_id) for match_data in round_data]
            for round_data in data.get('rounds', [])
        ]
        return cls(rounds, data.get('total_teams', 0))
