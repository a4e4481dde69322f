"""
Single elimination bracket generation and result propagation.

Brackets are never mutated in place: every function that changes a match
returns a new Bracket that shares the untouched rounds and matches with the
one it was given.
"""
import math
from typing import Dict, List, Optional, Sequence

from knockout.errors import (
    DuplicateTeamError,
    InvalidScoreError,
    InvalidTeamCountError,
    MatchNotReadyError,
    TieScoreError,
)
from knockout.models import Bracket, Match, Team


PRELIMINARY_ROUND = -1


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the display name of a round.

    total_rounds counts the main rounds only (those numbered 0 and up), so
    the final is round total_rounds - 1 and holds 2 teams.
    """
    if round_number == PRELIMINARY_ROUND:
        return "Preliminary Round"
    teams_in_round = 2 ** (total_rounds - round_number)
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_main_bracket_size(team_count: int) -> int:
    """Calculate the main bracket size (largest power of 2 not above team_count)."""
    if team_count <= 0:
        return 0
    return 1 << (team_count.bit_length() - 1)


def calculate_slots(entrants: int) -> int:
    """Calculate the number of first round slots (next power of 2)."""
    if entrants <= 0:
        return 0
    return 1 << (entrants - 1).bit_length()


def calculate_preliminary_round(team_count: int) -> Dict[str, int]:
    """
    Size the preliminary round for teams that don't fit a power of 2 bracket.

    17 teams -> 1 extra team -> 1 preliminary match, 1 bye
    20 teams -> 4 extra teams -> 2 preliminary matches, 0 byes
    16 teams -> no preliminary round

    Never raises; anything below one team gets no preliminary round.
    """
    main_size = calculate_main_bracket_size(team_count)
    if team_count <= 0 or team_count == main_size:
        return {'preliminary_matches': 0, 'byes': 0}

    extra = team_count - main_size
    return {
        'preliminary_matches': (extra + 1) // 2,
        'byes': extra % 2,
    }


def _new_match(round_number: int, position: int, team1=None, team2=None, walkover=False) -> Match:
    if round_number == PRELIMINARY_ROUND:
        match_id = f"prelim-{position}"
    else:
        match_id = f"match-{round_number}-{position}"
    return Match(match_id, round_number, position, team1=team1, team2=team2, walkover=walkover)


def _first_round_pairs(pending: int, direct: List[Team], slots: int) -> List[tuple]:
    """
    Lay out the first main round as (team1, team2, walkover) tuples.

    The first `pending` slots wait for preliminary winners, so that winner p
    lands in match p // 2 like in every other round. Direct entrants fill the
    rest in order: an odd pending count leaves a team2 slot for the first of
    them (the bye team), then one-team walkover matches absorb the empty
    slots, then the remaining teams pair up.
    """
    pairs = []
    queue = list(direct)

    for i in range(0, pending, 2):
        if i + 1 < pending:
            pairs.append((None, None, False))
        else:
            pairs.append((None, queue.pop(0), False))

    remaining = slots // 2 - len(pairs)
    walkovers = 2 * remaining - len(queue)
    for _ in range(walkovers):
        pairs.append((queue.pop(0), None, True))
    while queue:
        pairs.append((queue.pop(0), queue.pop(0), False))

    return pairs


def build_bracket(teams: Sequence[Team]) -> Bracket:
    """
    Build the full round structure for an ordered list of teams.

    Order is significant: preliminary matches pair teams[0] v teams[1],
    teams[2] v teams[3], ... and the first main round pairs the remaining
    entrants in input order. The shape depends on len(teams) only.

    Raises InvalidTeamCountError for fewer than 2 teams and
    DuplicateTeamError when a team id repeats.
    """
    teams = list(teams)
    if len(teams) < 2:
        raise InvalidTeamCountError(f"A bracket needs at least 2 teams, got {len(teams)}")
    seen = set()
    for team in teams:
        if team.id in seen:
            raise DuplicateTeamError(f"Team id {team.id!r} appears more than once")
        seen.add(team.id)

    preliminary = calculate_preliminary_round(len(teams))
    pending = preliminary['preliminary_matches']

    rounds = []
    if pending:
        rounds.append([
            _new_match(PRELIMINARY_ROUND, i, teams[i * 2], teams[i * 2 + 1])
            for i in range(pending)
        ])

    direct = teams[pending * 2:]
    slots = calculate_slots(pending + len(direct))
    first_round = [
        _new_match(0, position, team1, team2, walkover)
        for position, (team1, team2, walkover) in enumerate(_first_round_pairs(pending, direct, slots))
    ]
    rounds.append(first_round)

    # Later rounds start empty; slots fill as results come in
    round_number = 1
    matches_in_round = len(first_round)
    while matches_in_round > 1:
        matches_in_round = math.ceil(matches_in_round / 2)
        rounds.append([_new_match(round_number, p) for p in range(matches_in_round)])
        round_number += 1

    first_index = len(rounds) - round_number
    for match_index, match in enumerate(first_round):
        if match.walkover:
            _advance(rounds, first_index, match_index, match.team1)

    return Bracket(rounds, len(teams))


def _replace(rounds: List[List[Match]], round_index: int, match_index: int, match: Match):
    """Swap a match into a copy of its round."""
    round_matches = list(rounds[round_index])
    round_matches[match_index] = match
    rounds[round_index] = round_matches


def _advance(rounds: List[List[Match]], round_index: int, match_index: int, team: Optional[Team]):
    """
    Place `team` in the slot fed by rounds[round_index][match_index].

    A completed match whose slot changes loses its result, and the team it
    had sent forward is withdrawn in turn, up to the final. Stops as soon as
    a slot already holds the right team.
    """
    while round_index + 1 < len(rounds):
        slot = 'team1' if match_index % 2 == 0 else 'team2'
        round_index, match_index = round_index + 1, match_index // 2
        target = rounds[round_index][match_index]
        if getattr(target, slot) == team:
            return

        changed = target.copy()
        setattr(changed, slot, team)
        was_completed = changed.completed
        if was_completed or changed.status == 'in_progress':
            changed.clear_result()
        _replace(rounds, round_index, match_index, changed)

        if not was_completed:
            return
        team = None


def _validate_scores(score1, score2):
    for score in (score1, score2):
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise InvalidScoreError(f"Scores must be non-negative integers, got {score1!r}-{score2!r}")
    if score1 == score2:
        raise TieScoreError(f"A knockout match cannot end in a tie ({score1}-{score2})")


def apply_result(bracket: Bracket, match_id: str, score1: int, score2: int) -> Bracket:
    """
    Record a score and advance the winner into the next round.

    Returns the bracket unchanged when no match has this id; the caller
    decides whether that is an error. Re-scoring a finished match is allowed:
    when the winner changes, every later result that depended on the old
    winner is cleared.
    """
    location = bracket.find_match(match_id)
    if location is None:
        return bracket
    round_index, match_index = location
    match = bracket.rounds[round_index][match_index]

    _validate_scores(score1, score2)
    if not match.is_ready:
        raise MatchNotReadyError(f"Match {match_id} does not have two teams yet")

    winner = match.team1 if score1 > score2 else match.team2

    updated = match.copy()
    updated.score1 = score1
    updated.score2 = score2
    updated.winner = winner
    updated.completed = True
    updated.status = 'finished'

    rounds = list(bracket.rounds)
    _replace(rounds, round_index, match_index, updated)
    _advance(rounds, round_index, match_index, winner)
    return Bracket(rounds, bracket.total_teams)


def schedule_match(bracket: Bracket, match_id: str, scheduled_time: Optional[str]) -> Bracket:
    """Set or clear the scheduled time of a match that has not been played."""
    location = bracket.find_match(match_id)
    if location is None:
        return bracket
    round_index, match_index = location
    match = bracket.rounds[round_index][match_index]
    if match.completed or match.walkover:
        raise MatchNotReadyError(f"Match {match_id} cannot be scheduled")

    updated = match.copy()
    updated.scheduled_time = scheduled_time
    if updated.status != 'in_progress':
        updated.status = 'scheduled' if scheduled_time else 'created'

    rounds = list(bracket.rounds)
    _replace(rounds, round_index, match_index, updated)
    return Bracket(rounds, bracket.total_teams)


def start_match(bracket: Bracket, match_id: str) -> Bracket:
    """Mark a match with both teams known as in progress."""
    location = bracket.find_match(match_id)
    if location is None:
        return bracket
    round_index, match_index = location
    match = bracket.rounds[round_index][match_index]
    if not match.is_ready or match.completed:
        raise MatchNotReadyError(f"Match {match_id} cannot be started")

    updated = match.copy()
    updated.status = 'in_progress'

    rounds = list(bracket.rounds)
    _replace(rounds, round_index, match_index, updated)
    return Bracket(rounds, bracket.total_teams)


def tournament_status(bracket: Bracket) -> str:
    if bracket.champion is not None:
        return 'completed'
    if any(match.completed for match in bracket.matches()):
        return 'in_progress'
    return 'draft'


def get_bracket_display(bracket: Bracket) -> Dict:
    """
    Get bracket data formatted for UI display.
    """
    total_rounds = bracket.main_rounds
    rounds = []
    matches_per_round = {}
    for round_matches in bracket.rounds:
        round_number = round_matches[0].round
        name = get_round_name(round_number, total_rounds)
        rounds.append({
            'round_number': round_number,
            'name': name,
            'matches': [match.to_dict() for match in round_matches],
        })
        # Walkovers are not played
        matches_per_round[name] = sum(1 for m in round_matches if not m.walkover)

    preliminary = bracket.preliminary_round
    champion = bracket.champion
    return {
        'rounds': rounds,
        'total_teams': bracket.total_teams,
        'total_rounds': total_rounds,
        'preliminary_matches': len(preliminary) if preliminary else 0,
        'walkovers': sum(1 for m in bracket.matches() if m.walkover),
        'matches_per_round': matches_per_round,
        'completed_matches': sum(1 for m in bracket.matches() if m.completed),
        'champion': champion.to_dict() if champion else None,
        'status': tournament_status(bracket),
    }
