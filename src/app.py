"""
Flask JSON service for knockout tournaments.
"""
import os
import re
import uuid
import yaml
from datetime import datetime
from filelock import FileLock
from flask import Flask, request, jsonify, abort
from werkzeug.exceptions import HTTPException
from knockout.models import Team, Player, Bracket
from knockout.errors import BracketError, MatchNotReadyError
from knockout.elimination import (
    build_bracket,
    apply_result,
    schedule_match,
    start_match,
    tournament_status,
    get_bracket_display,
)

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
MAX_TEAMS = int(os.environ.get('TOURNAMENT_MAX_TEAMS', '128'))
LOCK_TIMEOUT = float(os.environ.get('TOURNAMENT_LOCK_TIMEOUT', '10'))

DNI_PATTERN = re.compile(r'[0-9]{8}')
ID_PATTERN = re.compile(r'[a-z0-9-]+')


def _tournaments_dir() -> str:
    return os.path.join(DATA_DIR, 'tournaments')


def _registry_file() -> str:
    return os.path.join(DATA_DIR, 'tournaments.yaml')


def _tournament_file(tournament_id: str) -> str:
    return os.path.join(_tournaments_dir(), f'{tournament_id}.yaml')


def _registry_lock() -> FileLock:
    os.makedirs(DATA_DIR, exist_ok=True)
    return FileLock(os.path.join(DATA_DIR, '.lock'), timeout=LOCK_TIMEOUT)


def _tournament_lock(tournament_id: str) -> FileLock:
    """Serialise read-modify-write cycles on one tournament."""
    if not ID_PATTERN.fullmatch(tournament_id):
        abort(404, description=f"Tournament {tournament_id} not found")
    os.makedirs(_tournaments_dir(), exist_ok=True)
    return FileLock(_tournament_file(tournament_id) + '.lock', timeout=LOCK_TIMEOUT)


def _now() -> str:
    return datetime.now().isoformat()


def load_registry() -> dict:
    """Load the tournaments registry from YAML."""
    path = _registry_file()
    if not os.path.exists(path):
        return {'tournaments': []}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return {'tournaments': []}
    if not data or 'tournaments' not in data:
        return {'tournaments': []}
    return data


def save_registry(data: dict):
    """Save the tournaments registry to YAML."""
    os.makedirs(DATA_DIR, exist_ok=True)
    with open(_registry_file(), 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False)


def load_tournament(tournament_id: str):
    """Load one tournament, with Team and Bracket objects. Returns None if missing."""
    if not ID_PATTERN.fullmatch(tournament_id):
        return None
    path = _tournament_file(tournament_id)
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {path}: {e}')
        return None
    if not data:
        return None

    teams = [Team.from_dict(t) for t in data.get('teams', [])]
    data['teams'] = teams
    data['bracket'] = Bracket.from_dict(data.get('bracket', {}), teams)
    return data


def save_tournament(tournament: dict):
    """Save one tournament to YAML."""
    data = dict(tournament)
    data['teams'] = [team.to_dict(include_roster=True) for team in tournament['teams']]
    data['bracket'] = tournament['bracket'].to_dict()
    data['status'] = tournament_status(tournament['bracket'])
    data['updated_at'] = _now()
    tournament['status'] = data['status']
    tournament['updated_at'] = data['updated_at']

    path = _tournament_file(tournament['id'])
    os.makedirs(os.path.dirname(path), exist_ok=True)
    app.logger.debug(f'Writing {path}')
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _sync_registry_entry(tournament: dict):
    """Refresh the registry summary of a tournament."""
    with _registry_lock():
        registry = load_registry()
        for entry in registry['tournaments']:
            if entry['id'] == tournament['id']:
                entry['status'] = tournament['status']
                entry['updated_at'] = tournament['updated_at']
                break
        save_registry(registry)


def team_json(team):
    if team is None:
        return None
    return {'id': team.id, 'name': team.name}


def player_json(player: Player) -> dict:
    return {
        'id': player.id,
        'fullName': player.full_name,
        'dni': player.dni,
        'createdAt': player.created_at,
    }


def match_json(match) -> dict:
    return {
        'id': match.id,
        'round': match.round,
        'position': match.position,
        'team1': team_json(match.team1),
        'team2': team_json(match.team2),
        'score1': match.score1,
        'score2': match.score2,
        'winner': team_json(match.winner),
        'completed': match.completed,
        'walkover': match.walkover,
        'status': match.status,
        'scheduledTime': match.scheduled_time,
    }


def bracket_json(bracket: Bracket) -> dict:
    return {
        'rounds': [[match_json(m) for m in round_matches] for round_matches in bracket.rounds],
        'totalTeams': bracket.total_teams,
        'champion': team_json(bracket.champion),
    }


def tournament_json(tournament: dict) -> dict:
    return {
        'id': tournament['id'],
        'name': tournament['name'],
        'status': tournament_status(tournament['bracket']),
        'totalTeams': len(tournament['teams']),
        'teams': [team_json(t) for t in tournament['teams']],
        'bracket': bracket_json(tournament['bracket']),
        'createdAt': tournament['created_at'],
        'updatedAt': tournament['updated_at'],
    }


def _get_tournament_or_404(tournament_id: str) -> dict:
    tournament = load_tournament(tournament_id)
    if tournament is None:
        abort(404, description=f'Tournament {tournament_id} not found')
    return tournament


def _find_team(team_id: str):
    """Return (tournament_id, position) of a team, or (None, None)."""
    for entry in load_registry()['tournaments']:
        if team_id in entry.get('team_ids', []):
            return entry['id'], entry['team_ids'].index(team_id)
    return None, None


@app.errorhandler(BracketError)
def handle_bracket_error(e):
    status = 409 if isinstance(e, MatchNotReadyError) else 400
    app.logger.warning(f'Rejected request to {request.path}: {e}')
    return jsonify({'error': str(e)}), status


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({'error': e.description}), e.code


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    """List all tournaments, newest first."""
    registry = load_registry()
    items = [{
        'id': entry['id'],
        'name': entry['name'],
        'status': entry.get('status', 'draft'),
        'totalTeams': entry.get('total_teams', len(entry.get('team_ids', []))),
        'createdAt': entry['created_at'],
        'updatedAt': entry.get('updated_at', entry['created_at']),
    } for entry in registry['tournaments']]
    items.sort(key=lambda item: item['createdAt'], reverse=True)
    return jsonify(items)


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    """Register the teams and build the bracket."""
    data = request.get_json(silent=True) or {}
    name = str(data.get('name', '')).strip()
    if not name:
        return jsonify({'error': 'Tournament name is required.'}), 400

    team_entries = data.get('teams')
    if not isinstance(team_entries, list):
        return jsonify({'error': 'A list of teams is required.'}), 400
    if len(team_entries) > MAX_TEAMS:
        return jsonify({'error': f'At most {MAX_TEAMS} teams are allowed.'}), 400

    teams = []
    seen_names = set()
    for entry in team_entries:
        team_name = str(entry.get('name', '')).strip() if isinstance(entry, dict) else ''
        if not team_name:
            return jsonify({'error': 'Every team needs a name.'}), 400
        if team_name.lower() in seen_names:
            return jsonify({'error': f'Team "{team_name}" is listed twice.'}), 400
        seen_names.add(team_name.lower())
        delegate = entry.get('delegate')
        if not isinstance(delegate, dict):
            delegate = {}
        teams.append(Team(
            id=str(uuid.uuid4()),
            name=team_name,
            delegate={'name': delegate.get('name'), 'phone': delegate.get('phone')},
        ))

    bracket = build_bracket(teams)

    created = _now()
    tournament = {
        'id': str(uuid.uuid4()),
        'name': name,
        'created_at': created,
        'updated_at': created,
        'teams': teams,
        'bracket': bracket,
    }
    # Lock order is always tournament, then registry
    with _tournament_lock(tournament['id']):
        save_tournament(tournament)

        with _registry_lock():
            registry = load_registry()
            registry['tournaments'].append({
                'id': tournament['id'],
                'name': name,
                'status': tournament['status'],
                'total_teams': len(teams),
                'team_ids': [team.id for team in teams],
                'created_at': created,
                'updated_at': tournament['updated_at'],
            })
            save_registry(registry)

    app.logger.info(f'Created tournament {tournament["id"]} "{name}" with {len(teams)} teams '
                    f'and {len(bracket.rounds)} rounds')
    return jsonify(tournament_json(tournament)), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    return jsonify(tournament_json(_get_tournament_or_404(tournament_id)))


@app.route('/api/tournaments/<tournament_id>', methods=['DELETE'])
def api_delete_tournament(tournament_id):
    """Delete a tournament and its registry entry."""
    lock = _tournament_lock(tournament_id)
    with lock:
        _get_tournament_or_404(tournament_id)
        os.remove(_tournament_file(tournament_id))

        with _registry_lock():
            registry = load_registry()
            registry['tournaments'] = [t for t in registry['tournaments'] if t['id'] != tournament_id]
            save_registry(registry)

    try:
        os.remove(lock.lock_file)
    except FileNotFoundError:
        pass

    app.logger.info(f'Deleted tournament {tournament_id}')
    return '', 204


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>', methods=['PUT'])
def api_update_match(tournament_id, match_id):
    """Record a match score and advance the winner."""
    data = request.get_json(silent=True) or {}
    score1 = data.get('score1')
    score2 = data.get('score2')

    with _tournament_lock(tournament_id):
        tournament = _get_tournament_or_404(tournament_id)
        bracket = tournament['bracket']
        if bracket.find_match(match_id) is None:
            abort(404, description=f'Match {match_id} not found')

        tournament['bracket'] = apply_result(bracket, match_id, score1, score2)
        save_tournament(tournament)
        _sync_registry_entry(tournament)

    match = tournament['bracket'].get_match(match_id)
    app.logger.info(f'Tournament {tournament_id}: {match_id} finished {score1}-{score2}, '
                    f'winner {match.winner.name}')
    return jsonify({
        'bracket': bracket_json(tournament['bracket']),
        'match': match_json(match),
    })


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/schedule', methods=['PUT'])
def api_schedule_match(tournament_id, match_id):
    """Set the time a match will be played; null clears it."""
    data = request.get_json(silent=True) or {}
    scheduled_time = data.get('scheduledTime')
    if scheduled_time is not None:
        try:
            datetime.fromisoformat(str(scheduled_time))
        except ValueError:
            return jsonify({'error': 'scheduledTime must be an ISO 8601 date and time.'}), 400

    with _tournament_lock(tournament_id):
        tournament = _get_tournament_or_404(tournament_id)
        if tournament['bracket'].find_match(match_id) is None:
            abort(404, description=f'Match {match_id} not found')
        tournament['bracket'] = schedule_match(tournament['bracket'], match_id, scheduled_time)
        save_tournament(tournament)

    return jsonify(match_json(tournament['bracket'].get_match(match_id)))


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/start', methods=['POST'])
def api_start_match(tournament_id, match_id):
    with _tournament_lock(tournament_id):
        tournament = _get_tournament_or_404(tournament_id)
        if tournament['bracket'].find_match(match_id) is None:
            abort(404, description=f'Match {match_id} not found')
        tournament['bracket'] = start_match(tournament['bracket'], match_id)
        save_tournament(tournament)

    return jsonify(match_json(tournament['bracket'].get_match(match_id)))


@app.route('/api/tournaments/<tournament_id>/reset', methods=['POST'])
def api_reset_tournament(tournament_id):
    """Clear every result by rebuilding the bracket from the registered teams."""
    with _tournament_lock(tournament_id):
        tournament = _get_tournament_or_404(tournament_id)
        tournament['bracket'] = build_bracket(tournament['teams'])
        save_tournament(tournament)
        _sync_registry_entry(tournament)
    app.logger.info(f'Reset tournament {tournament_id}')
    return jsonify(tournament_json(tournament))


@app.route('/api/tournaments/<tournament_id>/display', methods=['GET'])
def api_bracket_display(tournament_id):
    tournament = _get_tournament_or_404(tournament_id)
    return jsonify(get_bracket_display(tournament['bracket']))


@app.route('/api/teams/<team_id>/players', methods=['GET'])
def api_team_players(team_id):
    """Team roster with its delegate and tournament."""
    tournament_id, position = _find_team(team_id)
    if tournament_id is None:
        abort(404, description=f'Team {team_id} not found')
    tournament = _get_tournament_or_404(tournament_id)
    team = next((t for t in tournament['teams'] if t.id == team_id), None)
    if team is None:
        abort(404, description=f'Team {team_id} not found')

    return jsonify({
        'team': {
            'id': team.id,
            'name': team.name,
            'position': position,
            'delegate': team.delegate,
            'tournament': {
                'id': tournament['id'],
                'name': tournament['name'],
                'status': tournament_status(tournament['bracket']),
            },
        },
        'players': [player_json(p) for p in team.players],
        'totalPlayers': len(team.players),
    })


@app.route('/api/teams/<team_id>/players', methods=['POST'])
def api_add_players(team_id):
    """Add players to a team roster. DNIs are 8 digits and unique per team."""
    data = request.get_json(silent=True) or {}
    entries = data.get('players')
    if not isinstance(entries, list) or not entries:
        return jsonify({'error': 'A non-empty list of players is required.'}), 400

    tournament_id, _ = _find_team(team_id)
    if tournament_id is None:
        abort(404, description=f'Team {team_id} not found')

    with _tournament_lock(tournament_id):
        tournament = _get_tournament_or_404(tournament_id)
        team = next((t for t in tournament['teams'] if t.id == team_id), None)
        if team is None:
            abort(404, description=f'Team {team_id} not found')

        known_dnis = {p.dni for p in team.players}
        new_players = []
        for entry in entries:
            full_name = str(entry.get('fullName', '')).strip() if isinstance(entry, dict) else ''
            dni = str(entry.get('dni', '')).strip() if isinstance(entry, dict) else ''
            if not full_name:
                return jsonify({'error': 'Every player needs a full name.'}), 400
            if not DNI_PATTERN.fullmatch(dni):
                return jsonify({'error': f'DNI must have 8 digits, got "{dni}".'}), 400
            if dni in known_dnis:
                return jsonify({'error': f'DNI {dni} is already on this team.'}), 400
            known_dnis.add(dni)
            new_players.append(Player(id=str(uuid.uuid4()), full_name=full_name, dni=dni))

        team.players.extend(new_players)
        save_tournament(tournament)

    app.logger.info(f'Added {len(new_players)} players to team {team_id}')
    return jsonify({
        'players': [player_json(p) for p in team.players],
        'totalPlayers': len(team.players),
    }), 201


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
