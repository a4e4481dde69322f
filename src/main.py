# Command line entry point: build a knockout bracket and replay results

import argparse
import sys
import yaml
from knockout.elimination import build_bracket, apply_result, get_round_name
from knockout.errors import BracketError
from knockout.models import Team


def load_teams(file_path):
    """Teams file is a YAML list of names or of {id, name} mappings."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        entries = yaml.safe_load(file) or []
    teams = []
    for i, entry in enumerate(entries):
        if isinstance(entry, dict):
            teams.append(Team(id=str(entry.get('id', f'team-{i + 1}')), name=entry['name']))
        else:
            teams.append(Team(id=f'team-{i + 1}', name=str(entry)))
    return teams


def load_results(file_path):
    """Results file is a YAML list of {match, score1, score2}, applied in order."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        return yaml.safe_load(file) or []


def format_slot(team):
    return team.name if team else 'TBD'


def print_bracket(bracket):
    total_rounds = bracket.main_rounds
    for round_matches in bracket.rounds:
        print(f"\n# {get_round_name(round_matches[0].round, total_rounds)}")
        for match in round_matches:
            if match.walkover:
                print(f"  {match.id}: {format_slot(match.team1)} (walkover)")
            elif match.completed:
                print(f"  {match.id}: {format_slot(match.team1)} {match.score1} - "
                      f"{match.score2} {format_slot(match.team2)}")
            else:
                print(f"  {match.id}: {format_slot(match.team1)} vs {format_slot(match.team2)}")

    if bracket.champion:
        print(f"\nChampion: {bracket.champion.name}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Build a knockout bracket from a list of teams.')
    parser.add_argument('teams_file', help='YAML list of team names')
    parser.add_argument('--results', help='YAML list of {match, score1, score2} to apply in order')
    args = parser.parse_args(argv)

    teams = load_teams(args.teams_file)
    try:
        bracket = build_bracket(teams)
        if args.results:
            for result in load_results(args.results):
                if bracket.find_match(result['match']) is None:
                    print(f"Error: unknown match {result['match']}", file=sys.stderr)
                    return 1
                bracket = apply_result(bracket, result['match'], result['score1'], result['score2'])
    except BracketError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_bracket(bracket)
    return 0


if __name__ == '__main__':
    sys.exit(main())
