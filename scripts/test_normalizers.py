#!/usr/bin/env python3
"""
Tests for deep extraction and the standings/schedule normalizers

Uses hand-built documents in the shapes the NBA CDN and ESPN feeds return.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tankwatch.errors import ShapeError
from tankwatch.extractor import deep_collect
from tankwatch.models import LastTen, Streak
from tankwatch.schedule import normalize_schedule, parse_date
from tankwatch.standings import (normalize_standings, parse_last_ten,
                                 parse_streak, resolve_team_name)


def has_team_id(obj):
    return 'teamId' in obj


def nested(depth):
    obj = {'teamId': 'deep'}
    for _ in range(depth):
        obj = {'child': obj}
    return obj


def nba_team(team_id, name, wins, losses, **extra):
    return {'teamId': team_id, 'teamName': name, 'wins': wins, 'losses': losses, **extra}


def espn_entry(team_id, location, nickname, abbreviation, wins, losses, streak=None, last_ten=None):
    stats = [
        {'name': 'wins', 'type': 'wins', 'abbreviation': 'W', 'value': float(wins), 'displayValue': str(wins)},
        {'name': 'losses', 'type': 'losses', 'abbreviation': 'L', 'value': float(losses),
         'displayValue': str(losses)},
        {'name': 'winPercent', 'type': 'winpercent', 'abbreviation': 'PCT',
         'value': wins / (wins + losses), 'displayValue': f"{wins / (wins + losses):.3f}"},
    ]
    if streak is not None:
        stats.append({'name': 'streak', 'type': 'streak', 'abbreviation': 'STRK',
                      'value': 0.0, 'displayValue': streak})
    if last_ten is not None:
        stats.append({'name': 'Last Ten Games', 'type': 'lasttengames', 'abbreviation': 'L10',
                      'summary': last_ten, 'displayValue': last_ten})
    return {
        'team': {
            'id': team_id,
            'location': location,
            'name': nickname,
            'displayName': f"{location} {nickname}",
            'abbreviation': abbreviation,
        },
        'stats': stats,
    }


def nba_game(game_id, home, away, when, status=1, status_text='7:00 pm ET'):
    return {
        'gameId': game_id,
        'gameStatus': status,
        'gameStatusText': status_text,
        'gameDateTimeUTC': when,
        'homeTeam': {'teamId': home[0], 'teamName': home[1], 'teamTricode': home[1][:3].upper()},
        'awayTeam': {'teamId': away[0], 'teamName': away[1], 'teamTricode': away[1][:3].upper()},
    }


def espn_event(event_id, when, home, away, final=False):
    status = {
        'type': {
            'id': '3' if final else '1',
            'name': 'STATUS_FINAL' if final else 'STATUS_SCHEDULED',
            'completed': final,
            'shortDetail': 'Final' if final else '7:00 PM EST',
        }
    }

    def competitor(side, team):
        return {
            'id': team[0],
            'homeAway': side,
            'team': {'id': team[0], 'displayName': team[1], 'abbreviation': team[1][:3].upper()},
        }

    return {
        'id': event_id,
        'date': when,
        'name': f"{away[1]} at {home[1]}",
        'competitions': [{
            'id': event_id,
            'date': when,
            'status': status,
            'competitors': [competitor('home', home), competitor('away', away)],
        }],
    }


# Deep extraction

def test_collects_nested_matches_in_discovery_order():
    document = [
        {'teamId': 1, 'inner': {'teamId': 2}},
        {'wrapper': [{'teamId': 3}]},
    ]
    found = deep_collect(document, has_team_id)
    assert [node['teamId'] for node in found] == [1, 2, 3]


def test_cyclic_and_shared_references_are_visited_once():
    node = {'teamId': 'a'}
    node['self'] = node
    document = {'x': node, 'y': [node, {'again': node}]}

    found = deep_collect(document, has_team_id)
    assert found == [node]


def test_self_containing_list_terminates():
    loop = []
    loop.append(loop)
    assert deep_collect(loop, has_team_id) == []


def test_depth_bound():
    assert len(deep_collect(nested(20), has_team_id)) == 1
    assert deep_collect(nested(21), has_team_id) == []
    assert deep_collect(nested(5), has_team_id, max_depth=4) == []


def test_predicate_errors_reject_the_node():
    def picky(obj):
        return obj['required'] > 0

    found = deep_collect({'a': {'required': 1}, 'b': {'other': True}}, picky)
    assert found == [{'required': 1}]


# Standings

def test_duplicate_team_keeps_most_games_played():
    fewer = nba_team('7', 'Hornets', 4, 6)
    more = nba_team('7', 'Hornets', 5, 7)

    for document in ({'a': [fewer], 'b': [more]}, {'a': [more], 'b': [fewer]}):
        teams = normalize_standings(document)
        assert len(teams) == 1
        assert (teams[0].wins, teams[0].losses) == (5, 7)
        assert teams[0].win_pct == pytest.approx(5 / 12)


def test_ordering_tie_breaks():
    document = {'standings': {'teams': [
        nba_team('1', 'Bobcats', 10, 30),
        nba_team('2', 'Cats', 5, 15),
        nba_team('3', 'Aardvarks', 10, 30),
        nba_team('4', 'Dogs', 20, 20),
    ]}}

    teams = normalize_standings(document)
    assert [t.team_name for t in teams] == ['Aardvarks', 'Bobcats', 'Cats', 'Dogs']


def test_normalization_is_idempotent():
    document = {'teams': [nba_team(str(i), f"Team {i}", i, 20 - i) for i in range(1, 8)]}
    first = [t.to_dict() for t in normalize_standings(document)]
    second = [t.to_dict() for t in normalize_standings(document)]
    assert json.dumps(first) == json.dumps(second)


def test_win_pct_explicit_and_derived():
    teams = normalize_standings([
        {'teamId': '1', 'teamName': 'Explicit', 'winPct': '.400', 'wins': 1, 'losses': 1},
        {'teamId': '2', 'teamName': 'Percent', 'winPct': 30},
        {'teamId': '3', 'teamName': 'Derived', 'wins': 1, 'losses': 3},
        {'teamId': '4', 'teamName': 'Nothing', 'wins': 0, 'losses': 0},
    ])
    by_name = {t.team_name: t.win_pct for t in teams}
    assert by_name['Explicit'] == pytest.approx(0.4)
    assert by_name['Percent'] == pytest.approx(0.3)
    assert by_name['Derived'] == pytest.approx(0.25)
    assert 'Nothing' not in by_name


def test_team_name_fallbacks():
    teams = normalize_standings([
        {'teamId': '1', 'teamCity': 'Utah', 'teamNickname': 'Jazz', 'wins': 1, 'losses': 1},
        {'teamId': '2', 'teamTricode': 'WAS', 'wins': 1, 'losses': 2},
        {'teamId': '3', 'teamSitesOnly': {'teamName': 'Spurs'}, 'wins': 1, 'losses': 3},
        {'teamId': '4', 'wins': 1, 'losses': 4},
    ])
    assert sorted(t.team_name for t in teams) == ['Spurs', 'Utah Jazz', 'WAS']


def test_resolve_team_name_prefers_direct_name():
    assert resolve_team_name({'fullName': 'Utah Jazz', 'teamCity': 'Salt Lake'}) == 'Utah Jazz'
    assert resolve_team_name({'teamCity': 'Utah'}) is None
    assert resolve_team_name('Utah') is None


def test_espn_stats_entries():
    document = {'children': [
        {'name': 'Eastern Conference', 'standings': {'entries': [
            espn_entry('27', 'Washington', 'Wizards', 'WSH', 10, 40, streak='L5', last_ten='2-8'),
        ]}},
        {'name': 'Western Conference', 'standings': {'entries': [
            espn_entry('24', 'San Antonio', 'Spurs', 'SA', 15, 35, streak='W2', last_ten='6-4'),
        ]}},
    ]}

    teams = normalize_standings(document)
    assert [t.team_id for t in teams] == ['27', '24']

    wizards = teams[0]
    assert wizards.team_name == 'Washington Wizards'
    assert wizards.tricode == 'WSH'
    assert (wizards.wins, wizards.losses) == (10, 40)
    assert wizards.win_pct == pytest.approx(0.2)
    assert wizards.streak == Streak('L', 5)
    assert wizards.last10 == LastTen(2, 8)
    assert teams[1].streak.display == 'W2'


def test_non_container_standings_document():
    with pytest.raises(ShapeError):
        normalize_standings("not a document")
    with pytest.raises(ShapeError):
        normalize_standings(None)


@pytest.mark.parametrize('value,expected', [
    ('W3', Streak('W', 3)),
    ('L 2', Streak('L', 2)),
    ('4w', Streak('W', 4)),
    ('Won 5', Streak('W', 5)),
    (3, Streak('W', 3)),
    (-2, Streak('L', 2)),
    (0, None),
    ('', None),
    ('streaky', None),
    (None, None),
])
def test_parse_streak(value, expected):
    assert parse_streak(value) == expected


def test_parse_last_ten():
    assert parse_last_ten('6-4') == LastTen(6, 4)
    assert parse_last_ten({'wins': 7, 'losses': 3}) == LastTen(7, 3)
    assert parse_last_ten('12-4') is None
    assert parse_last_ten('n/a') is None


# Schedule

def test_parse_date_forms():
    assert parse_date('2026-02-08T19:30:00Z') == datetime(2026, 2, 8, 19, 30, tzinfo=timezone.utc)
    assert parse_date('2026-02-08T19:30Z') == datetime(2026, 2, 8, 19, 30, tzinfo=timezone.utc)
    assert parse_date('2026-02-08T14:30:00-05:00') == datetime(2026, 2, 8, 19, 30, tzinfo=timezone.utc)
    assert parse_date('20260208') == datetime(2026, 2, 8, tzinfo=timezone.utc)
    assert parse_date('2026-02-08T19:30:00') == datetime(2026, 2, 8, 19, 30, tzinfo=timezone.utc)
    assert parse_date('TBD') is None
    assert parse_date('') is None
    assert parse_date(None) is None


def test_nba_schedule_games():
    document = {'leagueSchedule': {'gameDates': [
        {'gameDate': '02/08/2026 00:00:00', 'games': [
            nba_game('001', ('1', 'Hawks'), ('2', 'Nets'), '2026-02-08T00:30:00Z'),
            nba_game('002', ('3', 'Bulls'), ('4', 'Heat'), '2026-02-01T00:30:00Z', status=3, status_text='Final'),
        ]},
    ]}}

    games = {g.game_id: g for g in normalize_schedule(document)}
    assert set(games) == {'001', '002'}

    upcoming = games['001']
    assert (upcoming.home_team_id, upcoming.away_team_id) == ('1', '2')
    assert (upcoming.home_team_name, upcoming.away_team_name) == ('Hawks', 'Nets')
    assert upcoming.date == datetime(2026, 2, 8, 0, 30, tzinfo=timezone.utc)
    assert not upcoming.is_final
    assert games['002'].is_final


def test_final_detected_from_status_text():
    game = nba_game('003', ('1', 'Hawks'), ('2', 'Nets'), '2026-02-01T00:30:00Z',
                    status=2, status_text='Final/OT')
    assert normalize_schedule([game])[0].is_final


def test_duplicate_game_first_occurrence_wins():
    first = nba_game('010', ('1', 'Hawks'), ('2', 'Nets'), '2026-02-08T00:30:00Z', status_text='first')
    second = nba_game('010', ('1', 'Hawks'), ('2', 'Nets'), '2026-02-08T00:30:00Z', status_text='second')

    games = normalize_schedule({'a': [first]}, {'b': [second]})
    assert len(games) == 1
    assert games[0].status_text == 'first'


def test_composite_id_and_compact_date():
    document = [{'gameDate': '20260210', 'homeTeam': {'teamId': 1}, 'awayTeam': {'teamId': 2}}]
    game = normalize_schedule(document)[0]
    assert game.game_id == '1_2_20260210'
    assert game.date == datetime(2026, 2, 10, tzinfo=timezone.utc)
    assert game.home_team_name == '1'


def test_unparseable_date_keeps_game():
    game = normalize_schedule([nba_game('011', ('1', 'Hawks'), ('2', 'Nets'), 'TBD')])[0]
    assert game.date is None


def test_espn_competitors_across_team_schedules():
    wizards, spurs, jazz = ('27', 'Washington Wizards'), ('24', 'San Antonio Spurs'), ('26', 'Utah Jazz')
    shared = espn_event('401', '2026-02-14T00:00Z', wizards, spurs)
    wizards_schedule = {'team': {'id': '27'}, 'events': [
        shared,
        espn_event('400', '2026-02-01T00:00Z', jazz, wizards, final=True),
    ]}
    spurs_schedule = {'team': {'id': '24'}, 'events': [json.loads(json.dumps(shared))]}

    games = {g.game_id: g for g in normalize_schedule(wizards_schedule, spurs_schedule)}
    assert set(games) == {'400', '401'}

    upcoming = games['401']
    assert (upcoming.home_team_id, upcoming.away_team_id) == ('27', '24')
    assert upcoming.home_team_name == 'Washington Wizards'
    assert upcoming.date == datetime(2026, 2, 14, tzinfo=timezone.utc)
    assert not upcoming.is_final
    assert games['400'].is_final


def test_non_container_schedule_document():
    with pytest.raises(ShapeError):
        normalize_schedule({'games': []}, 42)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
