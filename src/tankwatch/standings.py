"""
Standings normalizer

Turns a raw standings document from any provider into a deduplicated list of
``TeamRecord`` sorted worst-first:

- win percentage ascending
- games played descending (more games at the same percentage ranks worse)
- team name ascending
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .errors import ShapeError
from .extractor import deep_collect
from .models import LastTen, Streak, TeamRecord
from .rules import (any_present, first_of, keys, stat, to_count, to_number,
                    to_text)

logger = logging.getLogger(__name__)

TEAM_ID_RULES = keys('teamId', 'team.teamId', 'team.id', 'id')

WINS_RULES = keys('wins', 'win', 'w') + [stat('wins', 'W')]
LOSSES_RULES = keys('losses', 'loss', 'l') + [stat('losses', 'L')]
WIN_PCT_RULES = keys('winPct', 'winPercentage', 'win_pct') + [stat('winPercent', 'PCT')]

DIRECT_NAME_RULES = keys(
    'teamName', 'teamName.default', 'fullName', 'name', 'name.default',
    'team.teamName', 'team.fullName', 'team.displayName',
)
CITY_RULES = keys('teamCity', 'city', 'team.city', 'team.location', 'placeName.default')
NICKNAME_RULES = keys('teamNickname', 'nickname', 'team.nickname', 'team.name')
TRICODE_RULES = keys(
    'teamTricode', 'team.teamTricode', 'teamAbbreviation', 'tricode',
    'team.abbreviation', 'abbreviation', 'teamAbbrev.default',
)

STREAK_RULES = keys('strCurrentStreak', 'streak', 'currentStreak') + [
    stat('streak', fields=('displayValue', 'value')),
]
LAST10_RULES = keys('l10', 'last10', 'lastTen', 'lastTenGames') + [
    stat('Last Ten Games', 'lasttengames', 'L10', fields=('summary', 'displayValue')),
]

_STREAK_PREFIX = re.compile(r'^\s*([WL])\s*(\d+)\s*$', re.IGNORECASE)
_STREAK_SUFFIX = re.compile(r'^\s*(\d+)\s*([WL])\s*$', re.IGNORECASE)
_STREAK_WORDS = re.compile(r'^\s*(won|lost)\s+(\d+)', re.IGNORECASE)
_WON_LOST = re.compile(r'(\d+)\s*-\s*(\d+)')


def is_team_record_like(obj: Dict[str, Any]) -> bool:
    """Carries a team id and at least one record field"""
    if first_of(obj, TEAM_ID_RULES, to_text) is None:
        return False
    return any_present(obj, (WINS_RULES, LOSSES_RULES, WIN_PCT_RULES))


def resolve_team_name(obj: Any) -> Optional[str]:
    """Direct name field, then "city nickname", else None"""
    if not isinstance(obj, dict):
        return None

    direct = first_of(obj, DIRECT_NAME_RULES, to_text)
    if direct:
        return direct

    city = first_of(obj, CITY_RULES, to_text)
    nickname = first_of(obj, NICKNAME_RULES, to_text)
    if city and nickname:
        return f"{city} {nickname}"

    return None


def resolve_win_pct(explicit: Any, wins: Optional[int], losses: Optional[int]) -> Optional[float]:
    """Explicit percentage when sane, otherwise derived from wins/losses"""
    pct = to_number(explicit)
    if pct is not None and 1.0 < pct <= 100.0:
        pct = pct / 100.0
    if pct is not None and 0.0 <= pct <= 1.0:
        return pct

    if wins is not None and losses is not None and wins + losses > 0:
        return wins / (wins + losses)
    return None


def parse_streak(value: Any) -> Optional[Streak]:
    if value is None or isinstance(value, bool):
        return None

    number = to_number(value)
    if number is not None:
        if number == 0 or number != int(number):
            return None
        return Streak('W' if number > 0 else 'L', abs(int(number)))

    text = to_text(value)
    if not text:
        return None

    match = _STREAK_PREFIX.match(text)
    if match:
        direction, count = match.group(1), match.group(2)
    else:
        match = _STREAK_SUFFIX.match(text)
        if match:
            count, direction = match.group(1), match.group(2)
        else:
            match = _STREAK_WORDS.match(text)
            if not match:
                return None
            direction = 'W' if match.group(1).lower() == 'won' else 'L'
            count = match.group(2)

    count = int(count)
    if count <= 0:
        return None
    return Streak(direction.upper(), count)


def parse_last_ten(value: Any) -> Optional[LastTen]:
    if isinstance(value, dict):
        wins = to_count(value.get('wins', value.get('w')))
        losses = to_count(value.get('losses', value.get('l')))
    else:
        text = to_text(value)
        match = _WON_LOST.search(text) if text else None
        if not match:
            return None
        wins, losses = int(match.group(1)), int(match.group(2))

    if wins is None or losses is None or wins + losses > 10:
        return None
    return LastTen(wins, losses)


def build_team_record(candidate: Dict[str, Any]) -> Optional[TeamRecord]:
    """Build a record from one candidate, or None when it is unusable"""
    team_id = first_of(candidate, TEAM_ID_RULES, to_text)
    if not team_id:
        return None

    wins = first_of(candidate, WINS_RULES, to_count)
    losses = first_of(candidate, LOSSES_RULES, to_count)
    win_pct = resolve_win_pct(first_of(candidate, WIN_PCT_RULES), wins, losses)

    tricode = first_of(candidate, TRICODE_RULES, to_text)
    team_name = (resolve_team_name(candidate)
                 or resolve_team_name(candidate.get('teamSitesOnly'))
                 or tricode)

    if not team_name or win_pct is None:
        logger.debug(f"Dropping standings candidate {team_id}: name={team_name!r} winPct={win_pct!r}")
        return None

    return TeamRecord(
        team_id=team_id,
        team_name=team_name,
        win_pct=win_pct,
        wins=wins,
        losses=losses,
        tricode=tricode,
        streak=parse_streak(first_of(candidate, STREAK_RULES)),
        last10=parse_last_ten(first_of(candidate, LAST10_RULES)),
    )


def standings_sort_key(team: TeamRecord):
    return (team.win_pct, -team.games_played, team.team_name.casefold(), team.team_name, team.team_id)


def normalize_standings(document: Any) -> List[TeamRecord]:
    """Normalize a raw standings document into ranked team records"""
    if not isinstance(document, (dict, list)):
        raise ShapeError(f"Standings document must be an object or array, got {type(document).__name__}")

    candidates = deep_collect(document, is_team_record_like)

    by_id: Dict[str, TeamRecord] = {}
    for candidate in candidates:
        record = build_team_record(candidate)
        if record is None:
            continue

        existing = by_id.get(record.team_id)
        # Same team embedded in several structures: keep the most complete one.
        if existing is None or record.games_played >= existing.games_played:
            by_id[record.team_id] = record

    teams = sorted(by_id.values(), key=standings_sort_key)
    logger.debug(f"Standings: {len(candidates)} candidates -> {len(teams)} teams")
    return teams
