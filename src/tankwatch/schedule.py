"""
Schedule normalizer

Turns a raw schedule or events document from any provider into a
deduplicated list of ``Game``. Order is not meaningful; consumers sort.

Handles:
- Home/away sides given as sub-objects ("homeTeam", "home", "hTeam") or as
  a competitor list tagged with "homeAway"
- ISO-8601 datetimes and compact YYYYMMDD dates (UTC midnight)
- Final detection from a numeric status code or status text
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import ShapeError
from .extractor import deep_collect
from .models import Game
from .rules import FieldRule, first_of, keys, to_number, to_text
from .standings import TEAM_ID_RULES, TRICODE_RULES, resolve_team_name

logger = logging.getLogger(__name__)

FINAL_STATUS_CODE = 3

_COMPACT_DATE = re.compile(r'^\d{8}$')


def _competitor(side: str) -> FieldRule:
    def resolve(obj: Any) -> Any:
        for entry in obj.get('competitors') or []:
            if isinstance(entry, dict) and str(entry.get('homeAway', '')).lower() == side:
                return entry
        return None

    return FieldRule(f"competitors[homeAway={side}]", resolve)


def _as_side(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict) and first_of(value, TEAM_ID_RULES, to_text):
        return value
    return None


HOME_SIDE_RULES = keys('homeTeam', 'home', 'hTeam') + [_competitor('home')]
AWAY_SIDE_RULES = keys('awayTeam', 'away', 'vTeam') + [_competitor('away')]

GAME_ID_RULES = keys('gameId', 'gameCode', 'id')
RAW_DATE_RULES = keys('gameDate', 'date')
DATE_RULES = keys(
    'gameDateTimeUTC', 'gameDateTimeEst', 'gameDateUTC', 'gameDateEst',
    'gameDate', 'startDateEastern', 'startTimeUTC', 'date',
)
STATUS_CODE_RULES = keys('gameStatus', 'statusNum', 'status', 'status.type.id', 'status.id')
STATUS_TEXT_RULES = keys(
    'gameStatusText', 'gameStatusTextShort', 'statusText',
    'status.type.shortDetail', 'status.type.detail', 'status.type.description',
)


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a provider date into an aware UTC datetime, or None"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        text = str(int(value)) if value == int(value) else ''
        if not _COMPACT_DATE.match(text):
            try:
                return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
        value = text

    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()

    parsed = None
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        if _COMPACT_DATE.match(text):
            try:
                parsed = datetime.strptime(text, '%Y%m%d')
            except ValueError:
                return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_date(obj: Dict[str, Any]) -> Optional[datetime]:
    for rule in DATE_RULES:
        parsed = parse_date(rule(obj))
        if parsed is not None:
            return parsed
    return None


def is_game_like(obj: Dict[str, Any]) -> bool:
    """Has home and away sides that each resolve to a team id"""
    return (first_of(obj, HOME_SIDE_RULES, _as_side) is not None
            and first_of(obj, AWAY_SIDE_RULES, _as_side) is not None)


def _side_name(side: Dict[str, Any], team_id: str) -> str:
    return resolve_team_name(side) or first_of(side, TRICODE_RULES, to_text) or team_id


def build_game(candidate: Dict[str, Any]) -> Optional[Game]:
    """Build a game from one candidate, or None when it is unusable"""
    home = first_of(candidate, HOME_SIDE_RULES, _as_side)
    away = first_of(candidate, AWAY_SIDE_RULES, _as_side)
    if home is None or away is None:
        return None

    home_id = first_of(home, TEAM_ID_RULES, to_text)
    away_id = first_of(away, TEAM_ID_RULES, to_text)
    if not home_id or not away_id:
        return None

    game_id = first_of(candidate, GAME_ID_RULES, to_text)
    if not game_id:
        raw_date = first_of(candidate, RAW_DATE_RULES, to_text) or ''
        game_id = f"{home_id}_{away_id}_{raw_date}"

    status_code = first_of(candidate, STATUS_CODE_RULES, to_number)
    status_text = first_of(candidate, STATUS_TEXT_RULES, to_text)
    is_final = status_code == FINAL_STATUS_CODE or 'final' in (status_text or '').lower()

    return Game(
        game_id=game_id,
        home_team_id=home_id,
        away_team_id=away_id,
        home_team_name=_side_name(home, home_id),
        away_team_name=_side_name(away, away_id),
        date=resolve_date(candidate),
        is_final=is_final,
        status_text=status_text,
    )


def normalize_schedule(*documents: Any) -> List[Game]:
    """Normalize one or more raw schedule documents into unique games

    Several documents may describe the same game (per-team schedules list
    each game twice); the first occurrence of a game id is kept.
    """
    unique: Dict[str, Game] = {}
    seen_candidates = 0

    for document in documents:
        if not isinstance(document, (dict, list)):
            raise ShapeError(f"Schedule document must be an object or array, got {type(document).__name__}")

        candidates = deep_collect(document, is_game_like)
        seen_candidates += len(candidates)
        for candidate in candidates:
            game = build_game(candidate)
            if game is None:
                continue
            if game.game_id not in unique:
                unique[game.game_id] = game

    logger.debug(f"Schedule: {seen_candidates} candidates -> {len(unique)} games")
    return list(unique.values())
