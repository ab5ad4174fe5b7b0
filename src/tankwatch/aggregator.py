"""
Remaining-matchup aggregation

Given the tracked (bottom-N) teams and the canonical game list:
- counts remaining games between every pair of tracked teams
- projects one ``Row`` per tracked team, in tracked order
- builds the upcoming schedule window in the league's local calendar
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .models import (Game, OpponentCount, Row, ScheduleDay, ScheduledGame,
                     ScheduleWindow, TeamRecord)

logger = logging.getLogger(__name__)

EASTERN = "America/New_York"

MatchupMatrix = Dict[str, Dict[str, int]]


def is_remaining(game: Game, now: datetime) -> bool:
    """Not final, and either undated or starting at/after ``now``

    Undated games count as remaining; overcounting is preferred to silently
    losing a game whose date the provider failed to supply.
    """
    if game.is_final:
        return False
    return game.date is None or game.date >= now


def build_matchup_matrix(tracked: Sequence[TeamRecord], games: Iterable[Game],
                         now: datetime) -> MatchupMatrix:
    """Count remaining games between each pair of tracked teams

    Every ordered pair of distinct tracked teams starts at zero and each
    qualifying game increments both directions, so the matrix is symmetric.
    """
    ids = [team.team_id for team in tracked]
    matrix: MatchupMatrix = {a: {b: 0 for b in ids if b != a} for a in ids}

    for game in games:
        home, away = game.home_team_id, game.away_team_id
        if home not in matrix or away not in matrix or home == away:
            continue
        if not is_remaining(game, now):
            continue
        matrix[home][away] += 1
        matrix[away][home] += 1

    return matrix


def build_rows(tracked: Sequence[TeamRecord], games: Iterable[Game],
               now: Optional[datetime] = None) -> List[Row]:
    """One row per tracked team with its nonzero remaining opponents"""
    now = now or datetime.now(timezone.utc)
    matrix = build_matchup_matrix(tracked, games, now)
    names = {team.team_id: team.team_name for team in tracked}

    rows = []
    for rank, team in enumerate(tracked, start=1):
        opponents = [
            OpponentCount(opp_id, names.get(opp_id, opp_id), count)
            for opp_id, count in matrix[team.team_id].items()
            if count > 0
        ]
        opponents.sort(key=lambda o: (o.opponent_team.casefold(), o.opponent_team, o.opponent_team_id))
        total = sum(o.games_remaining for o in opponents)
        rows.append(Row(rank=rank, team=team, total_remaining=total, opponents=opponents))

    return rows


def local_date_key(moment: datetime, tz: ZoneInfo) -> str:
    """Calendar date of ``moment`` in ``tz`` as YYYY-MM-DD"""
    return moment.astimezone(tz).strftime('%Y-%m-%d')


def window_dates(now: datetime, days: int, tz: ZoneInfo) -> List[str]:
    """``days`` consecutive local calendar dates starting today"""
    today = now.astimezone(tz).date()
    return [(today + timedelta(days=offset)).isoformat() for offset in range(days)]


def build_schedule_window(tracked: Sequence[TeamRecord], games: Iterable[Game],
                          now: Optional[datetime] = None, days: int = 1,
                          time_zone: str = EASTERN) -> ScheduleWindow:
    """Games involving a tracked team on each of the next ``days`` local dates

    Every requested date is present, in order, even when it has no games.
    Each day's games are sorted by tipoff.
    """
    now = now or datetime.now(timezone.utc)
    tz = ZoneInfo(time_zone)
    names = {team.team_id: team.team_name for team in tracked}

    buckets: Dict[str, List[ScheduledGame]] = {d: [] for d in window_dates(now, max(days, 0), tz)}

    for game in games:
        if game.date is None or not game.involves(names):
            continue
        bucket = buckets.get(local_date_key(game.date, tz))
        if bucket is None:
            continue

        tracked_names = []
        if game.away_team_id in names:
            tracked_names.append(names[game.away_team_id] or game.away_team_name)
        if game.home_team_id in names:
            tracked_names.append(names[game.home_team_id] or game.home_team_name)
        bucket.append(ScheduledGame(game=game, tracked_teams=tracked_names))

    window = ScheduleWindow(time_zone=time_zone)
    for date_key, scheduled in buckets.items():
        scheduled.sort(key=lambda s: (s.game.date, s.game.game_id))
        window.days.append(ScheduleDay(date_et=date_key, games=scheduled))

    logger.debug(f"Schedule window: {[(d.date_et, len(d.games)) for d in window.days]}")
    return window
