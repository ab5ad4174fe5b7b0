"""
Canonical entities and the JSON projections consumed by the frontend

The normalizers produce ``TeamRecord`` and ``Game`` independent of which
provider supplied them. The aggregator turns those into ``Row`` and
``ScheduleWindow`` objects whose ``to_dict`` output is the published shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Format an aware datetime as ISO-8601 UTC with a ``Z`` suffix"""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class Streak:
    """Current run of wins ("W") or losses ("L")"""
    direction: str
    count: int

    @property
    def display(self) -> str:
        return f"{self.direction}{self.count}"

    def to_dict(self) -> Dict[str, Any]:
        return {'direction': self.direction, 'count': self.count, 'display': self.display}


@dataclass(frozen=True)
class LastTen:
    """Won-lost split over the last ten games"""
    wins: int
    losses: int

    @property
    def display(self) -> str:
        return f"{self.wins}-{self.losses}"

    def to_dict(self) -> Dict[str, Any]:
        return {'wins': self.wins, 'losses': self.losses, 'display': self.display}


@dataclass(frozen=True)
class TeamRecord:
    """Canonical standings entry"""
    team_id: str
    team_name: str
    win_pct: float
    wins: Optional[int] = None
    losses: Optional[int] = None
    tricode: Optional[str] = None
    streak: Optional[Streak] = None
    last10: Optional[LastTen] = None

    @property
    def games_played(self) -> int:
        return (self.wins or 0) + (self.losses or 0)

    @property
    def record(self) -> Optional[str]:
        if self.wins is None or self.losses is None:
            return None
        return f"{self.wins}-{self.losses}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'teamId': self.team_id,
            'teamName': self.team_name,
            'tricode': self.tricode,
            'wins': self.wins,
            'losses': self.losses,
            'winPct': self.win_pct,
            'streak': self.streak.to_dict() if self.streak else None,
            'last10': self.last10.to_dict() if self.last10 else None,
        }


@dataclass(frozen=True)
class Game:
    """Canonical scheduled or completed game"""
    game_id: str
    home_team_id: str
    away_team_id: str
    home_team_name: str
    away_team_name: str
    date: Optional[datetime] = None
    is_final: bool = False
    status_text: Optional[str] = None

    def involves(self, team_ids) -> bool:
        return self.home_team_id in team_ids or self.away_team_id in team_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gameId': self.game_id,
            'homeTeamId': self.home_team_id,
            'awayTeamId': self.away_team_id,
            'homeTeamName': self.home_team_name,
            'awayTeamName': self.away_team_name,
            'date': isoformat_utc(self.date),
            'isFinal': self.is_final,
            'statusText': self.status_text,
        }


@dataclass(frozen=True)
class OpponentCount:
    opponent_team_id: str
    opponent_team: str
    games_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'opponentTeamId': self.opponent_team_id,
            'opponentTeam': self.opponent_team,
            'gamesRemaining': self.games_remaining,
        }


@dataclass
class Row:
    """Per-team line of the published table"""
    rank: int
    team: TeamRecord
    total_remaining: int
    opponents: List[OpponentCount] = field(default_factory=list)

    @property
    def opponents_text(self) -> str:
        return ', '.join(f"{o.opponent_team} ({o.games_remaining})" for o in self.opponents)

    def to_dict(self) -> Dict[str, Any]:
        team = self.team
        return {
            'rank': self.rank,
            'teamId': team.team_id,
            'team': team.team_name,
            'tricode': team.tricode,
            'teamDisplay': f"{team.team_name} ({self.total_remaining})",
            'winPct': team.win_pct,
            'wins': team.wins,
            'losses': team.losses,
            'record': team.record,
            'streak': team.streak.to_dict() if team.streak else None,
            'last10': team.last10.to_dict() if team.last10 else None,
            'totalRemainingVsTracked': self.total_remaining,
            'opponents': [o.to_dict() for o in self.opponents],
            'opponentsText': self.opponents_text,
        }


@dataclass
class ScheduledGame:
    """A game in the schedule window, tagged with its tracked participants"""
    game: Game
    tracked_teams: List[str]

    def to_dict(self) -> Dict[str, Any]:
        game = self.game
        return {
            'gameId': game.game_id,
            'matchup': f"{game.away_team_name} at {game.home_team_name}",
            'tipoffUtc': isoformat_utc(game.date),
            'homeTeamId': game.home_team_id,
            'awayTeamId': game.away_team_id,
            'trackedTeams': list(self.tracked_teams),
            'status': game.status_text,
        }


@dataclass
class ScheduleDay:
    date_et: str
    games: List[ScheduledGame] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'dateEt': self.date_et, 'games': [g.to_dict() for g in self.games]}


@dataclass
class ScheduleWindow:
    """Consecutive local calendar days, each with its tracked-team games"""
    time_zone: str
    days: List[ScheduleDay] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'timeZone': self.time_zone, 'days': [d.to_dict() for d in self.days]}

    def today_dict(self) -> Dict[str, Any]:
        """First day in the single-day shape the frontend reads"""
        today = self.days[0].to_dict() if self.days else {'dateEt': None, 'games': []}
        return {'timeZone': self.time_zone, **today}


@dataclass(frozen=True)
class RefreshStatus:
    """Provenance of a published payload"""
    source: str
    provider: Optional[str]
    provider_name: Optional[str]
    generated_at: Optional[str] = None
    last_live_generated_at: Optional[str] = None
    attempted_at: Optional[str] = None
    age_seconds: Optional[int] = None
    failure_kind: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.source == 'live':
            return {
                'source': 'live',
                'provider': self.provider,
                'providerName': self.provider_name,
                'generatedAt': self.generated_at,
            }
        return {
            'source': self.source,
            'provider': self.provider,
            'providerName': self.provider_name,
            'lastLiveGeneratedAt': self.last_live_generated_at,
            'attemptedAt': self.attempted_at,
            'ageSeconds': self.age_seconds,
            'failureKind': self.failure_kind,
            'failureCode': self.failure_code,
            'failureMessage': self.failure_message,
        }
