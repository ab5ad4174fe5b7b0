"""
Provider adapters

A provider turns its raw feeds into canonical standings, tracked teams and
games. Two shapes of provider exist:

- "league": one standings document and one whole-league schedule document,
  fetched concurrently
- "per_team": one standings document, then one schedule document per
  tracked team (keyed by the provider's own team id), fetched concurrently

A provider run fails as a unit: any feed that cannot be obtained, or
standings with fewer than the tracked team count, fails the whole run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Protocol

from .cache import SchemaCache
from .config import FeedConfig, ProviderConfig, RetryPolicy
from .errors import ShapeError
from .models import Game, TeamRecord
from .schedule import normalize_schedule
from .standings import normalize_standings

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str, policy: RetryPolicy, user_agent: str = ...) -> Any:
        ...


@dataclass
class ProviderResult:
    """Canonical entities produced by one successful provider run"""
    provider: ProviderConfig
    standings: List[TeamRecord]
    tracked: List[TeamRecord]
    games: List[Game]
    data_sources: Dict[str, str] = field(default_factory=dict)


async def gather_feeds(*fetches: Awaitable[Any]) -> List[Any]:
    """Await all fetches; if any failed, raise the first failure

    Siblings are always awaited to completion so no request is left running
    after the provider run has been given up.
    """
    results = await asyncio.gather(*fetches, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class Provider:
    """Base provider adapter"""

    def __init__(self, config: ProviderConfig, fetcher: Fetcher, tracked_team_count: int,
                 schema_cache: Optional[SchemaCache] = None):
        self.config = config
        self.fetcher = fetcher
        self.tracked_team_count = tracked_team_count
        self.schema_cache = schema_cache

    @property
    def key(self) -> str:
        return self.config.key

    async def run(self) -> ProviderResult:
        raise NotImplementedError

    async def _fetch(self, feed: FeedConfig, url: Optional[str] = None, fingerprint: bool = True) -> Any:
        document = await self.fetcher.fetch(url or feed.url, self.config.retry, self.config.user_agent)
        if fingerprint and self.schema_cache is not None and self.schema_cache.config.schema_drift_check:
            self.schema_cache.update(document, self.key, feed.name)
        return document

    def _rank(self, standings_doc: Any) -> List[TeamRecord]:
        standings = normalize_standings(standings_doc)
        if len(standings) < self.tracked_team_count:
            raise ShapeError(
                f"Unable to resolve {self.tracked_team_count} teams from {self.key} standings "
                f"(got {len(standings)})"
            )
        return standings

    def _result(self, standings: List[TeamRecord], games: List[Game]) -> ProviderResult:
        tracked = standings[:self.tracked_team_count]
        logger.info(
            f"{self.config.name}: {len(standings)} teams, {len(games)} games, "
            f"tracking {[t.team_name for t in tracked]}"
        )
        return ProviderResult(
            provider=self.config,
            standings=standings,
            tracked=tracked,
            games=games,
            data_sources=self.config.data_sources(),
        )


class LeagueFeedProvider(Provider):
    """Standings plus one league-wide schedule"""

    async def run(self) -> ProviderResult:
        standings_feed = self.config.feed('standings')
        schedule_feed = self.config.feed('schedule')

        standings_doc, schedule_doc = await gather_feeds(
            self._fetch(standings_feed),
            self._fetch(schedule_feed),
        )

        standings = self._rank(standings_doc)
        games = normalize_schedule(schedule_doc)
        return self._result(standings, games)


class TeamScheduleProvider(Provider):
    """Standings, then one schedule per tracked team"""

    async def run(self) -> ProviderResult:
        standings_feed = self.config.feed('standings')
        schedule_feed = self.config.feed('team_schedule')

        standings_doc = await self._fetch(standings_feed)
        standings = self._rank(standings_doc)
        tracked = standings[:self.tracked_team_count]

        schedule_docs = await gather_feeds(*(
            self._fetch(schedule_feed, schedule_feed.url.format(team_id=team.team_id), fingerprint=index == 0)
            for index, team in enumerate(tracked)
        ))

        games = normalize_schedule(*schedule_docs)
        return self._result(standings, games)


PROVIDER_KINDS = {
    'league': LeagueFeedProvider,
    'per_team': TeamScheduleProvider,
}


def build_provider(config: ProviderConfig, fetcher: Fetcher, tracked_team_count: int,
                   schema_cache: Optional[SchemaCache] = None) -> Provider:
    try:
        provider_class = PROVIDER_KINDS[config.kind]
    except KeyError:
        raise ValueError(f"Unknown provider kind {config.kind!r} for {config.key}") from None
    return provider_class(config, fetcher, tracked_team_count, schema_cache)
