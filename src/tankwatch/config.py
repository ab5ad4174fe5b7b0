"""
Configuration loader for the Tank Watch pipeline

Handles loading and parsing of YAML/JSON configuration files for:
- Tracked team count, schedule window length and timezone
- Providers in priority order with their feeds and retry policies
- Output, snapshot cache and logging settings

Configuration objects are frozen; the pipeline receives them explicitly.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "race-to-the-tank-data-bot/1.0"


@dataclass(frozen=True)
class RetryPolicy:
    """Per-feed retry policy"""
    max_attempts: int = 3
    timeout_seconds: float = 15.0
    backoff_seconds: float = 1.5  # wait before retry k is k * backoff_seconds


@dataclass(frozen=True)
class FeedConfig:
    """A single named feed; ``per_team`` URLs take a {team_id} placeholder"""
    name: str
    url: str
    per_team: bool = False


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one data provider"""
    key: str
    name: str
    kind: str
    feeds: Tuple[FeedConfig, ...]
    priority: int = 1
    enabled: bool = True
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    user_agent: str = DEFAULT_USER_AGENT

    def feed(self, name: str) -> FeedConfig:
        for feed in self.feeds:
            if feed.name == name:
                return feed
        raise KeyError(f"Provider {self.key} has no feed named {name}")

    def data_sources(self) -> Dict[str, str]:
        """Feed name -> URL template, as published in the payload"""
        return {feed.name: feed.url for feed in self.feeds}


@dataclass(frozen=True)
class OutputConfig:
    """Where the published document goes"""
    path: str = "public/data/latest.json"
    app_name: str = "Race to the Tank"


@dataclass(frozen=True)
class CacheConfig:
    """Feed schema fingerprint settings"""
    base_path: str = ".cache/tankwatch"
    schema_drift_check: bool = True
    drift_threshold: float = 0.1


def default_providers() -> Tuple[ProviderConfig, ...]:
    """NBA CDN first, ESPN as fallback"""
    return (
        ProviderConfig(
            key="nba_cdn",
            name="NBA CDN",
            kind="league",
            priority=1,
            feeds=(
                FeedConfig("standings", "https://cdn.nba.com/static/json/liveData/standings/standings.json"),
                FeedConfig("schedule", "https://cdn.nba.com/static/json/staticData/scheduleLeagueV2.json"),
            ),
            retry=RetryPolicy(max_attempts=3, timeout_seconds=15.0, backoff_seconds=1.5),
        ),
        ProviderConfig(
            key="espn",
            name="ESPN",
            kind="per_team",
            priority=2,
            feeds=(
                FeedConfig("standings", "https://site.api.espn.com/apis/v2/sports/basketball/nba/standings"),
                FeedConfig(
                    "team_schedule",
                    "https://site.api.espn.com/apis/site/v2/sports/basketball/nba/teams/{team_id}/schedule",
                    per_team=True,
                ),
            ),
            retry=RetryPolicy(max_attempts=2, timeout_seconds=12.0, backoff_seconds=1.0),
        ),
    )


@dataclass(frozen=True)
class PipelineConfig:
    """Main configuration for the pipeline"""
    tracked_team_count: int = 12
    schedule_days: int = 3
    timezone: str = "America/New_York"

    providers: Tuple[ProviderConfig, ...] = field(default_factory=default_providers)
    output: OutputConfig = field(default_factory=OutputConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    log_level: str = "INFO"
    log_file: Optional[str] = None
    max_concurrent_requests: int = 8

    def enabled_providers(self) -> List[ProviderConfig]:
        """Enabled providers, sorted by priority"""
        return sorted((p for p in self.providers if p.enabled), key=lambda p: p.priority)

    @classmethod
    def load_from_file(cls, config_path: str) -> 'PipelineConfig':
        """Load configuration from YAML or JSON file"""
        path = Path(config_path)

        if not path.exists():
            logger.warning(f"Config file {config_path} not found, using defaults")
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                config_data = yaml.safe_load(f)
            else:
                config_data = json.load(f)

        return cls.from_dict(config_data or {})

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'PipelineConfig':
        """Create configuration from dictionary"""
        main_config = {k: v for k, v in config_dict.items()
                       if k not in ['providers', 'output', 'cache']}

        if 'output' in config_dict:
            main_config['output'] = OutputConfig(**config_dict['output'])
        if 'cache' in config_dict:
            main_config['cache'] = CacheConfig(**config_dict['cache'])
        if 'providers' in config_dict:
            main_config['providers'] = tuple(
                _provider_from_dict(key, data) for key, data in config_dict['providers'].items()
            )

        return cls(**main_config)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['providers'] = {p['key']: {k: v for k, v in p.items() if k != 'key'}
                             for p in data['providers']}
        for provider in data['providers'].values():
            provider['feeds'] = list(provider['feeds'])
        return data


def _provider_from_dict(key: str, data: Dict[str, Any]) -> ProviderConfig:
    data = dict(data)
    data.pop('key', None)
    feeds = data.pop('feeds', [])
    if isinstance(feeds, dict):
        feeds = [{'name': name, **(value if isinstance(value, dict) else {'url': value})}
                 for name, value in feeds.items()]
    retry = RetryPolicy(**data.pop('retry', {}))
    return ProviderConfig(
        key=key,
        feeds=tuple(FeedConfig(**feed) for feed in feeds),
        retry=retry,
        **{'name': key, 'kind': key, **data},
    )


def load_config(config_path: Optional[str] = None) -> PipelineConfig:
    """Load pipeline configuration from file or use defaults"""
    if not config_path:
        return PipelineConfig()
    try:
        return PipelineConfig.load_from_file(config_path)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        logger.info("Using default configuration")
        return PipelineConfig()


def create_sample_config(output_path: str = "config/tankwatch.yaml"):
    """Create a sample configuration file"""
    config_dict = PipelineConfig().to_dict()

    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Sample configuration created at {output_path}")
