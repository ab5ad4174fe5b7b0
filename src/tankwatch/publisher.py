"""
Snapshot publishing

A successful run writes a fresh "live" payload, which also becomes the last
known good snapshot. When every provider failed, the previous payload is
republished unchanged except for its ``refreshStatus``, which is marked
"cached" and annotated with the failure. Rows and schedule are never
recomputed from stale inputs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .cache import SnapshotStore
from .config import PipelineConfig
from .errors import NoSnapshotError, TankWatchError
from .fetcher import classify_failure
from .models import RefreshStatus, Row, ScheduleWindow, isoformat_utc
from .providers import ProviderResult
from .schedule import parse_date

logger = logging.getLogger(__name__)


class SnapshotPublisher:
    """Writes live payloads and falls back to the last snapshot"""

    def __init__(self, config: PipelineConfig, store: Optional[SnapshotStore] = None):
        self.config = config
        self.store = store or SnapshotStore(config.output.path)

    def build_payload(self, result: ProviderResult, rows: List[Row], window: ScheduleWindow,
                      generated_at: datetime) -> Dict[str, Any]:
        generated = isoformat_utc(generated_at)
        status = RefreshStatus(
            source='live',
            provider=result.provider.key,
            provider_name=result.provider.name,
            generated_at=generated,
        )
        return {
            'app': self.config.output.app_name,
            'generatedAt': generated,
            'dataSources': dict(result.data_sources),
            'refreshStatus': status.to_dict(),
            'trackedTeamCount': len(result.tracked),
            'todaySchedule': window.today_dict(),
            'scheduleWindow': window.to_dict(),
            'rows': [row.to_dict() for row in rows],
        }

    def publish_live(self, result: ProviderResult, rows: List[Row], window: ScheduleWindow,
                     now: Optional[datetime] = None) -> Dict[str, Any]:
        payload = self.build_payload(result, rows, window, now or datetime.now(timezone.utc))
        self.store.write(payload)
        logger.info(f"Published live data from {result.provider.key}: {len(rows)} rows")
        return payload

    def publish_cached(self, error: Exception, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Republish the last snapshot with cached provenance

        Raises ``NoSnapshotError`` when there is nothing to fall back to.
        """
        snapshot = self.store.read()
        if snapshot is None:
            logger.error(f"No snapshot at {self.store.path}; nothing to publish")
            raise NoSnapshotError(str(self.store.path), error)

        attempted = now or datetime.now(timezone.utc)
        previous = snapshot.get('refreshStatus')
        if not isinstance(previous, dict):
            previous = {}
        last_live = snapshot.get('generatedAt')
        last_live_at = parse_date(last_live)
        age = int((attempted - last_live_at).total_seconds()) if last_live_at else None
        kind, code = classify_failure(error)

        status = RefreshStatus(
            source='cached',
            provider=previous.get('provider'),
            provider_name=previous.get('providerName'),
            last_live_generated_at=last_live,
            attempted_at=isoformat_utc(attempted),
            age_seconds=age,
            failure_kind=kind,
            failure_code=code,
            failure_message=str(error) if isinstance(error, TankWatchError) else repr(error),
        )

        payload = dict(snapshot)
        payload['refreshStatus'] = status.to_dict()
        self.store.write(payload)
        logger.warning(
            f"All providers failed [{kind}/{code}]; republished snapshot from {last_live} "
            f"({age if age is not None else '?'}s old)"
        )
        return payload
