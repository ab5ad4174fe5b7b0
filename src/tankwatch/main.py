"""
Pipeline entry point

One run: fetch from the first provider that works, normalize, aggregate,
publish. If every provider fails, republish the last snapshot marked as
cached. Exits non-zero only when nothing could be published at all.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .aggregator import build_rows, build_schedule_window
from .cache import SchemaCache, SnapshotStore
from .config import PipelineConfig, create_sample_config, load_config
from .errors import AllProvidersFailed, NoSnapshotError
from .fetcher import FeedFetcher, create_session
from .orchestrator import ProviderOrchestrator
from .providers import Fetcher, ProviderResult
from .publisher import SnapshotPublisher

logger = logging.getLogger(__name__)


class TankWatchPipeline:
    """Wires orchestrator, aggregator and publisher for a single run"""

    def __init__(self, config: PipelineConfig, fetcher: Optional[Fetcher] = None,
                 store: Optional[SnapshotStore] = None):
        self.config = config
        self.fetcher = fetcher
        self.publisher = SnapshotPublisher(config, store)
        self.schema_cache = SchemaCache(config.cache) if config.cache.schema_drift_check else None

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run the pipeline once and return the published payload"""
        started = time.time()
        try:
            result = await self._fetch_result()
        except AllProvidersFailed as e:
            logger.warning(f"{e}")
            return self.publisher.publish_cached(e, now)

        now = now or datetime.now(timezone.utc)
        rows = build_rows(result.tracked, result.games, now)
        window = build_schedule_window(
            result.tracked, result.games, now,
            days=self.config.schedule_days, time_zone=self.config.timezone,
        )
        payload = self.publisher.publish_live(result, rows, window, now)
        logger.info(f"Pipeline run complete in {time.time() - started:.2f}s")
        return payload

    async def _fetch_result(self) -> ProviderResult:
        if self.fetcher is not None:
            return await self._orchestrate(self.fetcher)

        async with create_session(self.config.max_concurrent_requests) as session:
            fetcher = FeedFetcher(session, max_concurrent_requests=self.config.max_concurrent_requests)
            return await self._orchestrate(fetcher)

    async def _orchestrate(self, fetcher: Fetcher) -> ProviderResult:
        orchestrator = ProviderOrchestrator(self.config, fetcher, schema_cache=self.schema_cache)
        return await orchestrator.run()


def setup_logging(config: PipelineConfig):
    """Setup logging configuration"""
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        logging.getLogger().addHandler(file_handler)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Race to the Tank data builder')
    parser.add_argument('--config', default=None,
                        help='Configuration file path (YAML or JSON)')
    parser.add_argument('--output', default=None,
                        help='Override the output JSON path')
    parser.add_argument('--create-config', metavar='PATH', default=None,
                        help='Create sample configuration file and exit')
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Run the pipeline once; return the process exit code"""
    args = parse_args(argv)

    if args.create_config:
        create_sample_config(args.create_config)
        print(f"Sample configuration created at {args.create_config}")
        return 0

    config = load_config(args.config)
    if args.output:
        config = dataclasses.replace(config, output=dataclasses.replace(config.output, path=args.output))
    setup_logging(config)

    pipeline = TankWatchPipeline(config)
    try:
        payload = await pipeline.run_once()
    except NoSnapshotError as e:
        logger.error(f"Nothing published: {e}")
        return 1

    status = payload.get('refreshStatus', {})
    logger.info(
        f"Wrote {len(payload.get('rows', []))} rows to {config.output.path} "
        f"({status.get('source')} from {status.get('provider')})"
    )
    return 0


def run(argv: Optional[List[str]] = None):
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main(argv)))
    except KeyboardInterrupt:
        print("\nShutdown requested")
        sys.exit(130)


if __name__ == "__main__":
    run()
