"""
Provider fallback orchestration

Tries providers strictly in priority order and returns the first complete
result. Results from different providers are never merged.
"""

import logging
import time
from typing import List, Optional, Sequence

from .cache import SchemaCache
from .config import PipelineConfig
from .errors import AllProvidersFailed, ProviderError
from .fetcher import classify_failure
from .providers import Fetcher, Provider, ProviderResult, build_provider

logger = logging.getLogger(__name__)


class ProviderOrchestrator:
    """Runs providers in priority order until one succeeds"""

    def __init__(self, config: PipelineConfig, fetcher: Fetcher,
                 providers: Optional[Sequence[Provider]] = None,
                 schema_cache: Optional[SchemaCache] = None):
        self.config = config
        if providers is None:
            providers = [
                build_provider(p, fetcher, config.tracked_team_count, schema_cache)
                for p in config.enabled_providers()
            ]
        self.providers: List[Provider] = list(providers)

    async def run(self) -> ProviderResult:
        """Return the first provider result, or raise ``AllProvidersFailed``"""
        errors: List[ProviderError] = []

        for provider in self.providers:
            started = time.time()
            logger.info(f"Fetching from provider {provider.config.name} ({provider.key})")
            try:
                result = await provider.run()
            except Exception as e:
                error = ProviderError(provider.key, e)
                kind, code = classify_failure(e)
                error.kind, error.code = kind, code
                errors.append(error)
                logger.warning(
                    f"Provider {provider.key} failed after {time.time() - started:.1f}s [{kind}/{code}]: {e}"
                )
                continue

            logger.info(f"Provider {provider.key} succeeded in {time.time() - started:.1f}s")
            return result

        raise AllProvidersFailed(errors)
