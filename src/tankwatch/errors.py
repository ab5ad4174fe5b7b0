"""
Exception hierarchy for the pipeline

Feed and provider failures propagate up to the orchestrator, which moves on
to the next provider. Only exhaustion of every provider reaches the
publisher. Defects in individual entities never raise; the normalizers drop
them.
"""

from typing import List, Optional

NETWORK = "network"
OTHER = "other"


class TankWatchError(Exception):
    """Base class for pipeline errors"""
    kind: str = OTHER
    code: str = "error"


class FeedHTTPError(TankWatchError):
    """Feed answered with a non-success HTTP status"""

    def __init__(self, url: str, status: int):
        super().__init__(f"Fetch failed: {url} -> {status}")
        self.url = url
        self.status = status
        self.code = f"http_{status}"


class FeedDecodeError(TankWatchError):
    """Feed body could not be decoded as JSON"""
    code = "invalid_json"

    def __init__(self, url: str, detail: str):
        super().__init__(f"Invalid JSON from {url}: {detail}")
        self.url = url


class FeedError(TankWatchError):
    """A feed could not be obtained after exhausting retries"""

    def __init__(self, url: str, kind: str, code: str, attempts: int, message: str):
        super().__init__(f"{url} failed after {attempts} attempt(s) [{kind}/{code}]: {message}")
        self.url = url
        self.kind = kind
        self.code = code
        self.attempts = attempts


class ShapeError(TankWatchError):
    """A document does not have the structure needed to build entities"""
    code = "shape"


class ProviderError(TankWatchError):
    """One provider run failed as a unit"""

    def __init__(self, provider: str, cause: Exception):
        super().__init__(f"Provider {provider} failed: {cause}")
        self.provider = provider
        self.cause = cause
        self.kind = getattr(cause, 'kind', OTHER)
        self.code = getattr(cause, 'code', type(cause).__name__)


class AllProvidersFailed(TankWatchError):
    """Every configured provider failed"""

    def __init__(self, errors: List[ProviderError]):
        last = errors[-1] if errors else None
        summary = "; ".join(str(e) for e in errors) or "no providers enabled"
        super().__init__(f"All providers failed: {summary}")
        self.errors = errors
        self.last_error: Optional[ProviderError] = last
        self.kind = last.kind if last else OTHER
        self.code = last.code if last else "no_providers"


class NoSnapshotError(TankWatchError):
    """Total upstream failure with no previous snapshot to fall back to"""
    code = "no_snapshot"

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"No snapshot at {path} to fall back to after: {cause}")
        self.path = path
        self.cause = cause
        self.kind = getattr(cause, 'kind', OTHER)
