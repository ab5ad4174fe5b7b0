"""
On-disk state kept between runs

Handles:
- The last published payload, used as the fallback snapshot when every
  provider fails
- Schema fingerprints per provider feed, for drift warnings when a
  provider quietly reshapes its JSON
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import CacheConfig

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: Any):
    """Write JSON to ``path`` via a temp file in the same directory"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write('\n')
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class SnapshotStore:
    """The single most recent published payload"""

    def __init__(self, path: str):
        self.path = Path(path)

    def read(self) -> Optional[Dict[str, Any]]:
        """Load the last snapshot, or None when there is no usable one"""
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load snapshot {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Snapshot {self.path} is not a JSON object, ignoring it")
            return None
        return data

    def write(self, payload: Dict[str, Any]):
        write_json_atomic(self.path, payload)
        logger.info(f"Wrote snapshot to {self.path}")


@dataclass
class SchemaFingerprint:
    """Key paths and value types of one feed document"""
    provider: str
    feed: str
    key_paths: List[str]
    type_signatures: Dict[str, str]
    timestamp: float
    version_hash: str


def create_schema_fingerprint(data: Any, provider: str, feed: str) -> SchemaFingerprint:
    """Fingerprint the structure of a decoded feed document"""
    signatures: Dict[str, str] = {}
    _collect_types(data, "", signatures)
    paths = sorted(signatures)

    digest = hashlib.sha256(
        json.dumps({'paths': paths, 'types': signatures}, sort_keys=True).encode()
    ).hexdigest()
    return SchemaFingerprint(provider, feed, paths, signatures, time.time(), digest)


def _collect_types(node: Any, prefix: str, signatures: Dict[str, str]):
    if isinstance(node, dict):
        for name, value in node.items():
            path = f"{prefix}.{name}" if prefix else name
            signatures[path] = type(value).__name__
            _collect_types(value, path, signatures)
    elif isinstance(node, list) and node:
        # arrays are sampled by their first item
        _collect_types(node[0], f"{prefix}[0]", signatures)


def compare_fingerprints(old: SchemaFingerprint, new: SchemaFingerprint) -> Dict[str, Any]:
    """Structural differences between two fingerprints of the same feed"""
    old_keys = set(old.key_paths)
    new_keys = set(new.key_paths)

    type_changes = {
        key: {'old_type': old.type_signatures.get(key), 'new_type': new.type_signatures.get(key)}
        for key in old_keys & new_keys
        if old.type_signatures.get(key) != new.type_signatures.get(key)
    }
    changes = {
        'version_changed': old.version_hash != new.version_hash,
        'new_keys': sorted(new_keys - old_keys),
        'removed_keys': sorted(old_keys - new_keys),
        'type_changes': type_changes,
        'structural_change_score': 0.0,
    }

    # 0.0 = no change, 1.0 = complete change
    total_keys = len(old_keys | new_keys)
    if total_keys > 0:
        changed = len(changes['new_keys']) + len(changes['removed_keys']) + len(type_changes)
        changes['structural_change_score'] = changed / total_keys

    return changes


class SchemaCache:
    """Per-feed schema fingerprints kept between runs"""

    def __init__(self, config: CacheConfig):
        self.config = config
        self.cache_dir = Path(config.base_path) / "schemas"

    def _fingerprint_path(self, provider: str, feed: str) -> Path:
        return self.cache_dir / f"{provider}_{feed}.json"

    def get_fingerprint(self, provider: str, feed: str) -> Optional[SchemaFingerprint]:
        """Last stored fingerprint for a provider feed, if any"""
        schema_path = self._fingerprint_path(provider, feed)
        if not schema_path.exists():
            return None

        try:
            with open(schema_path, 'r', encoding='utf-8') as f:
                return SchemaFingerprint(**json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load schema fingerprint: {e}")
            return None

    def update(self, data: Any, provider: str, feed: str) -> Tuple[SchemaFingerprint, Optional[Dict[str, Any]]]:
        """Store a fresh fingerprint and return changes against the previous one"""
        new_fingerprint = create_schema_fingerprint(data, provider, feed)
        old_fingerprint = self.get_fingerprint(provider, feed)

        changes = None
        if old_fingerprint:
            changes = compare_fingerprints(old_fingerprint, new_fingerprint)
            if changes['structural_change_score'] > self.config.drift_threshold:
                logger.warning(
                    f"Significant schema changes detected for {provider}/{feed}: "
                    f"score={changes['structural_change_score']:.2f} "
                    f"removed={changes['removed_keys'][:10]} new={changes['new_keys'][:10]}"
                )

        try:
            write_json_atomic(self._fingerprint_path(provider, feed), asdict(new_fingerprint))
        except OSError as e:
            logger.error(f"Failed to save schema fingerprint: {e}")

        return new_fingerprint, changes
