from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional, Tuple

from .errors import ConfigError
from .observer.config import ObserverConfig

logger = logging.getLogger(__name__)


class ObserverConfigProvider:
    """
    ObserverConfig 快照提供者

    New observers take `snapshot()` when they are created; observers that are
    already running keep the config they were built with.
    """

    def __init__(self, config_path: str | Path) -> None:
        self._path = Path(config_path)
        self._ref: ObserverConfig = ObserverConfig.default()
        self._last_stamp: Optional[Tuple[int, int]] = None
        self._last_hash: Optional[str] = None

        self.force_reload()

    def snapshot(self) -> ObserverConfig:
        return self._ref

    def reload_if_changed(self) -> bool:
        stamp = self._safe_file_stamp()
        if stamp is None:
            return False

        if self._last_stamp is not None and stamp == self._last_stamp:
            # mtime resolution is coarse on some filesystems, compare content too
            current_hash = self._safe_file_hash()
            if current_hash is None or current_hash == self._last_hash:
                return False

        return self.force_reload()

    def force_reload(self) -> bool:
        try:
            cfg = ObserverConfig.from_yaml(self._path)
        except ConfigError as e:
            logger.warning(f"Observer config reload failed: {e}")
            return False
        self._ref = cfg
        self._last_stamp = self._safe_file_stamp()
        self._last_hash = self._safe_file_hash()
        logger.info("Observer config reloaded")
        return True

    def update_overrides(self, **kwargs) -> bool:
        """Replace the snapshot with overridden values. Returns True if changed."""
        try:
            updated = self._ref.with_overrides(**kwargs)
        except ConfigError as e:
            logger.warning(f"Observer overrides rejected: {e}")
            return False
        if updated is self._ref:
            return False
        self._ref = updated
        return True

    def _safe_file_stamp(self) -> Optional[Tuple[int, int]]:
        try:
            stat = self._path.stat()
            return stat.st_mtime_ns, stat.st_size
        except OSError as e:
            logger.warning(f"Observer config stat failed: {e}")
            return None

    def _safe_file_hash(self) -> Optional[str]:
        try:
            data = self._path.read_bytes()
            return hashlib.sha256(data).hexdigest()
        except OSError as e:
            logger.warning(f"Observer config hash failed: {e}")
            return None
