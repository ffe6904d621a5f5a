"""
Two-tier configuration store.

`defaults` is the baseline that always works and is never changed at runtime.
`overrides` is the local file where runtime changes (new wiki policy, etc.) are
saved. The effective configuration is the overrides deep-merged onto the defaults.
"""

from __future__ import annotations

import copy
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ConfigTree = Dict[str, Any]

# One writer lock per overrides file, shared by every store that points at it.
_write_locks: Dict[str, threading.Lock] = {}
_write_locks_guard = threading.Lock()


class ConfigStoreError(Exception):
    """Base error for configuration persistence failures."""

    action = "configuration error for"

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{self.action} {path}{detail}")


class ConfigReadError(ConfigStoreError):
    action = "failed to read configuration"


class ConfigWriteError(ConfigStoreError):
    action = "failed to write configuration"


class NodeKind(Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def node_kind(value: Any) -> NodeKind:
    if isinstance(value, dict):
        return NodeKind.MAPPING
    if isinstance(value, (list, tuple)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def deep_merge(base: ConfigTree, patch: ConfigTree) -> ConfigTree:
    """
    Merge `patch` into `base` in place and return `base`.

    Mappings merge key by key (patch wins on conflicts). Scalars and sequences
    replace whatever `base` held at that key; sequences are never combined.
    """
    for key, value in patch.items():
        kind = node_kind(value)
        if kind is NodeKind.MAPPING:
            if node_kind(base.get(key)) is not NodeKind.MAPPING:
                base[key] = {}
            deep_merge(base[key], value)
        elif kind is NodeKind.SEQUENCE:
            base[key] = copy.deepcopy(list(value))
        else:
            base[key] = value
    return base


def parse_tree(raw: str) -> ConfigTree:
    """Parse a YAML document into a ConfigTree. An empty document is an empty tree."""
    data = yaml.safe_load(raw)
    if data is None:
        return {}
    if node_kind(data) is not NodeKind.MAPPING:
        raise ValueError(f"top-level configuration must be a mapping, got {type(data).__name__}")
    return data


def dump_tree(tree: ConfigTree) -> str:
    return yaml.safe_dump(tree, default_flow_style=False, sort_keys=True, allow_unicode=True)


def _lock_for(path: str) -> threading.Lock:
    key = os.path.realpath(path)
    lock = _write_locks.get(key)
    if lock is not None:
        return lock
    with _write_locks_guard:
        lock = _write_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _write_locks[key] = lock
        return lock


@dataclass(frozen=True)
class LoadedConfig:
    effective: ConfigTree
    overrides: ConfigTree


class ConfigStore:
    """
    Holds the effective configuration for the process.

    Every runtime change goes through `apply_setting`, which persists the change
    to the overrides file before it becomes visible. Readers get whole trees that
    are swapped in by reference and never mutated afterwards.
    """

    def __init__(self, defaults_path: str, overrides_path: str) -> None:
        self.defaults_path = str(defaults_path)
        self.overrides_path = str(overrides_path)
        self._effective: ConfigTree = {}
        self._overrides: ConfigTree = {}

    @classmethod
    def open(cls, defaults_path: str, overrides_path: str) -> "ConfigStore":
        store = cls(defaults_path, overrides_path)
        store.reload()
        return store

    @property
    def effective(self) -> ConfigTree:
        return self._effective

    @property
    def overrides(self) -> ConfigTree:
        return self._overrides

    def get(self, *path: str, default: Any = None) -> Any:
        cur: Any = self._effective
        for key in path:
            if node_kind(cur) is not NodeKind.MAPPING or key not in cur:
                return default
            cur = cur[key]
        return cur

    def load(self) -> LoadedConfig:
        """
        Read both files and compute the effective configuration.

        Read or parse failures are never fatal: the failing tier is treated as empty
        so the server keeps running with degraded (default-deny) policy.
        """
        defaults = self._load_or_empty(self.defaults_path, "defaults")
        overrides = self._load_or_empty(self.overrides_path, "local")
        effective = deep_merge(copy.deepcopy(defaults), overrides)
        return LoadedConfig(effective=effective, overrides=overrides)

    def reload(self) -> LoadedConfig:
        with _lock_for(self.overrides_path):
            loaded = self.load()
            self._overrides = loaded.overrides
            self._effective = loaded.effective
            return loaded

    def apply_setting(
        self,
        setting: ConfigTree,
        precondition: Optional[Callable[[ConfigTree, ConfigTree], None]] = None,
    ) -> ConfigTree:
        """
        Persist a configuration fragment to the overrides file and apply it.

        Args:
            setting: fragment to merge, e.g. {"wikis": {"name": {"public": False}}}
            precondition: called as precondition(fresh_overrides, effective) under the
                writer lock, after the re-read and before anything is merged. Raising
                aborts the update and the exception propagates unchanged.

        Returns:
            The new effective configuration.

        Raises:
            ConfigReadError: the overrides file exists but could not be read or parsed.
            ConfigWriteError: the merged overrides could not be written.

        On any error the in-memory configuration is left exactly as it was.
        """
        with _lock_for(self.overrides_path):
            # Re-read so edits made to the file since startup are not clobbered.
            try:
                fresh = self._read_tree(self.overrides_path)
            except FileNotFoundError:
                fresh = {}
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.error("Not applying setting: cannot read %s: %s", self.overrides_path, e)
                raise ConfigReadError(self.overrides_path, e) from e

            if precondition is not None:
                precondition(fresh, self._effective)

            deep_merge(fresh, setting)

            try:
                self._write_atomic(self.overrides_path, dump_tree(fresh))
            except (OSError, yaml.YAMLError) as e:
                logger.error("Not applying setting: cannot write %s: %s", self.overrides_path, e)
                raise ConfigWriteError(self.overrides_path, e) from e

            effective = deep_merge(copy.deepcopy(self._effective), fresh)
            self._overrides = fresh
            self._effective = effective
            logger.info("Saved configuration setting to %s", self.overrides_path)
            return effective

    @staticmethod
    def _read_tree(path: str) -> ConfigTree:
        raw = Path(path).read_text(encoding="utf-8")
        return parse_tree(raw)

    def _load_or_empty(self, path: str, label: str) -> ConfigTree:
        try:
            return self._read_tree(path)
        except FileNotFoundError:
            logger.info("No %s configuration at %s, continuing with an empty configuration", label, path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(
                "Failed to load %s configuration from %s, continuing with an empty configuration: %s",
                label,
                path,
                e,
            )
        return {}

    @staticmethod
    def _write_atomic(path: str, body: str) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        Path(directory).mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".config-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
