"""Charm bindings: key-value store (ckv), files (cfs) and account (cacc)."""

from .account import AccountModule
from .client import (
    DEFAULT_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_SSH_PORT,
    Auth,
    CharmClient,
    CharmConfig,
    CommandRunner,
    SSHRunner,
    default_data_dir,
)
from .common import CONFIG_KEYS, CharmCommon, CharmModule, charm_config
from .fs import FSModule, walk
from .kv import DEFAULT_DB, KVModule, LocalKV, Snapshot, sync_db

__all__ = [
    "KVModule", "FSModule", "AccountModule",
    "CharmCommon", "CharmModule", "CONFIG_KEYS", "charm_config",
    "CharmClient", "CharmConfig", "Auth", "SSHRunner", "CommandRunner", "default_data_dir",
    "DEFAULT_HOST", "DEFAULT_SSH_PORT", "DEFAULT_HTTP_PORT",
    "LocalKV", "Snapshot", "sync_db", "DEFAULT_DB", "walk",
]
