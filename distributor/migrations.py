"""
migrations.py - Versioned schema migration for serialized distributor state

Upgrading the distributor never touches ledger logic: persisted state is
upgraded at load time, one version step at a time, before LedgerState is
rebuilt from it.

Versions:
    1: Initial layout (config without a distribution floor). Payloads with
       no 'state_version' key are treated as version 1.
    2: Adds config.min_distribute_amount (default 0, i.e. no floor).
"""

from __future__ import annotations
import copy
from typing import Any, Callable, Dict

from .core import Json, StateMigrationError

# Increment this when you add a new migration step.
CURRENT_STATE_VERSION = 2


def _migrate_v1_to_v2(st: Json) -> Json:
    config = st.get('config')
    if not isinstance(config, dict):
        raise StateMigrationError("v1 state has no config mapping")
    config.setdefault('min_distribute_amount', 0)
    st['state_version'] = 2
    return st


_MIGRATIONS: Dict[int, Callable[[Json], Json]] = {
    1: _migrate_v1_to_v2,
}


def migrate_state_dict(raw: Any) -> Json:
    """
    Upgrade a serialized state payload to CURRENT_STATE_VERSION.

    The input is never modified; a migrated deep copy is returned.

    Args:
        raw: Payload produced by LedgerState.to_dict() at any supported version

    Returns:
        The payload at CURRENT_STATE_VERSION

    Raises:
        StateMigrationError: If raw is not a mapping, carries an invalid or
            newer version, or a migration step fails
    """
    if not isinstance(raw, dict):
        raise StateMigrationError(f"State payload must be a dict, got {type(raw).__name__}")

    st: Json = copy.deepcopy(raw)
    version = st.get('state_version', 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise StateMigrationError(f"Invalid state_version: {version!r}")
    if version > CURRENT_STATE_VERSION:
        # Written by a newer release; refuse to downgrade silently.
        raise StateMigrationError(
            f"State version {version} is newer than this release supports "
            f"(max {CURRENT_STATE_VERSION})"
        )

    while version < CURRENT_STATE_VERSION:
        step = _MIGRATIONS.get(version)
        if step is None:
            raise StateMigrationError(f"No migration registered from version {version}")
        st = step(st)
        version = st['state_version']

    return st
