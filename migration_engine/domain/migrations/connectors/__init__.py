"""
Registered source-system connectors.

Registration order is the tie-break order used by format detection, so
the specific connectors come first and the generic fallback last.
"""
from migration_engine.domain.migrations.connectors.base import (
    Connector,
    ConnectorRegistry,
    LookupResult,
    MarkerRule,
)
from migration_engine.domain.migrations.connectors.eqs import EQS
from migration_engine.domain.migrations.connectors.generic import GENERIC_CSV
from migration_engine.domain.migrations.connectors.legacy_ethico import LEGACY_ETHICO
from migration_engine.domain.migrations.connectors.navex import NAVEX


def default_registry() -> ConnectorRegistry:
    return ConnectorRegistry([NAVEX, EQS, LEGACY_ETHICO, GENERIC_CSV])


__all__ = [
    "Connector",
    "ConnectorRegistry",
    "LookupResult",
    "MarkerRule",
    "NAVEX",
    "EQS",
    "LEGACY_ETHICO",
    "GENERIC_CSV",
    "default_registry",
]
