"""
Connector definitions.

A connector bundles everything the engine knows about one competitor's
export format as plain data: the column names it uses, marker column
combinations that identify it, header hints for the field mapper, and the
dictionaries that translate its status/category/severity values into the
canonical vocabulary. Behaviour is shared; only the tables differ.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from migration_engine.domain.migrations.errors import ConnectorNotFound
from migration_engine.domain.migrations.matching import MIN_OVERLAP, normalize_field_name

logger = logging.getLogger(__name__)

STATUS_VALUES = (
    "NEW", "OPEN", "IN_PROGRESS", "IN_REVIEW", "PENDING", "PENDING_RESPONSE", "CLOSED", "DISMISSED",
)
SEVERITY_VALUES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
CATEGORY_VALUES = (
    "HARASSMENT", "DISCRIMINATION", "FRAUD", "THEFT", "CONFLICT_OF_INTEREST",
    "ETHICS_VIOLATION", "POLICY_VIOLATION", "SAFETY", "RETALIATION", "SUBSTANCE_ABUSE",
    "WORKPLACE_VIOLENCE", "CORRUPTION", "BRIBERY", "DATA_PRIVACY", "REGULATORY_VIOLATION",
    "ENVIRONMENTAL", "HUMAN_RIGHTS", "OTHER",
)
VOCABULARY_FIELDS = ("status", "category", "severity")

DEFAULT_VALUES = {"status": "OPEN", "category": "OTHER", "severity": "MEDIUM"}

_VALUE_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_value(value: str) -> str:
    """Lowercase and collapse whitespace, hyphens and underscores to one ``_``."""
    return _VALUE_SEPARATORS.sub("_", str(value).strip().lower()).strip("_")


def _column_matches(header: str, known: str) -> bool:
    """Equal, or one contains the other when the shorter side is long enough to mean something."""
    if header == known:
        return True
    if min(len(header), len(known)) < MIN_OVERLAP:
        return False
    return known in header or header in known


@dataclass(frozen=True)
class MarkerRule:
    """Adds ``bonus`` when every group has a header containing one of its patterns."""
    groups: Tuple[Tuple[str, ...], ...]
    bonus: float

    def applies(self, lowered_headers: Sequence[str]) -> bool:
        return all(
            any(pattern in header for header in lowered_headers for pattern in group)
            for group in self.groups
        )


@dataclass(frozen=True)
class LookupResult:
    value: Optional[str]
    matched: bool
    method: str  # exact, partial, scale, default, empty


@dataclass(frozen=True, eq=False)
class Connector:
    connector_id: str
    display_name: str
    known_columns: Tuple[str, ...] = ()
    marker_rules: Tuple[MarkerRule, ...] = ()
    hint_bonus: float = 0.2
    usable_threshold: float = 0.5
    column_hints: Mapping[str, str] = field(default_factory=dict)
    value_dictionaries: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    value_defaults: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_VALUES))
    id_prefix: str = "CSV"
    fallback: bool = False
    numeric_severity_scale: bool = False
    confidence_denominator_cap: int = 15

    def __post_init__(self):
        normalized = {
            kind: {normalize_value(k): v for k, v in table.items()}
            for kind, table in self.value_dictionaries.items()
        }
        hints = {normalize_field_name(k): v for k, v in self.column_hints.items()}
        object.__setattr__(self, "_normalized_values", normalized)
        object.__setattr__(self, "_normalized_hints", hints)

    # -- detection -----------------------------------------------------------

    def score(self, headers: Sequence[str]) -> Tuple[float, List[str]]:
        """Return ``(confidence, matched_known_columns)`` for these headers."""
        if self.fallback:
            return min(0.4, 0.1 + 0.02 * len(headers)), []

        lowered = [h.strip().lower() for h in headers if h and h.strip()]
        if not lowered:
            return 0.0, []

        matched = []
        for column in self.known_columns:
            known = column.lower()
            if any(_column_matches(h, known) for h in lowered):
                matched.append(column)

        confidence = len(matched) / min(len(lowered), self.confidence_denominator_cap)
        for rule in self.marker_rules:
            if rule.applies(lowered):
                confidence += rule.bonus
        return min(confidence, 1.0), matched

    # -- mapping -------------------------------------------------------------

    def hint_for(self, header: str) -> Optional[str]:
        return self._normalized_hints.get(normalize_field_name(header))

    # -- values --------------------------------------------------------------

    def default_for(self, kind: str) -> Optional[str]:
        return self.value_defaults.get(kind, DEFAULT_VALUES.get(kind))

    def lookup_value(self, kind: str, value: Optional[str]) -> LookupResult:
        """
        Translate a source value into the canonical vocabulary.

        Exact match after normalisation, then containment either way
        (longest key wins), then the connector default.
        """
        if value is None or str(value).strip() == "":
            return LookupResult(self.default_for(kind), True, "empty")

        table = self._normalized_values.get(kind, {})
        key = normalize_value(value)
        if key in table:
            return LookupResult(table[key], True, "exact")

        best_key = None
        for candidate in table:
            if min(len(candidate), len(key)) < MIN_OVERLAP:
                continue
            if candidate in key or key in candidate:
                if best_key is None or len(candidate) > len(best_key):
                    best_key = candidate
        if best_key is not None:
            return LookupResult(table[best_key], True, "partial")

        if kind == "severity" and self.numeric_severity_scale and re.fullmatch(r"\d", key):
            digit = int(key)
            if digit in (1, 5):
                return LookupResult("CRITICAL", True, "scale")
            if digit in (2, 4):
                return LookupResult("HIGH", True, "scale")
            if digit == 3:
                return LookupResult("MEDIUM", True, "scale")
            return LookupResult("LOW", True, "scale")

        return LookupResult(self.default_for(kind), False, "default")

    def describe(self) -> dict:
        return {
            "connector_id": self.connector_id,
            "display_name": self.display_name,
            "known_columns": list(self.known_columns),
            "usable_threshold": self.usable_threshold,
            "hint_bonus": self.hint_bonus,
            "fallback": self.fallback,
            "value_fields": sorted(self.value_dictionaries),
        }


class ConnectorRegistry:
    """Connectors keyed by id, in registration order."""

    def __init__(self, connectors: Iterable[Connector] = ()):
        self._connectors: Dict[str, Connector] = {}
        for connector in connectors:
            self.register(connector)

    def register(self, connector: Connector) -> None:
        key = connector.connector_id.upper()
        if key in self._connectors:
            raise ValueError(f"Connector '{connector.connector_id}' is already registered")
        self._connectors[key] = connector

    def find(self, connector_id: Optional[str]) -> Optional[Connector]:
        if not connector_id:
            return None
        return self._connectors.get(connector_id.strip().upper())

    def get(self, connector_id: str) -> Connector:
        connector = self.find(connector_id)
        if connector is None:
            raise ConnectorNotFound(f"Unknown connector '{connector_id}'")
        return connector

    @property
    def fallback(self) -> Connector:
        for connector in self._connectors.values():
            if connector.fallback:
                return connector
        raise ConnectorNotFound("No fallback connector registered")

    def __iter__(self) -> Iterator[Connector]:
        return iter(self._connectors.values())

    def __len__(self) -> int:
        return len(self._connectors)

    def __contains__(self, connector_id: str) -> bool:
        return self.find(connector_id) is not None
