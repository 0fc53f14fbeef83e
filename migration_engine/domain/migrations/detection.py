"""
Format detection: which competitor system produced this export?
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

from migration_engine.domain.migrations.connectors import ConnectorRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionCandidate:
    connector_id: str
    confidence: float
    matched_columns: List[str] = field(default_factory=list)
    usable: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def detect(
    headers: Sequence[str],
    sample_rows: Optional[Sequence[dict]] = None,
    hint: Optional[str] = None,
    registry: Optional[ConnectorRegistry] = None,
) -> List[DetectionCandidate]:
    """
    Score every registered connector against the file headers.

    Results are sorted by confidence (highest first); ties keep registry
    order. A hint naming a registered connector adds that connector's
    ``hint_bonus``. Sample rows are accepted for connectors that may want
    them, but the built-in scoring only uses headers.
    """
    registry = registry or default_registry()
    hinted = None
    if hint:
        hinted = registry.find(hint)
        if hinted is None:
            logger.warning("Ignoring unknown source hint '%s'", hint)

    scored = []
    for position, connector in enumerate(registry):
        confidence, matched = connector.score(headers)
        if hinted is connector:
            confidence = min(1.0, confidence + connector.hint_bonus)
        confidence = round(confidence, 4)
        scored.append((
            -confidence,
            position,
            DetectionCandidate(
                connector_id=connector.connector_id,
                confidence=confidence,
                matched_columns=matched,
                usable=confidence >= connector.usable_threshold,
            ),
        ))

    scored.sort(key=lambda item: (item[0], item[1]))
    candidates = [item[2] for item in scored]
    if candidates:
        top = candidates[0]
        logger.info(
            "Detected %s (confidence %.2f, %d matched columns) from %d headers",
            top.connector_id, top.confidence, len(top.matched_columns), len(headers),
        )
    return candidates


def best_candidate(
    candidates: Sequence[DetectionCandidate],
    registry: Optional[ConnectorRegistry] = None,
) -> DetectionCandidate:
    """The top usable candidate, or the fallback connector's candidate."""
    registry = registry or default_registry()
    for candidate in candidates:
        if candidate.usable:
            return candidate
    fallback_id = registry.fallback.connector_id
    for candidate in candidates:
        if candidate.connector_id == fallback_id:
            return candidate
    return DetectionCandidate(connector_id=fallback_id, confidence=0.0)
