"""
Saved mapping templates.

Templates are tenant-scoped and independent of any job. Besides lookup by
name, a template can be found from a file's header set: every template
stores a fingerprint of its normalized, sorted headers so a re-export from
the same system picks up yesterday's mapping automatically.
"""
import hashlib
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from migration_engine.db.models import MappingTemplate
from migration_engine.domain.migrations.errors import MappingError, TemplateNotFound
from migration_engine.domain.migrations.fields import FieldMapping, check_mappings
from migration_engine.utils.date import utcnow

logger = logging.getLogger(__name__)

FINGERPRINT_SIMILARITY_THRESHOLD = 0.9


def normalize_column_name(name: str) -> str:
    """Normalize column name: lowercase, alphanumeric only."""
    if not name:
        return ""
    return re.sub(r"[^a-z0-9]", "", str(name).lower())


def calculate_fingerprint(columns: Sequence[str]) -> Tuple[str, List[str]]:
    """
    Calculate a deterministic fingerprint for a list of columns.
    Returns (fingerprint_hash, normalized_sorted_columns).
    """
    normalized = sorted(n for n in (normalize_column_name(c) for c in columns if c) if n)
    fingerprint_hash = hashlib.sha256("|".join(normalized).encode("utf-8")).hexdigest()
    return fingerprint_hash, normalized


def calculate_jaccard_similarity(set1: set, set2: set) -> float:
    if not set1 and not set2:
        return 1.0
    if not set1 or not set2:
        return 0.0
    union = len(set1 | set2)
    return len(set1 & set2) / union if union else 0.0


def _serialize(template: MappingTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "connector_id": template.connector_id,
        "fingerprint": template.fingerprint,
        "mappings": list(template.mappings or []),
        "field_count": len(template.mappings or []),
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }


class MappingTemplates:
    """CRUD over ``migration_mapping_templates``, always scoped to one tenant."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save_template(
        self,
        tenant_id: str,
        name: str,
        mappings: Sequence[Any],
        connector_id: Optional[str] = None,
        headers: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Create or replace the tenant's template called ``name``."""
        name = (name or "").strip()
        if not name:
            raise MappingError("Template name is required")
        entries = [m if isinstance(m, FieldMapping) else FieldMapping.from_dict(m) for m in mappings]
        if not entries:
            raise MappingError("A template needs at least one mapping")
        check_mappings(entries)

        payload = [
            {"source_column": m.source_column, "target_field": m.target_field, "transform": m.transform}
            for m in entries
        ]
        fingerprint, normalized = calculate_fingerprint(headers or [m.source_column for m in entries])

        with self._session_factory() as session:
            template = session.execute(
                select(MappingTemplate).where(
                    MappingTemplate.tenant_id == tenant_id, MappingTemplate.name == name
                )
            ).scalar_one_or_none()
            if template is None:
                template = MappingTemplate(tenant_id=tenant_id, name=name)
                session.add(template)
                action = "Created"
            else:
                action = "Updated"
            template.connector_id = connector_id
            template.mappings = payload
            template.fingerprint = fingerprint
            template.header_columns = normalized
            template.updated_at = utcnow()
            session.commit()
            logger.info("%s mapping template '%s' for tenant %s (%d fields)", action, name, tenant_id, len(payload))
            return _serialize(template)

    def load_template(self, tenant_id: str, name: str) -> Dict[str, Any]:
        with self._session_factory() as session:
            template = self._get(session, tenant_id, name)
            return _serialize(template)

    def load_mappings(self, tenant_id: str, name: str) -> List[FieldMapping]:
        return [FieldMapping.from_dict(entry) for entry in self.load_template(tenant_id, name)["mappings"]]

    def list_templates(self, tenant_id: str) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            templates = session.execute(
                select(MappingTemplate)
                .where(MappingTemplate.tenant_id == tenant_id)
                .order_by(MappingTemplate.created_at.desc(), MappingTemplate.name)
            ).scalars().all()
            return [
                {
                    "name": t.name,
                    "connector_id": t.connector_id,
                    "field_count": len(t.mappings or []),
                    "created_at": t.created_at,
                }
                for t in templates
            ]

    def delete_template(self, tenant_id: str, name: str) -> bool:
        with self._session_factory() as session:
            template = session.execute(
                select(MappingTemplate).where(
                    MappingTemplate.tenant_id == tenant_id, MappingTemplate.name == name
                )
            ).scalar_one_or_none()
            if template is None:
                return False
            session.delete(template)
            session.commit()
            logger.info("Deleted mapping template '%s' for tenant %s", name, tenant_id)
            return True

    def find_template_for_headers(self, tenant_id: str, headers: Sequence[str]) -> Optional[Dict[str, Any]]:
        """Exact fingerprint match first, then the most similar header set (Jaccard >= 0.9)."""
        fingerprint, normalized = calculate_fingerprint(headers)
        with self._session_factory() as session:
            templates = session.execute(
                select(MappingTemplate)
                .where(MappingTemplate.tenant_id == tenant_id)
                .order_by(MappingTemplate.updated_at.desc())
            ).scalars().all()

            for template in templates:
                if template.fingerprint == fingerprint:
                    return _serialize(template)

            wanted = set(normalized)
            best, best_score = None, 0.0
            for template in templates:
                score = calculate_jaccard_similarity(wanted, set(template.header_columns or []))
                if score >= FINGERPRINT_SIMILARITY_THRESHOLD and score > best_score:
                    best, best_score = template, score
            if best is not None:
                logger.info("Header set matches template '%s' (similarity %.2f)", best.name, best_score)
                return _serialize(best)
        return None

    @staticmethod
    def _get(session: Session, tenant_id: str, name: str) -> MappingTemplate:
        template = session.execute(
            select(MappingTemplate).where(
                MappingTemplate.tenant_id == tenant_id, MappingTemplate.name == name
            )
        ).scalar_one_or_none()
        if template is None:
            raise TemplateNotFound(name)
        return template
