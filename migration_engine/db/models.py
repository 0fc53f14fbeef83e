"""
ORM tables owned by the migration engine, plus the reference tables the
entity-creation collaborator writes to.
"""
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from migration_engine.db.session import Base
from migration_engine.utils.date import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class SourceFile(Base):
    """An uploaded export file. Immutable once stored."""
    __tablename__ = "migration_source_files"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    file_name = Column(String(512), nullable=False)
    storage_path = Column(String(1024), nullable=False)
    file_format = Column(String(16), nullable=False)
    encoding = Column(String(32), nullable=True)
    delimiter = Column(String(4), nullable=True)
    size_bytes = Column(Integer, nullable=False, default=0)
    content_hash = Column(String(64), nullable=False)
    row_count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MigrationJob(Base):
    __tablename__ = "migration_jobs"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    source_file_id = Column(String(36), ForeignKey("migration_source_files.id"), nullable=False, unique=True)
    state = Column(String(32), nullable=False, default="UPLOADED", index=True)

    connector_id = Column(String(64), nullable=True)
    detection_confidence = Column(Float, nullable=True)
    detection_candidates = Column(JSON, nullable=True)
    template_name = Column(String(255), nullable=True)

    total_rows = Column(Integer, nullable=False, default=0)
    valid_rows = Column(Integer, nullable=False, default=0)
    error_rows = Column(Integer, nullable=False, default=0)
    warning_rows = Column(Integer, nullable=False, default=0)
    imported_rows = Column(Integer, nullable=False, default=0)
    import_error_rows = Column(Integer, nullable=False, default=0)
    progress = Column(Integer, nullable=False, default=0)
    current_step = Column(String(255), nullable=True)

    error_sample = Column(JSON, nullable=False, default=list)
    warning_summary = Column(JSON, nullable=False, default=dict)
    preview = Column(JSON, nullable=True)
    rollback_report = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    cancel_requested = Column(Boolean, nullable=False, default=False)

    rollback_deadline = Column(DateTime(timezone=True), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    detected_at = Column(DateTime(timezone=True), nullable=True)
    mapped_at = Column(DateTime(timezone=True), nullable=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    preview_ready_at = Column(DateTime(timezone=True), nullable=True)
    import_started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    rolled_back_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    source_file = relationship("SourceFile", lazy="joined")
    mappings = relationship(
        "FieldMappingRow",
        order_by="FieldMappingRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class FieldMappingRow(Base):
    __tablename__ = "migration_field_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), ForeignKey("migration_jobs.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    source_column = Column(String(512), nullable=False)
    target_field = Column(String(128), nullable=False)
    transform = Column(String(32), nullable=False, default="trim")
    confidence = Column(Float, nullable=False, default=0.0)
    origin = Column(String(32), nullable=False, default="suggested")
    strategy = Column(String(32), nullable=True)


class MappingTemplate(Base):
    __tablename__ = "migration_mapping_templates"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_mapping_template_tenant_name"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    connector_id = Column(String(64), nullable=True)
    fingerprint = Column(String(64), nullable=True, index=True)
    header_columns = Column(JSON, nullable=True)
    mappings = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class MigrationRecord(Base):
    """
    Provenance for one imported row.

    ``entities`` lists what the row created, one entry per entity:
    ``{"entity_type", "entity_id", "dependency_rank", "snapshot_hash"}``.
    Rollback removes entries as it deletes their entities and drops the
    record once none are left.
    """
    __tablename__ = "migration_records"
    __table_args__ = (Index("ix_migration_records_job_row", "job_id", "row_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), ForeignKey("migration_jobs.id"), nullable=False, index=True)
    row_index = Column(Integer, nullable=False)
    row_identifier = Column(String(255), nullable=True)
    source_row = Column(JSON, nullable=False)
    entities = Column(JSON, nullable=False, default=list)
    modified_after_import = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MigrationRowOutcome(Base):
    __tablename__ = "migration_row_outcomes"
    __table_args__ = (Index("ix_migration_row_outcomes_job_phase", "job_id", "phase", "row_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), ForeignKey("migration_jobs.id"), nullable=False)
    row_index = Column(Integer, nullable=False)
    phase = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False)
    row_identifier = Column(String(255), nullable=True)
    issues = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Case-management tables written by the reference entity writer.
# ---------------------------------------------------------------------------


class Person(Base):
    __tablename__ = "people"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=True)
    phone = Column(String(64), nullable=True)
    employee_id = Column(String(128), nullable=True)
    job_title = Column(String(255), nullable=True)
    source_system = Column(String(64), nullable=True)
    source_record_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Case(Base):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    reference_number = Column(String(255), nullable=False)
    status = Column(String(32), nullable=False, default="NEW")
    severity = Column(String(32), nullable=True)
    category = Column(String(128), nullable=True)
    summary = Column(Text, nullable=True)
    details = Column(Text, nullable=True)
    location_name = Column(String(255), nullable=True)
    location_city = Column(String(255), nullable=True)
    location_state = Column(String(255), nullable=True)
    location_country = Column(String(255), nullable=True)
    business_unit = Column(String(255), nullable=True)
    assignee = Column(String(255), nullable=True)
    outcome = Column(Text, nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    incident_date = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    investigation_notes = Column(Text, nullable=True)
    source_system = Column(String(64), nullable=True)
    source_record_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class IntakeUnit(Base):
    """The report as received (hotline call, web form, email) before triage."""
    __tablename__ = "intake_units"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    reference_number = Column(String(255), nullable=True)
    details = Column(Text, nullable=False, default="")
    reporter_type = Column(String(32), nullable=True)
    reporter_name = Column(String(255), nullable=True)
    reporter_email = Column(String(320), nullable=True)
    reporter_phone = Column(String(64), nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    source_system = Column(String(64), nullable=True)
    source_record_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class PersonCaseLink(Base):
    __tablename__ = "person_case_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False)
    person_id = Column(String(36), ForeignKey("people.id"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False)
    label = Column(String(32), nullable=False, default="SUBJECT")


class IntakeCaseLink(Base):
    __tablename__ = "intake_case_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False)
    intake_id = Column(String(36), ForeignKey("intake_units.id"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False)
    association_type = Column(String(32), nullable=False, default="PRIMARY")


def create_all_tables(engine) -> None:
    """Create every table this service owns (idempotent)."""
    Base.metadata.create_all(bind=engine)
