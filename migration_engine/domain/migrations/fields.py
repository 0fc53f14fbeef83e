"""
Canonical target fields and the transform kinds that can feed them.
"""
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from migration_engine.domain.migrations.errors import MappingError


class TransformKind(str, Enum):
    IDENTITY = "identity"
    TRIM = "trim"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DATE = "date"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMAIL = "email"
    PHONE = "phone"
    STATUS = "status"
    CATEGORY = "category"
    SEVERITY = "severity"


class MappingOrigin(str, Enum):
    SUGGESTED = "suggested"
    USER_CONFIRMED = "user_confirmed"
    TEMPLATE = "template"


@dataclass(frozen=True)
class TargetField:
    name: str
    entity: str
    default_transform: TransformKind = TransformKind.TRIM
    required: bool = False
    description: str = ""


_CATALOGUE = [
    # intake (the report as received)
    TargetField("sourceRecordId", "intake", description="Identifier of the record in the source system"),
    TargetField("details", "intake", required=True, description="Report narrative"),
    TargetField("reporterType", "intake", description="Anonymous / confidential / identified"),
    TargetField("isAnonymous", "intake", TransformKind.BOOLEAN, description="Reporter chose anonymity"),
    TargetField("reporterName", "intake"),
    TargetField("reporterEmail", "intake", TransformKind.EMAIL),
    TargetField("reporterPhone", "intake", TransformKind.PHONE),
    # case
    TargetField("referenceNumber", "case", description="Case number shown to users"),
    TargetField("status", "case", TransformKind.STATUS),
    TargetField("categoryName", "case", TransformKind.CATEGORY),
    TargetField("severity", "case", TransformKind.SEVERITY),
    TargetField("summary", "case"),
    TargetField("incidentDate", "case", TransformKind.DATE),
    TargetField("createdAt", "case", TransformKind.DATE),
    TargetField("closedAt", "case", TransformKind.DATE),
    TargetField("dueDate", "case", TransformKind.DATE),
    TargetField("locationName", "case"),
    TargetField("locationCity", "case"),
    TargetField("locationState", "case"),
    TargetField("locationCountry", "case"),
    TargetField("businessUnitName", "case"),
    TargetField("assignedToEmail", "case"),
    TargetField("resolution", "case"),
    TargetField("investigationNotes", "case"),
    # person (subject of the report)
    TargetField("subjectName", "person"),
    TargetField("firstName", "person"),
    TargetField("lastName", "person"),
    TargetField("email", "person", TransformKind.EMAIL),
    TargetField("phone", "person", TransformKind.PHONE),
    TargetField("employeeId", "person"),
    TargetField("jobTitle", "person"),
]

TARGET_FIELDS: Dict[str, TargetField] = {target.name: target for target in _CATALOGUE}
REQUIRED_TARGETS = [target.name for target in _CATALOGUE if target.required]
NATURAL_IDENTIFIERS = ("sourceRecordId", "referenceNumber")


@dataclass
class FieldMapping:
    source_column: str
    target_field: str
    transform: str = TransformKind.TRIM.value
    confidence: float = 1.0
    origin: str = MappingOrigin.SUGGESTED.value
    strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMapping":
        target = data.get("target_field")
        transform = data.get("transform")
        if not transform and target in TARGET_FIELDS:
            transform = TARGET_FIELDS[target].default_transform.value
        return cls(
            source_column=data["source_column"],
            target_field=target,
            transform=transform or TransformKind.TRIM.value,
            confidence=float(data.get("confidence", 1.0)),
            origin=data.get("origin") or MappingOrigin.SUGGESTED.value,
            strategy=data.get("strategy"),
        )


def missing_required(mappings: Iterable[FieldMapping]) -> List[str]:
    mapped = {m.target_field for m in mappings}
    return [name for name in REQUIRED_TARGETS if name not in mapped]


def check_mappings(mappings: List[FieldMapping], headers: Optional[Iterable[str]] = None) -> None:
    """Raise ``MappingError`` for unknown targets/transforms, targets mapped twice or columns missing from the file."""
    known_transforms = {kind.value for kind in TransformKind}
    header_set = set(headers) if headers is not None else None
    seen_targets = set()
    for mapping in mappings:
        if mapping.target_field not in TARGET_FIELDS:
            raise MappingError(f"Unknown target field '{mapping.target_field}'")
        if mapping.transform not in known_transforms:
            raise MappingError(f"Unknown transform '{mapping.transform}' for '{mapping.source_column}'")
        if mapping.target_field in seen_targets:
            raise MappingError(f"Target field '{mapping.target_field}' is mapped more than once")
        if header_set is not None and mapping.source_column not in header_set:
            raise MappingError(f"Source column '{mapping.source_column}' is not in the file")
        seen_targets.add(mapping.target_field)
