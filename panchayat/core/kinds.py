"""
Catalogue of application kinds handled by the portal.

Each kind owns its durable collection, its id prefix, the payload model used
to validate submitted fields, and the labels used when the record is rendered
into a document.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, ValidationError
from .schema import DOWNLOADABLE_STATUSES, ApplicationStatus


def _require_text(v, name: str):
    if not v.strip():
        raise ValueError(f'{name} cannot be empty')
    return v.strip()


class CertificatePayload(BaseModel):
    applicant_name: str
    certificate_type: Literal['Birth', 'Death', 'Marriage', 'Income', 'Caste', 'Residence']
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    date: Optional[str] = None
    place: Optional[str] = None
    address: Optional[str] = None
    village: Optional[str] = None
    district: Optional[str] = None

    @field_validator('applicant_name')
    @classmethod
    def applicant_name_must_not_be_empty(cls, v):
        return _require_text(v, 'applicant_name')


class LandRecordPayload(BaseModel):
    owner: str
    survey_no: str
    area: str
    land_type: str
    encumbrance_status: str

    @field_validator('owner', 'survey_no', 'area', 'land_type', 'encumbrance_status')
    @classmethod
    def must_not_be_empty(cls, v, info):
        return _require_text(v, info.field_name)


class PropertyTaxPayload(BaseModel):
    property_id: str
    owner_name: str
    village: str
    tax_due: float = 0

    @field_validator('property_id', 'owner_name', 'village')
    @classmethod
    def must_not_be_empty(cls, v, info):
        return _require_text(v, info.field_name)

    @field_validator('tax_due')
    @classmethod
    def tax_due_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('tax_due cannot be negative')
        return v


class TimelineStep(BaseModel):
    step: str
    status: str
    date: Optional[str] = None


class MutationPayload(BaseModel):
    property_id: str
    timeline: List[TimelineStep] = []

    @field_validator('property_id')
    @classmethod
    def property_id_must_not_be_empty(cls, v):
        return _require_text(v, 'property_id')


@dataclass(frozen=True)
class RecordKind:
    name: str
    collection: str
    prefix: str
    route: str
    category: str
    slug: str
    title: str
    subtitle: str
    payload_model: Type[BaseModel]
    field_labels: Tuple[Tuple[str, str], ...]
    headline_field: str
    initial_status: ApplicationStatus = ApplicationStatus.SUBMITTED
    status_labels: Dict[ApplicationStatus, str] = field(default_factory=dict)
    downloadable_statuses: FrozenSet[ApplicationStatus] = frozenset(DOWNLOADABLE_STATUSES)

    def new_id(self) -> str:
        return f"{self.prefix}-{uuid.uuid4().hex[:12].upper()}"

    def allows_download(self, status: ApplicationStatus) -> bool:
        return status in self.downloadable_statuses

    def human_status(self, status: ApplicationStatus) -> str:
        return self.status_labels.get(status, status.value)

    def parse_status(self, value) -> ApplicationStatus:
        """Resolve a status value or one of this kind's human labels."""
        if isinstance(value, ApplicationStatus):
            return value
        if not isinstance(value, str):
            raise ValidationError("status must be a valid text")

        wanted = value.strip().lower().replace('_', ' ')
        for status in ApplicationStatus:
            if wanted in (status.value.lower(), self.human_status(status).lower()):
                return status
        raise ValidationError(f"Unknown status '{value}'")

    def validate_fields(self, fields: Dict) -> Dict:
        """Validate payload fields with the kind's model, raising ValidationError."""
        try:
            payload = self.payload_model(**fields)
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e
        except TypeError as e:
            raise ValidationError(f"fields must be an object: {e}") from e
        return payload.model_dump(exclude_none=True)


def _describe_validation_error(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get('loc', ())) or 'fields'
        messages.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(messages)


CERTIFICATE = RecordKind(
    name="certificate",
    collection="certificates",
    prefix="CRT",
    route="certificates",
    category="Certificates",
    slug="certificate",
    title="CERTIFICATE",
    subtitle="Civil Registration",
    payload_model=CertificatePayload,
    field_labels=(
        ("certificate_type", "Certificate Type"),
        ("applicant_name", "Applicant Name"),
        ("father_name", "Father's Name"),
        ("mother_name", "Mother's Name"),
        ("date", "Date of Event"),
        ("place", "Place"),
        ("address", "Address"),
        ("village", "Village"),
        ("district", "District"),
    ),
    headline_field="applicant_name",
)

LAND_RECORD = RecordKind(
    name="land_record",
    collection="land_records",
    prefix="LND",
    route="land-records",
    category="Land Records",
    slug="land-record-certificate",
    title="LAND RECORD",
    subtitle="CERTIFICATE",
    payload_model=LandRecordPayload,
    field_labels=(
        ("survey_no", "Survey Number"),
        ("area", "Total Area"),
        ("land_type", "Land Type"),
        ("encumbrance_status", "Encumbrance Status"),
    ),
    headline_field="owner",
    initial_status=ApplicationStatus.READY,
)

PROPERTY_TAX = RecordKind(
    name="property_tax",
    collection="property_taxes",
    prefix="PTX",
    route="property-tax",
    category="Property Tax",
    slug="property-tax-receipt",
    title="PROPERTY TAX",
    subtitle="RECEIPT",
    payload_model=PropertyTaxPayload,
    field_labels=(
        ("property_id", "Property ID"),
        ("owner_name", "Owner Name"),
        ("village", "Village"),
        ("tax_due", "Tax Due"),
    ),
    headline_field="owner_name",
    initial_status=ApplicationStatus.READY,
    status_labels={ApplicationStatus.READY: "Paid"},
)

MUTATION = RecordKind(
    name="mutation",
    collection="mutations",
    prefix="MUT",
    route="mutations",
    category="Mutation",
    slug="mutation-status",
    title="MUTATION APPLICATION",
    subtitle="ACKNOWLEDGEMENT",
    payload_model=MutationPayload,
    field_labels=(
        ("property_id", "Property ID"),
    ),
    headline_field="property_id",
    # The acknowledgement documents whatever state the application is in
    downloadable_statuses=frozenset(ApplicationStatus),
)

KINDS = {kind.name: kind for kind in (CERTIFICATE, LAND_RECORD, PROPERTY_TAX, MUTATION)}


def get_kind(name: str) -> RecordKind:
    """Look up a kind by name or by its URL segment."""
    for kind in KINDS.values():
        if name in (kind.name, kind.route):
            return kind
    raise NotFoundError(f"Unknown application kind '{name}'")


def kind_for_id(record_id: str) -> Optional[RecordKind]:
    """Resolve the kind that issued a record id, from its prefix."""
    prefix, _, _ = (record_id or "").partition("-")
    for kind in KINDS.values():
        if kind.prefix == prefix.upper():
            return kind
    return None
