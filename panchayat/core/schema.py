"""
Record types shared by the stores, the repository and the artifact generator.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict


class ApplicationStatus(str, Enum):
    SUBMITTED = "Submitted"
    IN_PROCESS = "In Process"
    READY = "Ready"
    REJECTED = "Rejected"


# Forward-only workflow. Ready and Rejected are terminal.
STATUS_TRANSITIONS = {
    ApplicationStatus.SUBMITTED: {ApplicationStatus.IN_PROCESS, ApplicationStatus.READY, ApplicationStatus.REJECTED},
    ApplicationStatus.IN_PROCESS: {ApplicationStatus.READY, ApplicationStatus.REJECTED},
    ApplicationStatus.READY: set(),
    ApplicationStatus.REJECTED: set(),
}

DOWNLOADABLE_STATUSES = {ApplicationStatus.READY}


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    """Check whether the workflow allows moving from current to target."""
    return current == target or target in STATUS_TRANSITIONS[current]


@dataclass
class ApplicationRecord:
    id: str
    kind: str
    citizen_id: str
    status: ApplicationStatus
    fields: Dict[str, Any]
    created_at: datetime
    updated_at: datetime = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    def to_dict(self) -> Dict:
        """Convert to dictionary for storage and API responses."""
        data = asdict(self)
        data['status'] = self.status.value
        data['created_at'] = self.created_at.isoformat()
        data['updated_at'] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'ApplicationRecord':
        """Create from dictionary (for loading from storage)."""
        data = dict(data)
        data['status'] = ApplicationStatus(data['status'])
        data['fields'] = dict(data.get('fields') or {})
        data['created_at'] = datetime.fromisoformat(data['created_at'])
        if data.get('updated_at'):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        return cls(**data)


@dataclass
class Artifact:
    """A rendered artifact ready to hand to a caller."""
    record_id: str
    format: str
    content: bytes
    content_type: str
    filename: str
    generated_at: datetime
    placeholder: bool = False
    from_cache: bool = False
