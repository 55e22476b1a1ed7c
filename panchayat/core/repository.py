"""
Record repository - durable store first, transient store when it is down.

Every operation makes exactly one attempt against the durable store. A
StoreUnavailable from that attempt is logged and the call continues on the
transient store; callers never see the outage. Records written during an
outage stay in the transient store after the durable store recovers, and a
transient copy shadows the durable copy of the same id.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .errors import NotFoundError, PolicyError, StoreUnavailable, ValidationError
from .kinds import KINDS, RecordKind, get_kind, kind_for_id
from .schema import ApplicationRecord, can_transition
from .stores import InMemoryRecordStore, RecordStore, SqliteRecordStore
from ..util.logging import logger

IMMUTABLE_FIELDS = ('id', 'kind', 'citizen_id', 'created_at', 'updated_at')


class RecordRepository:
    """Generic get/create/update/list for one application kind."""

    def __init__(self, kind: RecordKind, durable: RecordStore, transient: RecordStore,
                 invalidator=None, notifier=None):
        self.kind = kind
        self.durable = durable
        self.transient = transient
        self.invalidator = invalidator
        self.notifier = notifier

    def _locate(self, record_id: str) -> Tuple[Optional[ApplicationRecord], Optional[RecordStore]]:
        """Find a record and the store holding its current state.

        A transient copy shadows the durable one: it only exists because a
        write could not reach the durable store, so it is the newer state.
        """
        record = None
        try:
            record = self.durable.get(record_id)
        except StoreUnavailable as e:
            logger.log_store_failover("get", self.kind.name, e)

        shadow = self.transient.get(record_id)
        if shadow is not None:
            return shadow, self.transient
        if record is not None:
            return record, self.durable
        return None, None

    def find(self, record_id: str) -> Optional[ApplicationRecord]:
        record, _ = self._locate(record_id)
        return record

    def get(self, record_id: str) -> ApplicationRecord:
        record = self.find(record_id)
        if record is None:
            raise NotFoundError(f"{self.kind.category} application {record_id} not found")
        return record

    def create(self, fields: Dict) -> ApplicationRecord:
        """Validate fields, assign an id and store the new record."""
        if not isinstance(fields, dict):
            raise ValidationError("fields must be an object")

        citizen_id = fields.get('citizen_id')
        if not isinstance(citizen_id, str) or not citizen_id.strip():
            raise ValidationError("citizen_id is required and must be a valid text")

        payload = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS and k != 'status'}
        validated = self.kind.validate_fields(payload)

        now = datetime.now()
        record = ApplicationRecord(
            id=self.kind.new_id(),
            kind=self.kind.name,
            citizen_id=citizen_id.strip(),
            status=self.kind.initial_status,
            fields=validated,
            created_at=now,
            updated_at=now,
        )

        store = self.durable
        try:
            self.durable.insert(record)
        except StoreUnavailable as e:
            logger.log_store_failover("create", self.kind.name, e)
            store = self.transient
            self.transient.insert(record)

        logger.log_record_operation("create", self.kind.name, record.id, store.name)
        self._notify(record, f"{self.kind.category} application submitted successfully")
        return record

    def update(self, record_id: str, partial_fields: Dict) -> ApplicationRecord:
        """Merge partial fields onto the record wherever it lives and persist it."""
        if not isinstance(partial_fields, dict):
            raise ValidationError("fields must be an object")

        record, store = self._locate(record_id)
        if record is None:
            raise NotFoundError(f"{self.kind.category} application {record_id} not found")

        changes = dict(partial_fields)
        current = record.to_dict()
        for name in IMMUTABLE_FIELDS:
            if name in changes:
                if changes[name] != current[name]:
                    raise ValidationError(f"{name} cannot be changed")
                changes.pop(name)

        previous_status = record.status
        if 'status' in changes:
            target = self.kind.parse_status(changes.pop('status'))
            if not can_transition(record.status, target):
                raise PolicyError(
                    f"Cannot move application from '{self.kind.human_status(record.status)}' "
                    f"to '{self.kind.human_status(target)}'"
                )
            record.status = target

        record.fields = self.kind.validate_fields({**record.fields, **changes})
        record.updated_at = datetime.now()

        if store is self.durable:
            try:
                self.durable.save(record)
            except StoreUnavailable as e:
                logger.log_store_failover("update", self.kind.name, e)
                store = self.transient
                self.transient.save(record)
        else:
            self.transient.save(record)

        logger.log_record_operation("update", self.kind.name, record.id, store.name)

        if self.invalidator is not None:
            self.invalidator.invalidate(record.id)

        if record.status != previous_status:
            self._notify(record, f"{self.kind.category} application is now {self.kind.human_status(record.status)}")
        return record

    def _list(self, citizen_id: str = None) -> List[ApplicationRecord]:
        try:
            records = self.durable.list(citizen_id)
        except StoreUnavailable as e:
            logger.log_store_failover("list", self.kind.name, e)
            return self.transient.list(citizen_id)

        shadows = {record.id: record for record in self.transient.list(citizen_id)}
        records = [shadows.pop(record.id, record) for record in records]
        records.extend(shadows.values())
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def list_all(self) -> List[ApplicationRecord]:
        return self._list()

    def list_by_owner(self, citizen_id: str) -> List[ApplicationRecord]:
        return self._list(citizen_id)

    def durable_reachable(self) -> bool:
        return self.durable.ping()

    def _notify(self, record: ApplicationRecord, message: str):
        if self.notifier is None:
            return
        self.notifier.notify(
            record.citizen_id,
            record.id,
            self.kind.category,
            self.kind.human_status(record.status),
            message,
        )


class RepositorySet:
    """One repository per kind, addressed by kind name or by record id."""

    def __init__(self, repositories: Dict[str, RecordRepository]):
        self.repositories = repositories

    @classmethod
    def build(cls, db_path: str = None, durable_enabled: bool = True,
              invalidator=None, notifier=None) -> 'RepositorySet':
        repositories = {
            name: RecordRepository(
                kind,
                SqliteRecordStore(kind, db_path, enabled=durable_enabled),
                InMemoryRecordStore(),
                invalidator=invalidator,
                notifier=notifier,
            )
            for name, kind in KINDS.items()
        }
        return cls(repositories)

    def for_kind(self, name: str) -> RecordRepository:
        return self.repositories[get_kind(name).name]

    def for_record(self, record_id: str) -> RecordRepository:
        kind = kind_for_id(record_id)
        if kind is None:
            raise NotFoundError(f"Application {record_id} not found")
        return self.repositories[kind.name]

    def get(self, record_id: str) -> ApplicationRecord:
        return self.for_record(record_id).get(record_id)

    def update(self, record_id: str, partial_fields: Dict) -> ApplicationRecord:
        return self.for_record(record_id).update(record_id, partial_fields)

    def list_all(self) -> List[ApplicationRecord]:
        records = [r for repo in self.repositories.values() for r in repo.list_all()]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def list_by_owner(self, citizen_id: str) -> List[ApplicationRecord]:
        records = [r for repo in self.repositories.values() for r in repo.list_by_owner(citizen_id)]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def durable_reachable(self) -> bool:
        return all(repo.durable_reachable() for repo in self.repositories.values())

    def attach(self, invalidator=None, notifier=None):
        """Wire the cache invalidator and notifier into every repository."""
        for repo in self.repositories.values():
            if invalidator is not None:
                repo.invalidator = invalidator
            if notifier is not None:
                repo.notifier = notifier
