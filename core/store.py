"""In-memory record lists per entity, kept in step with the record API."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from core.client import RecordClient
from core.data import records_frame
from core.gateway import RecordGateway, Result
from core.notify import Notifier
from core.schema import ENTITIES, EntitySchema, get_schema

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Authoritative in-memory copy of one entity's record list.

    Mutations are reconciled by splicing the changed record into ``items`` by id;
    a full reload happens only when the backend acknowledges an update without
    echoing the record. Each load is tagged with a sequence number and the list
    version it started from, and its response is dropped when a newer load has
    started or a mutation has changed the list in the meantime.
    """

    def __init__(self, gateway: RecordGateway):
        self.gateway = gateway
        self.items: List[Dict[str, Any]] = []
        self.loading = False
        self.loaded = False
        self.error: Optional[str] = None
        self._lock = threading.RLock()
        self._load_seq = 0
        self._version = 0

    @property
    def schema(self) -> EntitySchema:
        return self.gateway.schema

    def _bump(self) -> None:
        self._version += 1

    def load(self, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            self._load_seq += 1
            seq = self._load_seq
            version = self._version
            self.loading = True
            self.error = None

        result = self.gateway.list(filters)

        with self._lock:
            if seq != self._load_seq:
                logger.debug("Discarding superseded %s load #%d", self.schema.name, seq)
                return list(self.items)
            self.loading = False
            if not result.ok:
                self.error = result.message or f"Failed to load {self.schema.label.lower()}"
                return list(self.items)
            if version != self._version:
                logger.debug("Discarding %s load #%d: list changed while in flight", self.schema.name, seq)
                return list(self.items)
            self.items = list(result.value or [])
            self.loaded = True
            self._bump()
            return list(self.items)

    def ensure_loaded(self) -> List[Dict[str, Any]]:
        if not self.loaded:
            return self.load()
        return list(self.items)

    def get_item(self, record_id: int) -> Optional[Dict[str, Any]]:
        result = self.gateway.get_by_id(record_id)
        return result.value if result.ok else None

    def create_item(self, fields: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        result = self.create(fields)
        return result.value if result.ok else None

    def create(self, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        result = self.gateway.create(fields)
        if result.ok and result.value is not None:
            with self._lock:
                self.items = [result.value] + [r for r in self.items if r.get("id") != result.value.get("id")]
                self._bump()
        return result

    def update_item(self, record_id: int, fields: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        result = self.update(record_id, fields)
        return self.find(record_id) if result.ok else None

    def update(self, record_id: int, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        result = self.gateway.update(record_id, fields)
        if not result.ok:
            return result
        if result.value is None:
            self.load()
            return Result.success(self.find(record_id))
        with self._lock:
            rid = int(record_id)
            self.items = [result.value if r.get("id") == rid else r for r in self.items]
            self._bump()
        return result

    def delete_item(self, record_id: int) -> bool:
        return bool(self.delete(record_id).ok)

    def delete(self, record_id: int) -> Result[bool]:
        result = self.gateway.delete(record_id)
        if result.ok:
            with self._lock:
                rid = int(record_id)
                self.items = [r for r in self.items if r.get("id") != rid]
                self._bump()
        return result

    def find(self, record_id: int) -> Optional[Dict[str, Any]]:
        rid = int(record_id)
        for record in self.items:
            if record.get("id") == rid:
                return record
        return None

    def frame(self) -> pd.DataFrame:
        return records_frame(self.items, self.schema)


class Workspace:
    """One store per entity over a shared client and notifier."""

    def __init__(self, client: RecordClient, notifier: Optional[Notifier] = None, *, page_limit: Optional[int] = None):
        self.client = client
        self.notifier = notifier if notifier is not None else Notifier()
        self.page_limit = page_limit
        self._stores: Dict[str, RecordStore] = {}
        self._lock = threading.Lock()

    def store(self, entity: str) -> RecordStore:
        schema = get_schema(entity)
        with self._lock:
            if schema.name not in self._stores:
                self._stores[schema.name] = RecordStore(
                    RecordGateway(self.client, schema, self.notifier, page_limit=self.page_limit)
                )
            return self._stores[schema.name]

    def load(self, entities: Optional[Iterable[str]] = None, *, refresh: bool = False) -> Dict[str, RecordStore]:
        names = list(entities) if entities is not None else list(ENTITIES)
        stores = {get_schema(name).name: self.store(name) for name in names}
        for store in stores.values():
            if refresh:
                store.load()
            else:
                store.ensure_loaded()
        return stores
