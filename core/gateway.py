"""Generic record gateway: one adapter over the record API per entity schema.

Every operation returns a ``Result`` instead of raising; failures are logged and
pushed to the notifier so the UI can surface them as transient messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Literal, Mapping, Optional, Sequence, Tuple, TypeVar

from core.client import RecordApiError, RecordClient
from core.notify import Notifier
from core.schema import EntitySchema, to_backend_shape, to_ui_shape
from core.validation import validate_record

logger = logging.getLogger(__name__)

T = TypeVar("T")
ResultKind = Literal["ok", "backend", "transport", "partial", "not_found", "validation"]


class RecordOperationError(RuntimeError):
    def __init__(self, message: str, *, kind: ResultKind, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.kind = kind
        self.field_errors = field_errors or {}


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    kind: ResultKind = "ok"
    errors: Tuple[str, ...] = ()
    field_errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def success(cls, value: Optional[T] = None, *, kind: ResultKind = "ok", errors: Sequence[str] = ()) -> "Result[T]":
        return cls(ok=True, value=value, kind=kind, errors=tuple(errors))

    @classmethod
    def failure(
        cls,
        kind: ResultKind,
        errors: Sequence[str],
        *,
        value: Optional[T] = None,
        field_errors: Optional[Dict[str, str]] = None,
    ) -> "Result[T]":
        return cls(ok=False, value=value, kind=kind, errors=tuple(errors), field_errors=dict(field_errors or {}))

    @property
    def message(self) -> str:
        return "; ".join(self.errors)

    def unwrap(self) -> Optional[T]:
        """Return the value or raise ``RecordOperationError`` for callers that prefer exceptions."""
        if not self.ok:
            raise RecordOperationError(self.message or self.kind, kind=self.kind, field_errors=self.field_errors)
        return self.value


def _record_errors(record: Mapping[str, Any]) -> List[str]:
    messages: List[str] = []
    for err in record.get("errors") or []:
        if isinstance(err, Mapping):
            label = err.get("fieldLabel") or err.get("field") or ""
            text = err.get("message") or ""
            messages.append(f"{label}: {text}" if label else str(text))
        else:
            messages.append(str(err))
    if record.get("message"):
        messages.append(str(record["message"]))
    return messages or ["Record operation failed"]


class RecordGateway:
    def __init__(
        self,
        client: RecordClient,
        schema: EntitySchema,
        notifier: Optional[Notifier] = None,
        *,
        page_limit: Optional[int] = None,
    ):
        self.client = client
        self.schema = schema
        self.notifier = notifier if notifier is not None else Notifier()
        self.page_limit = min(schema.page_limit, page_limit) if page_limit else schema.page_limit

    @property
    def entity(self) -> str:
        return self.schema.name

    def _noun(self, plural: bool = False) -> str:
        return self.schema.label.lower() if plural else self.schema.name.replace("_", " ")

    def _query(self, *, detail: bool) -> Dict[str, Any]:
        return {"fields": [{"field": {"Name": name}} for name in self.schema.read_fields(detail=detail)]}

    def _where(self, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        clauses: List[Dict[str, Any]] = []
        for key, value in filters.items():
            if value is None or value == "":
                continue
            if key == "search":
                clauses.append(
                    {
                        "FieldName": self.schema.backend_name(self.schema.search_field),
                        "Operator": "Contains",
                        "Values": [str(value)],
                        "Include": True,
                    }
                )
            else:
                clauses.append(
                    {"FieldName": self.schema.backend_name(key), "Operator": "EqualTo", "Values": [value], "Include": True}
                )
        return clauses

    def _transport_failure(self, action: str, exc: RecordApiError) -> str:
        logger.error("%s %s failed: %s", action, self.schema.table, exc)
        message = f"Failed to {action} {self._noun(plural=action == 'fetch')}"
        self.notifier.error(message)
        return message

    def _backend_failure(self, action: str, response: Mapping[str, Any]) -> str:
        message = str(response.get("message") or f"Failed to {action} {self._noun()}")
        logger.error("%s %s rejected: %s", action, self.schema.table, message)
        self.notifier.error(message)
        return message

    # ---------- reads ----------

    def list(self, filters: Optional[Mapping[str, Any]] = None) -> Result[List[Dict[str, Any]]]:
        query = self._query(detail=False)
        query["orderBy"] = [{"fieldName": self.schema.order_by, "sorttype": "DESC" if self.schema.order_desc else "ASC"}]
        query["pagingInfo"] = {"limit": self.page_limit, "offset": 0}
        unknown = [k for k, v in (filters or {}).items() if v not in (None, "") and k != "search" and self.schema.get_field(k) is None]
        if unknown:
            field_errors = {k: f"Cannot filter {self._noun(plural=True)} by {k!r}" for k in unknown}
            logger.info("%s list rejected filters: %s", self.schema.name, unknown)
            return Result.failure("validation", list(field_errors.values()), value=[], field_errors=field_errors)
        where = self._where(filters or {})
        if where:
            query["where"] = where
        try:
            response = self.client.fetch_records(self.schema.table, query)
        except RecordApiError as exc:
            return Result.failure("transport", [self._transport_failure("fetch", exc)], value=[])
        if not response.get("success", False):
            return Result.failure("backend", [self._backend_failure("fetch", response)], value=[])
        rows = response.get("data") or []
        return Result.success([to_ui_shape(self.schema, row) for row in rows])

    def get_by_id(self, record_id: int) -> Result[Dict[str, Any]]:
        try:
            response = self.client.get_record_by_id(self.schema.table, int(record_id), self._query(detail=True))
        except RecordApiError as exc:
            return Result.failure("transport", [self._transport_failure("load", exc)])
        if not response.get("success", False):
            return Result.failure("backend", [self._backend_failure("load", response)])
        row = response.get("data")
        if not row:
            logger.info("%s %s not found", self.schema.table, record_id)
            return Result.failure("not_found", [f"{self._noun().capitalize()} {record_id} not found"])
        return Result.success(to_ui_shape(self.schema, row))

    # ---------- writes ----------

    def _validate(self, records: Sequence[Mapping[str, Any]], *, partial: bool) -> Optional[Result[Any]]:
        for record in records:
            field_errors = validate_record(self.schema.name, record, partial=partial)
            if field_errors:
                logger.info("%s validation failed: %s", self.schema.name, field_errors)
                return Result.failure("validation", list(field_errors.values()), field_errors=field_errors)
        return None

    def _batch(self, action: str, response: Mapping[str, Any]) -> Tuple[List[Mapping[str, Any]], List[str]]:
        results = response.get("results") or []
        successful = [r for r in results if r.get("success")]
        failed = [r for r in results if not r.get("success")]
        errors: List[str] = []
        if failed:
            logger.warning("Failed to %s %d %s records: %s", action, len(failed), self.schema.table, failed)
            for record in failed:
                for message in _record_errors(record):
                    self.notifier.error(message)
                    errors.append(message)
        return successful, errors

    def create_many(self, records: Sequence[Mapping[str, Any]]) -> Result[List[Dict[str, Any]]]:
        invalid = self._validate(records, partial=False)
        if invalid is not None:
            return invalid
        params = {"records": [to_backend_shape(self.schema, r, for_create=True) for r in records]}
        try:
            response = self.client.create_record(self.schema.table, params)
        except RecordApiError as exc:
            return Result.failure("transport", [self._transport_failure("create", exc)])
        if not response.get("success", False):
            return Result.failure("backend", [self._backend_failure("create", response)])

        successful, errors = self._batch("create", response)
        if not successful:
            return Result.failure("backend", errors or [f"Failed to create {self._noun()}"])
        created = [to_ui_shape(self.schema, r.get("data") or {}) for r in successful]
        self.notifier.success(f"{self._noun().capitalize()} created successfully")
        return Result.success(created, kind="partial" if errors else "ok", errors=errors)

    def create(self, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        result = self.create_many([fields])
        if not result.ok:
            return Result.failure(result.kind, result.errors, field_errors=result.field_errors)
        return Result.success((result.value or [None])[0], kind=result.kind, errors=result.errors)

    def update(self, record_id: int, fields: Mapping[str, Any]) -> Result[Dict[str, Any]]:
        """Send only the provided fields; the value is None when the backend does not echo the record."""
        invalid = self._validate([fields], partial=True)
        if invalid is not None:
            return invalid
        payload = {"Id": int(record_id), **to_backend_shape(self.schema, fields)}
        try:
            response = self.client.update_record(self.schema.table, {"records": [payload]})
        except RecordApiError as exc:
            return Result.failure("transport", [self._transport_failure("update", exc)])
        if not response.get("success", False):
            return Result.failure("backend", [self._backend_failure("update", response)])

        successful, errors = self._batch("update", response)
        if not successful:
            return Result.failure("backend", errors or [f"Failed to update {self._noun()}"])
        self.notifier.success(f"{self._noun().capitalize()} updated successfully")
        data = successful[0].get("data")
        if not data or "Id" not in data:
            return Result.success(None)
        return Result.success(to_ui_shape(self.schema, data))

    def delete_many(self, record_ids: Sequence[int]) -> Result[bool]:
        try:
            response = self.client.delete_record(self.schema.table, {"RecordIds": [int(i) for i in record_ids]})
        except RecordApiError as exc:
            return Result.failure("transport", [self._transport_failure("delete", exc)], value=False)
        if not response.get("success", False):
            return Result.failure("backend", [self._backend_failure("delete", response)], value=False)

        successful, errors = self._batch("delete", response)
        if not successful:
            return Result.failure("backend", errors or [f"Failed to delete {self._noun()}"], value=False)
        self.notifier.success(f"{self._noun().capitalize()} deleted successfully")
        return Result.success(True, kind="partial" if errors else "ok", errors=errors)

    def delete(self, record_id: int) -> Result[bool]:
        return self.delete_many([record_id])
