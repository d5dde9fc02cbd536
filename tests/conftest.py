from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import pandas as pd
import pytest

from core.notify import Notifier
from core.store import Workspace

NOW = pd.Timestamp("2024-05-15T12:00:00Z")  # a Wednesday; the week starts Sunday 2024-05-12


class FakeRecordClient:
    """In-memory record API speaking the same envelopes as the HTTP one."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {t: [dict(r) for r in rows] for t, rows in (tables or {}).items()}
        self.calls: List[tuple] = []
        self.queued: Dict[str, List[Any]] = {}
        self.echo_updates = True
        self._next_id = 1000

    def queue(self, method: str, response: Any) -> None:
        """Next call to ``method`` returns ``response`` (or raises it when it is an exception)."""
        self.queued.setdefault(method, []).append(response)

    def _scripted(self, method: str, table: str, payload: Any) -> Any:
        self.calls.append((method, table, copy.deepcopy(payload)))
        queue = self.queued.get(method)
        if queue:
            response = queue.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return None

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def fetch_records(self, table: str, query: Dict[str, Any]) -> Dict[str, Any]:
        scripted = self._scripted("fetch_records", table, query)
        if scripted is not None:
            return scripted
        rows = self._rows(table)
        for clause in query.get("where", []):
            field, wanted = clause["FieldName"], str(clause["Values"][0])
            if clause["Operator"] == "Contains":
                rows = [r for r in rows if wanted.lower() in str(r.get(field) or "").lower()]
            else:
                rows = [r for r in rows if str(r.get(field)) == wanted]
        return {"success": True, "data": [dict(r) for r in rows]}

    def get_record_by_id(self, table: str, record_id: int, query: Dict[str, Any]) -> Dict[str, Any]:
        scripted = self._scripted("get_record_by_id", table, record_id)
        if scripted is not None:
            return scripted
        row = next((dict(r) for r in self._rows(table) if r["Id"] == record_id), None)
        return {"success": True, "data": row}

    def create_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        scripted = self._scripted("create_record", table, params)
        if scripted is not None:
            return scripted
        results = []
        for record in params["records"]:
            self._next_id += 1
            row = {"Id": self._next_id, "CreatedOn": "2024-05-15T12:00:00Z", "ModifiedOn": "2024-05-15T12:00:00Z", **record}
            self._rows(table).append(row)
            results.append({"success": True, "data": dict(row)})
        return {"success": True, "results": results}

    def update_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        scripted = self._scripted("update_record", table, params)
        if scripted is not None:
            return scripted
        results = []
        for record in params["records"]:
            row = next((r for r in self._rows(table) if r["Id"] == record["Id"]), None)
            if row is None:
                results.append({"success": False, "message": "Record not found", "errors": []})
                continue
            row.update(record)
            results.append({"success": True, "data": dict(row) if self.echo_updates else {}})
        return {"success": True, "results": results}

    def delete_record(self, table: str, params: Dict[str, Any]) -> Dict[str, Any]:
        scripted = self._scripted("delete_record", table, params)
        if scripted is not None:
            return scripted
        ids = set(params["RecordIds"])
        self.tables[table] = [r for r in self._rows(table) if r["Id"] not in ids]
        return {"success": True, "results": [{"success": True} for _ in ids]}


def contact_row(id: int, name: str, email: str = "", company: str = "", tags: str = "", modified: str = "2024-05-01T00:00:00Z"):
    return {"Id": id, "Name": name, "email_c": email, "company_c": company, "Tags": tags, "CreatedOn": modified, "ModifiedOn": modified}


def deal_row(
    id: int,
    title: str,
    value: float,
    stage: str = "Lead",
    *,
    contact_id: Optional[int] = None,
    probability: int = 50,
    priority: str = "Medium",
    close: Optional[str] = None,
):
    return {
        "Id": id,
        "title_c": title,
        "value_c": value,
        "stage_c": stage,
        "probability_c": probability,
        "priority_c": priority,
        "contact_id_c": {"Id": contact_id, "Name": f"Contact {contact_id}"} if contact_id else None,
        "expected_close_date_c": close,
        "CreatedOn": "2024-05-01T00:00:00Z",
        "ModifiedOn": "2024-05-01T00:00:00Z",
    }


def activity_row(id: int, type_: str, timestamp: str, description: str = "", contact_id: Optional[int] = None, deal_id: Optional[int] = None):
    return {
        "Id": id,
        "type_c": type_,
        "description_c": description or f"{type_} #{id}",
        "timestamp_c": timestamp,
        "contact_id_c": contact_id,
        "deal_id_c": deal_id,
    }


@pytest.fixture
def now() -> pd.Timestamp:
    return NOW


@pytest.fixture
def fake_client() -> FakeRecordClient:
    return FakeRecordClient(
        {
            "contact_c": [
                contact_row(1, "Ann Lee", "ann@acme.io", "Acme", "vip,lead", "2024-05-03T00:00:00Z"),
                contact_row(2, "Bob Stone", "bob@globex.com", "Globex", "lead", "2024-05-02T00:00:00Z"),
                contact_row(3, "Cara Diaz", "cara@initech.com", "Initech", "", "2024-05-01T00:00:00Z"),
            ],
            "deal_c": [
                deal_row(10, "Acme renewal", 100, "Won", contact_id=1, probability=90),
                deal_row(11, "Acme upsell", 50, "Won", contact_id=1, probability=85),
                deal_row(12, "Globex pilot", 30, "Lost", contact_id=2, probability=10),
                deal_row(13, "Initech rollout", 400, "Proposal", contact_id=3, probability=60, priority="High", close="2024-05-18"),
                deal_row(14, "Globex expansion", 250, "Negotiation", contact_id=2, probability=40, close="2024-07-01"),
            ],
            "activity_c": [
                activity_row(100, "Call", "2024-05-14T09:00:00Z", contact_id=1, deal_id=10),
                activity_row(101, "Email", "2024-05-13T10:00:00Z", contact_id=2),
                activity_row(102, "call", "2024-05-07T10:00:00Z", contact_id=3, deal_id=13),
                activity_row(103, "Meeting", "2024-04-20T10:00:00Z", contact_id=1),
                activity_row(104, "Note", "2024-05-15T08:00:00Z"),
            ],
        }
    )


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def workspace(fake_client: FakeRecordClient, notifier: Notifier) -> Workspace:
    return Workspace(fake_client, notifier)
