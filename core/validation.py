from __future__ import annotations

import re
from typing import Any, Callable, Dict, Mapping
from urllib.parse import urlparse

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")

FieldErrors = Dict[str, str]
Validator = Callable[[Mapping[str, Any], bool], FieldErrors]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def is_valid_url(value: str) -> bool:
    candidate = value.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    if not candidate.startswith("http"):
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


class _Check:
    def __init__(self, record: Mapping[str, Any], partial: bool):
        self.record = record
        self.partial = partial
        self.errors: FieldErrors = {}

    def given(self, key: str) -> bool:
        return key in self.record

    def required(self, key: str, message: str) -> bool:
        if self.partial and not self.given(key):
            return False
        if _blank(self.record.get(key)):
            self.errors.setdefault(key, message)
            return False
        return True

    def fail(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)


def validate_contact(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("name", "Name is required")
    if c.required("email", "Email is required") and not EMAIL_RE.search(str(record["email"])):
        c.fail("email", "Please enter a valid email address")
    return c.errors


def validate_company(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("name", "Company name is required")
    website = record.get("website")
    if not _blank(website) and not is_valid_url(str(website)):
        c.fail("website", "Please enter a valid website URL")
    employees = record.get("number_of_employees")
    if not _blank(employees):
        n = _number(employees)
        if n is None or n < 0:
            c.fail("number_of_employees", "Please enter a valid number")
    revenue = record.get("annual_revenue")
    if not _blank(revenue):
        n = _number(revenue)
        if n is None or n < 0:
            c.fail("annual_revenue", "Please enter a valid revenue amount")
    return c.errors


def validate_deal(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("title", "Deal title is required")
    if not partial or c.given("value"):
        value = _number(record.get("value"))
        if value is None or value <= 0:
            c.fail("value", "Deal value must be greater than 0")
    c.required("contact_id", "Please select a contact")
    return c.errors


def validate_activity(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("type", "Activity type is required")
    c.required("description", "Description is required")
    return c.errors


def validate_quote(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("title", "Title is required")
    c.required("quote_date", "Quote date is required")
    if not partial or c.given("total_amount"):
        total = _number(record.get("total_amount"))
        if total is None or total <= 0:
            c.fail("total_amount", "Valid total amount is required")
    return c.errors


def validate_sales_order(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("name", "Order name is required")
    c.required("order_date", "Order date is required")
    c.required("customer_id", "Customer is required")
    if c.required("total_amount", "Total amount is required"):
        total = _number(record.get("total_amount"))
        if total is None:
            c.fail("total_amount", "Total amount must be a valid number")
        elif total < 0:
            c.fail("total_amount", "Total amount cannot be negative")
    return c.errors


def validate_task(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("name", "Name is required")
    c.required("title", "Title is required")
    return c.errors


def validate_pipeline_stage(record: Mapping[str, Any], partial: bool = False) -> FieldErrors:
    c = _Check(record, partial)
    c.required("name", "Stage name is required")
    return c.errors


VALIDATORS: Dict[str, Validator] = {
    "contact": validate_contact,
    "company": validate_company,
    "deal": validate_deal,
    "activity": validate_activity,
    "quote": validate_quote,
    "sales_order": validate_sales_order,
    "task": validate_task,
    "pipeline_stage": validate_pipeline_stage,
}


def validate_record(entity: str, record: Mapping[str, Any], *, partial: bool = False) -> FieldErrors:
    validator = VALIDATORS.get(entity)
    if validator is None:
        return {}
    return validator(record, partial)
