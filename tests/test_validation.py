import pytest

from core.validation import is_valid_url, validate_record


def test_contact_requires_name_and_valid_email():
    assert validate_record("contact", {"name": "", "email": ""}) == {
        "name": "Name is required",
        "email": "Email is required",
    }
    assert validate_record("contact", {"name": "Ann", "email": "ann-at-x"}) == {"email": "Please enter a valid email address"}
    assert validate_record("contact", {"name": "Ann", "email": "ann@x.io"}) == {}


def test_partial_validation_only_checks_given_fields():
    assert validate_record("contact", {"phone": "555"}, partial=True) == {}
    assert validate_record("contact", {"email": "nope"}, partial=True) == {"email": "Please enter a valid email address"}
    assert validate_record("deal", {"stage": "Won"}, partial=True) == {}
    assert validate_record("deal", {"value": -1}, partial=True) == {"value": "Deal value must be greater than 0"}


def test_company_rules():
    errors = validate_record("company", {"name": "Acme", "website": "not a url", "number_of_employees": -3, "annual_revenue": "lots"})
    assert errors == {
        "website": "Please enter a valid website URL",
        "number_of_employees": "Please enter a valid number",
        "annual_revenue": "Please enter a valid revenue amount",
    }
    assert validate_record("company", {"name": "Acme", "website": "acme.io"}) == {}


@pytest.mark.parametrize(
    "value, ok",
    [("https://acme.io", True), ("acme.io/path", True), ("http://x", True), ("https://", False), ("two words.com", False), ("", False)],
)
def test_is_valid_url(value, ok):
    assert is_valid_url(value) is ok


def test_quote_and_sales_order_totals():
    assert validate_record("quote", {"title": "Q", "quote_date": "2024-01-01", "total_amount": 0}) == {
        "total_amount": "Valid total amount is required"
    }
    order = {"name": "SO-1", "order_date": "2024-01-01", "customer_id": 1}
    assert validate_record("sales_order", {**order, "total_amount": "abc"}) == {"total_amount": "Total amount must be a valid number"}
    assert validate_record("sales_order", {**order, "total_amount": -5}) == {"total_amount": "Total amount cannot be negative"}
    assert validate_record("sales_order", {**order, "total_amount": 0}) == {}


def test_task_and_activity_rules():
    assert validate_record("task", {"name": "T"}) == {"title": "Title is required"}
    assert validate_record("activity", {"type": "Call", "description": " "}) == {"description": "Description is required"}


def test_unknown_entity_has_no_rules():
    assert validate_record("widget", {}) == {}
