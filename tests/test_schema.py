import pytest

from core.schema import CONTACT, DEAL, ENTITIES, QUOTE, get_schema, split_tags, to_backend_shape, to_ui_shape


def test_get_schema_accepts_plurals_and_dashes():
    assert get_schema("sales-orders").name == "sales_order"
    assert get_schema("Companies").name == "company"
    assert get_schema("deal") is DEAL
    with pytest.raises(KeyError):
        get_schema("invoices")


def test_contact_round_trip_preserves_every_writable_field():
    record = {"name": "Ann", "email": "ann@x.io", "phone": "555", "company": "Acme", "tags": ["vip", "lead"], "notes": "hi"}
    backend = to_backend_shape(CONTACT, record)
    assert backend == {"Name": "Ann", "email_c": "ann@x.io", "phone_c": "555", "company_c": "Acme", "Tags": "vip,lead", "notes_c": "hi"}
    back = to_ui_shape(CONTACT, {"Id": 7, **backend})
    for key, value in record.items():
        assert back[key] == value
    assert back["id"] == 7


def test_ui_shape_fills_defaults_for_absent_fields():
    record = to_ui_shape(DEAL, {"Id": 3, "title_c": "Big one"})
    assert record["stage"] == "Lead"
    assert record["probability"] == 50
    assert record["priority"] == "Medium"
    assert record["value"] == 0.0
    assert record["contact_id"] is None
    assert record["contact_name"] is None
    assert set(DEAL.columns) <= set(record)


def test_lookup_objects_resolve_to_id_and_display_name():
    record = to_ui_shape(DEAL, {"Id": 1, "contact_id_c": {"Id": 4, "Name": "Ann"}})
    assert record["contact_id"] == 4
    assert record["contact_name"] == "Ann"


def test_backend_shape_sends_only_given_fields_and_skips_read_only():
    payload = to_backend_shape(QUOTE, {"title": "Q1", "owner_id": 9, "created_at": "2024-01-01"})
    assert payload == {"title_c": "Q1"}


def test_create_defaults_fill_missing_and_blank_values():
    payload = to_backend_shape(DEAL, {"title": "New", "value": 10, "contact_id": 2, "stage": ""}, for_create=True)
    assert payload["stage_c"] == "Lead"
    assert payload["probability_c"] == 50
    assert payload["priority_c"] == "Medium"
    assert payload["contact_id_c"] == 2


def test_activity_create_default_timestamp_is_generated():
    payload = to_backend_shape(ENTITIES["activity"], {"type": "Call", "description": "x"}, for_create=True)
    assert payload["timestamp_c"]


def test_split_tags_trims_and_drops_blanks():
    assert split_tags(" vip , ,lead,") == ["vip", "lead"]
    assert split_tags(None) == []
    assert split_tags(["a", " b "]) == ["a", "b"]


_SAMPLES = {"str": "x", "int": 3, "float": 2.5, "date": "2024-01-02", "tags": ["a", "b"], "lookup": 7}


@pytest.mark.parametrize("name", sorted(ENTITIES))
def test_round_trip_for_populated_and_empty_records(name):
    schema = ENTITIES[name]
    writable = [f for f in schema.fields if f.writable]

    populated = {f.ui: _SAMPLES[f.kind] for f in writable}
    back = to_ui_shape(schema, to_backend_shape(schema, populated))
    assert {f.ui: back[f.ui] for f in writable} == populated

    empty = to_ui_shape(schema, to_backend_shape(schema, {}))
    assert {f.ui: empty[f.ui] for f in writable} == {f.ui: f.empty() for f in writable}
