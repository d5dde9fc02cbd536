import pandas as pd
import pytest

from core.data import (
    EPOCH,
    count_week_windows,
    filter_frame,
    group_aggregate,
    parse_number,
    parse_timestamp,
    prepare_context,
    records_frame,
    sort_frame,
    start_of_week,
    time_window_mask,
    unique_values,
    week_over_week,
    week_windows,
)
from core.schema import CONTACT, DEAL, QUOTE


@pytest.fixture
def contacts() -> pd.DataFrame:
    return records_frame(
        [
            {"id": 1, "name": "Ann", "email": "ann@acme.io", "company": "Acme", "tags": ["vip"]},
            {"id": 2, "name": "Bob", "email": "bob@globex.com", "company": "Globex", "tags": []},
            {"id": 3, "name": "carl", "email": "carl@acme.io", "company": "Acme", "tags": ["lead", "vip"]},
        ],
        CONTACT,
    )


def test_tag_filter_returns_exactly_ann():
    df = records_frame([{"name": "Ann", "tags": ["vip"]}, {"name": "Bob", "tags": []}], CONTACT)
    out = filter_frame(df, tag="vip")
    assert out["name"].tolist() == ["Ann"]


def test_search_is_case_insensitive_substring_over_fields(contacts):
    out = filter_frame(contacts, search="ACME", search_fields=("name", "email", "company"))
    assert out["id"].tolist() == [1, 3]
    assert filter_frame(contacts, search="zzz", search_fields=("name",)).empty


def test_filter_is_a_subset_in_original_order(contacts):
    out = filter_frame(contacts, search="a", search_fields=("name",), tag="vip")
    assert set(out["id"]) <= set(contacts["id"])
    assert out["id"].tolist() == sorted(out["id"].tolist())
    assert all("vip" in tags for tags in out["tags"])


def test_empty_filter_returns_everything(contacts):
    out = filter_frame(contacts, search="", search_fields=("name",), equals={"company": ""}, tag="")
    assert out["id"].tolist() == contacts["id"].tolist()


def test_equality_filter_and_unknown_column(contacts):
    assert filter_frame(contacts, equals={"company": "Globex"})["id"].tolist() == [2]
    assert filter_frame(contacts, equals={"missing": "x"}).empty


def test_case_insensitive_equality():
    df = pd.DataFrame({"type": ["Call", "call", "Email"]})
    assert len(filter_frame(df, equals={"type": "CALL"}, case_insensitive=True)) == 2
    assert len(filter_frame(df, equals={"type": "CALL"})) == 0


def test_sort_is_a_permutation_and_reverses(contacts):
    asc = sort_frame(contacts, "name", "asc", schema=CONTACT)
    desc = sort_frame(contacts, "name", "desc", schema=CONTACT)
    assert sorted(asc["id"].tolist()) == sorted(contacts["id"].tolist())
    assert asc["name"].tolist() == ["Ann", "Bob", "carl"]
    assert desc["id"].tolist() == list(reversed(asc["id"].tolist()))


def test_sort_numbers_fall_back_to_zero():
    df = pd.DataFrame({"id": [1, 2, 3], "value": ["10", None, "2.5"]})
    assert sort_frame(df, "value", "asc", kind="numeric")["id"].tolist() == [2, 3, 1]


def test_sort_dates_put_invalid_values_at_epoch():
    df = pd.DataFrame({"id": [1, 2, 3], "when": ["2024-03-01", "not a date", "2023-01-01T10:00:00Z"]})
    assert sort_frame(df, "when", "asc", kind="date")["id"].tolist() == [2, 3, 1]


def test_sort_is_stable_for_ties():
    df = pd.DataFrame({"id": [1, 2, 3, 4], "stage": ["b", "a", "b", "a"]})
    assert sort_frame(df, "stage", "asc")["id"].tolist() == [2, 4, 1, 3]


def test_sort_lookup_column_uses_display_name():
    df = records_frame(
        [
            {"id": 1, "company_id": 9, "company_name": "Zeta"},
            {"id": 2, "company_id": 1, "company_name": "alpha"},
        ],
        QUOTE,
    )
    assert sort_frame(df, "company_id", "asc", schema=QUOTE)["id"].tolist() == [2, 1]


def test_sort_unknown_key_keeps_order(contacts):
    assert sort_frame(contacts, "nope", "desc")["id"].tolist() == [1, 2, 3]


def test_group_by_stage_counts_and_sums():
    deals = records_frame(
        [{"stage": "Won", "value": 100}, {"stage": "Won", "value": 50}, {"stage": "Lost", "value": 30}],
        DEAL,
    )
    assert group_aggregate(deals, "stage", "value") == {
        "Won": {"count": 2, "sum": 150},
        "Lost": {"count": 1, "sum": 30},
    }


def test_group_over_empty_list_is_empty():
    assert group_aggregate(records_frame([], DEAL), "stage", "value") == {}
    assert group_aggregate(pd.DataFrame(), "stage") == {}


@pytest.mark.parametrize(
    "current, prior, expected",
    [(5, 0, 100), (0, 0, 100), (4, 4, 0), (6, 4, 50), (1, 4, -75), (2, 3, -33), (1, 8, -87), (7, 8, -12), (3, 8, -62)],
)
def test_week_over_week(current, prior, expected):
    assert week_over_week(current, prior) == expected


def test_start_of_week_is_sunday_midnight():
    assert start_of_week(pd.Timestamp("2024-05-15T12:00:00Z")) == pd.Timestamp("2024-05-12T00:00:00Z")
    assert start_of_week(pd.Timestamp("2024-05-12T08:00:00Z")) == pd.Timestamp("2024-05-12T00:00:00Z")
    prior, current = week_windows(pd.Timestamp("2024-05-15T12:00:00Z"))
    assert prior == pd.Timestamp("2024-05-05T00:00:00Z")
    assert current == pd.Timestamp("2024-05-12T00:00:00Z")


def test_count_week_windows(now):
    s = pd.Series(["2024-05-12T00:00:00Z", "2024-05-14", "2024-05-11T23:59:00Z", "2024-05-05", "2024-05-04", None])
    assert count_week_windows(s, now) == (2, 2)


def test_time_window_mask(now):
    s = pd.Series(["2024-05-15T01:00:00Z", "2024-05-13", "2024-05-02", "2024-04-30", "garbage"])
    assert time_window_mask(s, "today", now).tolist() == [True, False, False, False, False]
    assert time_window_mask(s, "week", now).tolist() == [True, True, False, False, False]
    assert time_window_mask(s, "month", now).tolist() == [True, True, True, False, False]
    assert time_window_mask(s, "all", now).all()


def test_parse_helpers():
    assert parse_number("12.5") == 12.5
    assert parse_number("abc") == 0.0
    assert parse_number(None, default=-1) == -1
    assert parse_timestamp("bad") == EPOCH
    assert parse_timestamp(None) == EPOCH
    assert parse_timestamp("2024-01-01T00:00:00Z") == pd.Timestamp("2024-01-01", tz="UTC")


def test_unique_values_flattens_tag_lists(contacts):
    assert unique_values(contacts, "tags") == ["lead", "vip"]


def test_prepare_context_resolves_names_and_contact_totals(now):
    contacts = records_frame([{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bob"}], CONTACT)
    deals = records_frame(
        [
            {"id": 10, "title": "A", "value": 100.0, "contact_id": 1, "contact_name": None},
            {"id": 11, "title": "B", "value": 20.0, "contact_id": 1, "contact_name": "Ann L."},
        ],
        DEAL,
    )
    ctx = prepare_context({"contacts": contacts, "deals": deals}, now=now)
    assert ctx["deals"]["contact_name"].tolist() == ["Ann", "Ann L."]
    assert ctx["contacts"]["deal_value"].tolist() == [120.0, 0.0]
    assert ctx["contacts"]["deal_count"].tolist() == [2, 0]
    assert ctx["activities"].empty
    assert ctx["now"] == now
