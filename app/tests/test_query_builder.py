from datetime import datetime, timezone

import pytest

from app.services.query_builder import (
    ASCENDING,
    DESCENDING,
    build_filter,
    build_list_query,
    build_sort,
    is_blank,
    parse_date,
    parse_flag,
    parse_limit,
    parse_page,
)


@pytest.mark.parametrize("value", [None, "", "  ", "null", "NULL", "undefined", "Undefined"])
def test_blank_values(value):
    assert is_blank(value)


@pytest.mark.parametrize("value", ["0", "false", "b-1", 0])
def test_non_blank_values(value):
    assert not is_blank(value)


@pytest.mark.parametrize("raw, expected", [
    (None, 50),
    ("", 50),
    ("10", 10),
    ("1", 1),
    ("200", 200),
    ("1000", 200),
    ("0", 50),
    ("-3", 50),
    ("abc", 50),
    ("null", 50),
])
def test_parse_limit(raw, expected):
    assert parse_limit(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (None, 1),
    ("3", 3),
    ("0", 1),
    ("-2", 1),
    ("x", 1),
])
def test_parse_page(raw, expected):
    assert parse_page(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("1", True), ("true", True), ("YES", True), ("on", True),
    ("0", False), ("false", False), (None, False), ("undefined", False),
])
def test_parse_flag(raw, expected):
    assert parse_flag(raw) is expected


def test_parse_date_invalid_is_none():
    assert parse_date("31/31/2024") is None
    assert parse_date("null") is None
    assert parse_date("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_identity_first_non_blank_wins():
    assert build_filter({"id": "", "_id": "null", "booking_id": "b-7"}) == {"id": "b-7"}
    assert build_filter({"id": "b-1", "booking_id": "b-7"}) == {"id": "b-1"}


def test_exact_match_filters():
    query_filter = build_filter({
        "movie_id": "m-1",
        "cinema_id": "c-1",
        "showtime_id": "s-1",
        "user_id": "u-1",
        "status": "CONFIRMED",
        "source": "web",
        "payment_method": "undefined",
    })
    assert query_filter == {
        "movie_id": "m-1",
        "cinema_id": "c-1",
        "showtime_id": "s-1",
        "user.user_id": "u-1",
        "status": "CONFIRMED",
        "source": "web",
    }


def test_email_filter_matches_normalized_or_raw():
    assert build_filter({"email": "USER@X.COM"}) == {
        "$or": [{"email_norm": "user@x.com"}, {"user.email": "USER@X.COM"}]
    }


def test_date_range_filter():
    query_filter = build_filter({"date_from": "2024-01-01", "date_to": "2024-02-01"})
    assert query_filter["created_at_dt"] == {
        "$gte": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "$lt": datetime(2024, 2, 1, tzinfo=timezone.utc),
    }


def test_invalid_dates_contribute_nothing():
    assert build_filter({"date_from": "garbage", "date_to": ""}) == {}
    assert build_filter({"date_from": "garbage", "date_to": "2024-02-01"}) == {
        "created_at_dt": {"$lt": datetime(2024, 2, 1, tzinfo=timezone.utc)}
    }


@pytest.mark.parametrize("raw, expected", [
    (None, ("created_at_dt", DESCENDING)),
    ("", ("created_at_dt", DESCENDING)),
    ("-", ("created_at_dt", DESCENDING)),
    ("price_total", ("price_total", ASCENDING)),
    ("-user.name", ("user.name", DESCENDING)),
])
def test_build_sort(raw, expected):
    assert build_sort(raw) == expected


def test_build_list_query_window():
    query = build_list_query({"limit": "10", "page": "3", "flat": "true", "status": "PENDING"})
    assert query.limit == 10
    assert query.page == 3
    assert query.skip == 20
    assert query.flat is True
    assert query.filter == {"status": "PENDING"}


def test_build_list_query_defaults():
    query = build_list_query({})
    assert (query.page, query.limit, query.skip, query.flat) == (1, 50, 0, False)
    assert query.sort == ("created_at_dt", DESCENDING)
    assert query.filter == {}
