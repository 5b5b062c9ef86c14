"""Pagination and sort helpers."""

import pytest

from bookstore.errors import ApiError
from bookstore.responses import MAX_SIZE, PageParams, build_page, get_page_params, parse_sort


ALLOWED = {"createdAt": "created_col", "totalAmount": "total_col"}


def test_defaults():
    params = get_page_params({})

    assert params == PageParams(page=1, size=20, sort=None)
    assert params.offset == 0


def test_size_capped_and_floors_applied():
    assert get_page_params({"size": "500"}).size == MAX_SIZE
    assert get_page_params({"page": "0", "size": "-3"}) == PageParams(page=1, size=1, sort=None)


def test_offset():
    assert get_page_params({"page": "3", "size": "10"}).offset == 20


@pytest.mark.parametrize("args", [{"page": "x"}, {"size": "1.5"}])
def test_non_integer_rejected(args):
    with pytest.raises(ApiError) as exc:
        get_page_params(args)
    assert exc.value.code == "INVALID_QUERY_PARAM"
    assert exc.value.status == 400


@pytest.mark.parametrize(
    "sort,expected",
    [
        (None, ("created_col", True)),
        ("totalAmount,asc", ("total_col", False)),
        ("totalAmount,DESC", ("total_col", True)),
        ("totalAmount", ("total_col", False)),
    ],
)
def test_parse_sort(sort, expected):
    assert parse_sort(sort, ALLOWED, default="createdAt") == expected


def test_parse_sort_rejects_unknown_field():
    with pytest.raises(ApiError) as exc:
        parse_sort("password,asc", ALLOWED, default="createdAt")
    assert exc.value.details["allowed"] == ["createdAt", "totalAmount"]


def test_build_page():
    page = build_page(["a", "b"], 5, PageParams(page=2, size=2, sort="createdAt,desc"))

    assert page == {
        "content": ["a", "b"],
        "page": 2,
        "size": 2,
        "totalElements": 5,
        "totalPages": 3,
        "sort": "createdAt,desc",
    }


def test_build_page_empty():
    assert build_page([], 0, PageParams(page=1, size=20))["totalPages"] == 0
