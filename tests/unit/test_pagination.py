"""Unit tests for length-aware pagination."""

from __future__ import annotations

from tenant_api.core.pagination import MAX_PER_PAGE
from tenant_api.core.pagination import Page
from tenant_api.core.pagination import normalize_page_params


def test_page_positions_and_links_for_middle_page() -> None:
    page = Page(
        items=["c", "d"],
        total=5,
        page=2,
        per_page=2,
        path="http://testserver/api/v1/organizations",
        query={"per_page": 2, "page": 9},
    )

    assert page.last_page == 3
    assert page.first_item == 3
    assert page.last_item == 4
    assert page.has_more_pages is True
    assert page.url(1) == "http://testserver/api/v1/organizations?per_page=2&page=1"
    assert page.previous_page_url() == "http://testserver/api/v1/organizations?per_page=2&page=1"
    assert page.next_page_url() == "http://testserver/api/v1/organizations?per_page=2&page=3"


def test_empty_page_has_no_positions() -> None:
    page = Page(items=[], total=0, page=1, per_page=20, path="/items")

    assert page.last_page == 1
    assert page.first_item is None
    assert page.last_item is None
    assert page.has_more_pages is False
    assert page.previous_page_url() is None
    assert page.next_page_url() is None


def test_normalize_page_params_clamps_values() -> None:
    assert normalize_page_params(None, None) == (1, 20)
    assert normalize_page_params(0, 0) == (1, 20)
    assert normalize_page_params(-3, 10_000) == (1, MAX_PER_PAGE)
    assert normalize_page_params(4, 5) == (4, 5)
