import pytest

from crawlqa.core.followup import (
    _ID_PREFIX,
    _PRIORITY,
    TEST_CASES,
    generate,
    item_id,
    make_item,
    seed_item,
)
from crawlqa.models.types import PageSnapshot, WorkKind


def snapshot(path="/", **kwargs):
    return PageSnapshot(work_item_id=item_id(WorkKind.INITIAL, path), path=path, **kwargs)


def test_seed_item():
    item = seed_item()
    assert item.id == "initial-test-root"
    assert item.path == "/"
    assert item.kind is WorkKind.INITIAL
    assert item.priority == 1
    assert "route-discovery" in item.test_cases


def test_ids_are_deterministic():
    assert item_id(WorkKind.ROUTE_DISCOVERY, "/products/7") == "route-test-products-7"
    assert item_id(WorkKind.FORM_TESTING, "/") == "form-test-root"
    assert make_item(WorkKind.API_TESTING, "/cart") == make_item(WorkKind.API_TESTING, "/cart")
    assert item_id(WorkKind.FORM_TESTING, "/cart") != item_id(WorkKind.API_TESTING, "/cart")


def test_every_kind_has_test_cases():
    assert set(TEST_CASES) == set(WorkKind)
    assert all(TEST_CASES[kind] for kind in WorkKind)


def test_new_routes_only():
    items = generate(snapshot(outbound_paths=("/", "/about", "/products")), {"/", "/about"})
    assert [item.path for item in items] == ["/products"]
    route = items[0]
    assert route.kind is WorkKind.ROUTE_DISCOVERY
    assert route.priority == 2
    assert route.test_cases == (
        "page-load",
        "screenshot-capture",
        "element-discovery",
        "form-testing",
        "interaction-testing",
    )


def test_capability_items_target_current_path():
    items = generate(
        snapshot("/contact", has_form=True, has_interactive_element=True, has_api_traffic=True),
        {"/contact"},
    )
    assert [item.kind for item in items] == [
        WorkKind.FORM_TESTING,
        WorkKind.INTERACTION_TESTING,
        WorkKind.API_TESTING,
    ]
    assert all(item.path == "/contact" for item in items)
    assert all(item.priority == 3 for item in items)


def test_plain_page_yields_nothing():
    assert generate(snapshot(), {"/"}) == []


def test_generation_does_not_touch_the_ledger():
    ledger = {"/"}
    generate(snapshot(outbound_paths=("/a",)), ledger)
    assert ledger == {"/"}


@pytest.mark.parametrize("table", [_ID_PREFIX, _PRIORITY])
def test_every_kind_has_an_id_prefix_and_priority(table):
    assert set(table) == set(WorkKind)
