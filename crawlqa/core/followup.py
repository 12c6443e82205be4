"""Follow-up generation: what to test next, given what a page revealed."""

from __future__ import annotations

from collections.abc import Container

from crawlqa.models.types import PageSnapshot, WorkItem, WorkKind


SEED_PRIORITY = 1
ROUTE_PRIORITY = 2
CAPABILITY_PRIORITY = 3

TEST_CASES: dict[WorkKind, tuple[str, ...]] = {
    WorkKind.INITIAL: (
        "page-load",
        "screenshot-capture",
        "element-discovery",
        "route-discovery",
        "api-call-detection",
    ),
    WorkKind.ROUTE_DISCOVERY: (
        "page-load",
        "screenshot-capture",
        "element-discovery",
        "form-testing",
        "interaction-testing",
    ),
    WorkKind.FORM_TESTING: (
        "form-validation",
        "form-submission",
        "error-handling",
        "success-states",
    ),
    WorkKind.INTERACTION_TESTING: (
        "button-clicks",
        "navigation",
        "modal-interactions",
        "responsive-behavior",
    ),
    WorkKind.API_TESTING: (
        "api-endpoint-testing",
        "error-response-handling",
        "data-validation",
    ),
}

_ID_PREFIX: dict[WorkKind, str] = {
    WorkKind.INITIAL: "initial-test",
    WorkKind.ROUTE_DISCOVERY: "route-test",
    WorkKind.FORM_TESTING: "form-test",
    WorkKind.INTERACTION_TESTING: "interaction-test",
    WorkKind.API_TESTING: "api-test",
}

_PRIORITY: dict[WorkKind, int] = {
    WorkKind.INITIAL: SEED_PRIORITY,
    WorkKind.ROUTE_DISCOVERY: ROUTE_PRIORITY,
    WorkKind.FORM_TESTING: CAPABILITY_PRIORITY,
    WorkKind.INTERACTION_TESTING: CAPABILITY_PRIORITY,
    WorkKind.API_TESTING: CAPABILITY_PRIORITY,
}


def item_id(kind: WorkKind, path: str) -> str:
    """Deterministic id: the same path and kind always yield the same id."""
    slug = path.replace("/", "-").strip("-") or "root"
    return f"{_ID_PREFIX[kind]}-{slug}"


def make_item(kind: WorkKind, path: str) -> WorkItem:
    return WorkItem(
        id=item_id(kind, path),
        path=path,
        kind=kind,
        priority=_PRIORITY[kind],
        test_cases=TEST_CASES[kind],
    )


def seed_item(path: str = "/") -> WorkItem:
    return make_item(WorkKind.INITIAL, path)


def generate(snapshot: PageSnapshot, already_ledgered: Container[str]) -> list[WorkItem]:
    """Derive new work from a clean snapshot.

    One route-discovery item per outbound path not yet ledgered, then one
    form, interaction and API item for the snapshot's own path when the
    page showed that capability.
    """
    items = []
    for path in snapshot.outbound_paths:
        if path not in already_ledgered:
            items.append(make_item(WorkKind.ROUTE_DISCOVERY, path))

    if snapshot.has_form:
        items.append(make_item(WorkKind.FORM_TESTING, snapshot.path))
    if snapshot.has_interactive_element:
        items.append(make_item(WorkKind.INTERACTION_TESTING, snapshot.path))
    if snapshot.has_api_traffic:
        items.append(make_item(WorkKind.API_TESTING, snapshot.path))
    return items
