from crawlqa.core.followup import make_item
from crawlqa.models.ledger import RouteLedger, WorkQueue
from crawlqa.models.types import WorkKind


def test_ledger_add_is_set_insert():
    ledger = RouteLedger()
    assert ledger.add("/")
    assert ledger.add("/about")
    assert not ledger.add("/")
    assert len(ledger) == 2
    assert ledger.contains("/about")
    assert not ledger.contains("/contact")
    assert "/" in ledger


def test_ledger_keeps_first_seen_order():
    ledger = RouteLedger()
    for path in ("/b", "/a", "/b", "/c"):
        ledger.add(path)
    assert ledger.paths() == ["/b", "/a", "/c"]
    assert list(ledger) == ["/b", "/a", "/c"]


def test_queue_is_fifo():
    queue = WorkQueue()
    first = make_item(WorkKind.ROUTE_DISCOVERY, "/a")
    second = make_item(WorkKind.ROUTE_DISCOVERY, "/b")
    queue.push(first)
    queue.push(second)
    assert queue.pop_front() == first
    assert queue.pop_front() == second
    assert queue.pop_front() is None
    assert queue.is_empty()


def test_queue_push_front_jumps_ahead():
    queue = WorkQueue()
    pending = make_item(WorkKind.ROUTE_DISCOVERY, "/a")
    retry = make_item(WorkKind.ROUTE_DISCOVERY, "/broken")
    queue.push(pending)
    queue.push_front(retry)
    assert len(queue) == 2
    assert queue.pending() == [retry, pending]
    assert queue.pop_front() == retry


def test_queue_ignores_priority():
    queue = WorkQueue()
    low = make_item(WorkKind.FORM_TESTING, "/")
    high = make_item(WorkKind.INITIAL, "/")
    assert low.priority > high.priority
    queue.push(low)
    queue.push(high)
    assert queue.pop_front() == low
