"""IntakeSession against a fake intake service (httpx.MockTransport)."""

import asyncio
import json

import httpx
import pytest

from predintake.intake.client import IntakeClient
from predintake.intake.errors import IntakeAPIError, IntakeBusyError
from predintake.intake.session import IntakeSession


def market_row(pid, status="unmapped", outcomes=("Yes", "No")):
    return {
        "polymarketId": pid,
        "title": f"Market {pid}",
        "outcomes": [{"name": n, "probability": 0.5} for n in outcomes],
        "tokens": [{"tokenId": f"{pid}-{n.lower()}", "outcome": n} for n in outcomes],
        "status": status,
    }


class FakeIntakeService:
    """In-memory intake endpoints; ids in `fail_ids` / `reject_fail_ids` answer approve / reject with HTTP 500."""

    def __init__(self, rows, fail_ids=(), reject_fail_ids=()):
        self.rows = {r["polymarketId"]: dict(r) for r in rows}
        self.order = [r["polymarketId"] for r in rows]
        self.fail_ids = set(fail_ids)
        self.reject_fail_ids = set(reject_fail_ids)
        self.approve_calls = []
        self.reject_calls = []
        self.list_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/api/polymarket/intake":
            self.list_calls += 1
            return httpx.Response(200, json=[self.rows[pid] for pid in self.order])
        body = json.loads(request.content)
        if path.endswith("/approve"):
            self.approve_calls.append(body)
            if body["polymarketId"] in self.fail_ids:
                return httpx.Response(500, json={"detail": "Database unavailable"})
            self.rows[body["polymarketId"]]["status"] = "approved"
            self.rows[body["polymarketId"]]["internalEventId"] = body["internalEventId"]
            return httpx.Response(200, json={"success": True, "mapping": {}})
        if path.endswith("/reject"):
            self.reject_calls.append(body)
            if body["polymarketId"] in self.reject_fail_ids:
                return httpx.Response(500, json={"detail": "Reject not recorded"})
            self.rows[body["polymarketId"]]["status"] = "rejected"
            return httpx.Response(200, json={"success": True, "mapping": {}})
        return httpx.Response(404, json={"detail": "Not found"})


def make_session(service):
    client = IntakeClient("http://intake.test", transport=httpx.MockTransport(service))
    return IntakeSession(client)


def test_reload_is_idempotent():
    service = FakeIntakeService([market_row("p1"), market_row("p2", status="approved")])
    session = make_session(service)

    async def run():
        first = [m.to_wire() for m in await session.reload()]
        second = [m.to_wire() for m in await session.reload()]
        return first, second

    first, second = asyncio.run(run())
    assert first == second
    assert [m["status"] for m in first] == ["pending", "approved"]
    assert session.error is None and session.loading is False


def test_bulk_approve_partial_failure():
    ids = ["p1", "p2", "p3", "p4", "p5"]
    service = FakeIntakeService([market_row(pid) for pid in ids], fail_ids={"p2", "p4"})
    session = make_session(service)
    progress = []

    async def run():
        await session.reload()
        session.select_all()
        list_calls_before = service.list_calls
        result = await session.bulk_approve(on_progress=lambda i, n: progress.append((i, n)))
        return result, service.list_calls - list_calls_before

    result, reloads = asyncio.run(run())
    assert [c["polymarketId"] for c in service.approve_calls] == ids
    assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]
    assert result.total == 5
    assert result.success_count == 3
    assert [f.polymarket_id for f in result.failures] == ["p2", "p4"]
    assert result.failures[0].error == "Database unavailable"
    assert result.summary == "Bulk approve: 3/5 succeeded"
    assert session.message == "Bulk approve: 3/5 succeeded"
    assert reloads == 1
    assert session.selected == set()
    assert session.bulk_approving is False and session.progress is None
    assert [m.status.value for m in session.items] == ["approved", "pending", "approved", "pending", "approved"]


def test_bulk_approve_all_succeed_has_no_summary():
    service = FakeIntakeService([market_row("p1"), market_row("p2")])
    session = make_session(service)

    async def run():
        await session.reload()
        session.select_all()
        return await session.bulk_approve()

    result = asyncio.run(run())
    assert result.success_count == 2
    assert result.summary is None
    assert session.message is None


def test_bulk_approve_awaits_async_progress_callback():
    service = FakeIntakeService([market_row("p1"), market_row("p2")])
    session = make_session(service)
    seen = []

    async def on_progress(i, n):
        seen.append((i, n, session.bulk_approving))

    async def run():
        await session.reload()
        session.select_all()
        await session.bulk_approve(on_progress=on_progress)

    asyncio.run(run())
    assert seen == [(1, 2, True), (2, 2, True)]


def test_processed_items_are_never_selectable():
    service = FakeIntakeService(
        [market_row("p1"), market_row("p2", status="approved"), market_row("p3", status="rejected")]
    )
    session = make_session(service)
    asyncio.run(session.reload())

    session.select_all()
    assert session.selected == {"p1"}
    assert session.toggle_selected("p2") is False
    assert session.toggle_selected("p3") is False
    assert session.toggle_selected("p1") is False
    assert session.selected == set()


def test_selection_drops_items_processed_elsewhere():
    service = FakeIntakeService([market_row("p1"), market_row("p2")])
    session = make_session(service)

    async def run():
        await session.reload()
        session.select_all()
        service.rows["p2"]["status"] = "approved"
        await session.reload()

    asyncio.run(run())
    assert session.selected == {"p1"}


def test_approve_success_reloads_and_returns_mapping():
    service = FakeIntakeService([market_row("p1", outcomes=("No", "Yes"))])
    session = make_session(service)

    async def run():
        await session.reload()
        return await session.approve("p1")

    mapping = asyncio.run(run())
    assert mapping is not None and mapping.warnings == []
    sent = service.approve_calls[0]
    assert sent["marketType"] == "BINARY"
    assert sent["polymarketTokenId"] == "p1-no"
    assert [o["polymarketTokenId"] for o in sent["outcomeMapping"]] == ["p1-no", "p1-yes"]
    assert session.items[0].status.value == "approved"
    assert session.in_flight == set()


def test_approve_failure_keeps_item_pending_without_reload():
    service = FakeIntakeService([market_row("p1")], fail_ids={"p1"})
    session = make_session(service)

    async def run():
        await session.reload()
        before = service.list_calls
        result = await session.approve("p1")
        return result, service.list_calls - before

    result, reloads = asyncio.run(run())
    assert result is None
    assert session.error == "Database unavailable"
    assert reloads == 0
    assert session.items[0].status.value == "pending"
    assert session.get("p1").is_selectable
    assert session.in_flight == set()


def test_reject_sends_reason():
    service = FakeIntakeService([market_row("p1")])
    session = make_session(service)

    async def run():
        await session.reload()
        return await session.reject("p1", "duplicate of internal event")

    assert asyncio.run(run()) is True
    assert service.reject_calls == [{"polymarketId": "p1", "reason": "duplicate of internal event"}]
    assert session.items[0].status.value == "rejected"


def test_reject_without_reason_omits_it():
    service = FakeIntakeService([market_row("p1")])
    session = make_session(service)

    async def run():
        await session.reload()
        return await session.reject("p1", "")

    asyncio.run(run())
    assert service.reject_calls == [{"polymarketId": "p1"}]


def test_in_flight_item_cannot_be_resubmitted():
    service = FakeIntakeService([market_row("p1")])
    session = make_session(service)
    asyncio.run(session.reload())
    session.in_flight.add("p1")

    assert session.can_act("p1") is False
    with pytest.raises(IntakeBusyError):
        asyncio.run(session.approve("p1"))
    with pytest.raises(IntakeBusyError):
        asyncio.run(session.reject("p1"))
    assert service.approve_calls == [] and service.reject_calls == []


def test_actions_blocked_while_bulk_runs():
    service = FakeIntakeService([market_row("p1")])
    session = make_session(service)
    asyncio.run(session.reload())
    session.bulk_approving = True

    with pytest.raises(IntakeBusyError):
        asyncio.run(session.bulk_approve())
    with pytest.raises(IntakeBusyError):
        asyncio.run(session.approve("p1"))


def test_list_failure_keeps_previous_items():
    service = FakeIntakeService([market_row("p1")])
    session = make_session(service)
    asyncio.run(session.reload())

    def broken(request):
        return httpx.Response(503, text="upstream down")

    session.client = IntakeClient("http://intake.test", transport=httpx.MockTransport(broken))
    asyncio.run(session.reload())
    assert session.error == "Failed to load intake data (HTTP 503)"
    assert [m.polymarket_id for m in session.items] == ["p1"]


def test_network_error_has_no_status_code():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = IntakeClient("http://intake.test", transport=httpx.MockTransport(unreachable))
    with pytest.raises(IntakeAPIError) as exc:
        asyncio.run(client.list_markets())
    assert exc.value.status_code is None


def test_reject_failure_keeps_item_pending():
    service = FakeIntakeService([market_row("p1")], reject_fail_ids={"p1"})
    session = make_session(service)

    async def run():
        await session.reload()
        before = service.list_calls
        ok = await session.reject("p1", "stale")
        return ok, service.list_calls - before

    ok, reloads = asyncio.run(run())
    assert ok is False
    assert session.error == "Reject not recorded"
    assert reloads == 0
    assert session.items[0].status.value == "pending"
    assert session.in_flight == set()


def test_reload_with_non_json_body_records_error():
    def html(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    session = IntakeSession(IntakeClient("http://intake.test", transport=httpx.MockTransport(html)))
    items = asyncio.run(session.reload())
    assert items == []
    assert session.error.startswith("Unexpected intake response")
    assert session.loading is False


def test_reload_skips_rows_that_fail_validation():
    null_token = market_row("p2")
    null_token["tokens"][0]["tokenId"] = None
    scalar = dict(market_row("p3"), marketType="SCALAR")
    service = FakeIntakeService([market_row("p1"), null_token, scalar, market_row("p4")])
    session = make_session(service)

    asyncio.run(session.reload())
    assert session.error is None
    assert [m.polymarket_id for m in session.items] == ["p1", "p4"]


def test_bad_row_after_approve_does_not_break_submission():
    service = FakeIntakeService([market_row("p1"), market_row("p2")])
    session = make_session(service)

    async def run():
        await session.reload()
        service.rows["p2"]["marketType"] = "SCALAR"
        return await session.approve("p1")

    mapping = asyncio.run(run())
    assert mapping is not None
    assert [m.polymarket_id for m in session.items] == ["p1"]
    assert session.items[0].status.value == "approved"


def test_bulk_approve_leaves_out_items_already_in_flight():
    service = FakeIntakeService([market_row("p1"), market_row("p2"), market_row("p3")])
    session = make_session(service)

    async def run():
        await session.reload()
        session.select_all()
        session.in_flight.add("p2")
        return await session.bulk_approve()

    result = asyncio.run(run())
    assert [c["polymarketId"] for c in service.approve_calls] == ["p1", "p3"]
    assert result.total == 2 and result.success_count == 2
    assert session.selected == set()
    assert session.in_flight == {"p2"}
