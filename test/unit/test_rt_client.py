from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import pytest
import respx

from rt_rest_client.adapters.rt.client import AsyncRTClient, TicketStats
from rt_rest_client.adapters.rt.errors import (
    ClientNotOpen,
    FailedToCreateTicket,
    FailedToDecodeResponse,
    FailedToGetTicketInfo,
    FailedToUpdateTicket,
    InvalidCredentials,
    InvalidTicketRef,
    PreconditionFailed,
    ServerIsNotRT,
    UnexpectedStatus,
)
from rt_rest_client.adapters.rt.models import Queue, RTObject, Ticket
from rt_rest_client.domain.auth import AuthMode
from rt_rest_client.domain.errors import (
    FailedToFetchPaginatedData,
    InvalidCredentialFormat,
    InvalidRequestTarget,
    MissingConcurrencyToken,
    NetworkRequestFailed,
    PaginationLimitExceeded,
    RTClientError,
)

from support.settings_factory import make_settings

API = "https://rt.example.com/REST/2.0"
_T = TypeVar("_T")


def _run(
    operation: Callable[[AsyncRTClient], Awaitable[_T]],
    **client_kwargs: Any,
) -> _T:
    client_kwargs.setdefault("host", "rt.example.com")
    client_kwargs.setdefault("auth_mode", AuthMode.TOKEN)
    client_kwargs.setdefault("credentials", "test-token")

    async def run() -> _T:
        async with AsyncRTClient(**client_kwargs) as client:
            return await operation(client)

    return asyncio.run(run())


def _ticket_payload(ticket_id: int = 7) -> dict[str, Any]:
    return {
        "id": ticket_id,
        "Subject": "Printer on fire",
        "Status": "open",
        "Queue": {"id": "1", "type": "queue", "_url": f"{API}/queue/1"},
        "Owner": {"id": "Nobody", "type": "user", "_url": f"{API}/user/Nobody"},
        "_hyperlinks": [
            {"ref": "self", "type": "ticket", "id": ticket_id, "_url": f"{API}/ticket/{ticket_id}"},
            {"ref": "history", "_url": f"{API}/ticket/{ticket_id}/history"},
        ],
        "UnknownField": "ignored",
    }


def _queue(with_create: bool = True) -> Queue:
    hyperlinks = [{"ref": "self", "type": "queue", "id": 1, "_url": f"{API}/queue/1"}]
    if with_create:
        hyperlinks.append({"ref": "create", "type": "ticket", "_url": f"{API}/ticket?Queue=1"})
    return Queue.model_validate({"id": 1, "Name": "General", "_hyperlinks": hyperlinks})


def _page(url: str, number: int, pages: int, items: list[Any]) -> dict[str, Any]:
    page: dict[str, Any] = {
        "page": number,
        "pages": pages,
        "per_page": 2,
        "total": 3,
        "count": len(items),
        "items": items,
    }
    if number < pages:
        page["next_page"] = f"{url}?page={number + 1}"
    if number > 1:
        page["prev_page"] = f"{url}?page={number - 1}"
    return page


def test_get_ticket_reads_etag_without_quotes() -> None:
    with respx.mock:
        route = respx.get(f"{API}/ticket/7").mock(
            return_value=httpx.Response(
                200, json=_ticket_payload(), headers={"ETag": '"1700000000"'}
            )
        )
        ticket = _run(lambda client: client.get_ticket(7))

    assert ticket.id == 7
    assert ticket.subject == "Printer on fire"
    assert ticket.queue is not None and ticket.queue.id == "1"
    assert ticket.etag == "1700000000"
    assert route.calls.last.request.headers["Authorization"] == "token test-token"
    assert route.calls.last.request.headers["User-Agent"].startswith("rt-rest-client/")


def test_get_ticket_non_200_raises() -> None:
    with respx.mock:
        respx.get(f"{API}/ticket/8").mock(return_value=httpx.Response(404, json={}))
        with pytest.raises(FailedToGetTicketInfo) as exc:
            _run(lambda client: client.get_ticket(8))
    assert exc.value.status_code == 404


def test_get_ticket_by_ref_follows_url() -> None:
    ref = RTObject.model_validate({"id": 7, "type": "ticket", "_url": f"{API}/ticket/7"})
    with respx.mock:
        respx.get(f"{API}/ticket/7").mock(return_value=httpx.Response(200, json=_ticket_payload()))
        ticket = _run(lambda client: client.get_ticket_by_ref(ref))
    assert ticket.id == 7
    assert ticket.etag is None


def test_get_ticket_by_ref_rejects_other_types() -> None:
    ref = RTObject.model_validate({"id": "1", "type": "queue", "_url": f"{API}/queue/1"})
    with pytest.raises(InvalidTicketRef):
        _run(lambda client: client.get_ticket_by_ref(ref))


def test_get_ticket_by_ref_with_malformed_url_raises_client_error() -> None:
    ref = RTObject.model_validate(
        {"id": 7, "type": "ticket", "_url": "https://rt.example.com:notaport/REST/2.0/ticket/7"}
    )
    with pytest.raises(InvalidRequestTarget) as exc:
        _run(lambda client: client.get_ticket_by_ref(ref))
    assert isinstance(exc.value, RTClientError)


def test_basic_auth_header_is_sent() -> None:
    with respx.mock:
        route = respx.get(f"{API}/ticket/7").mock(
            return_value=httpx.Response(200, json=_ticket_payload())
        )
        _run(
            lambda client: client.get_ticket(7),
            auth_mode=AuthMode.BASIC,
            credentials="root:password",
        )
    assert route.calls.last.request.headers["Authorization"] == "Basic cm9vdDpwYXNzd29yZA=="


def test_invalid_basic_credentials_fail_before_any_request() -> None:
    with respx.mock:
        route = respx.get(f"{API}/ticket/7").mock(return_value=httpx.Response(200))
        with pytest.raises(InvalidCredentialFormat):
            _run(
                lambda client: client.get_ticket(7),
                auth_mode=AuthMode.BASIC,
                credentials="root",
            )
        assert not route.called


def test_create_ticket_posts_json_to_create_link() -> None:
    with respx.mock:
        route = respx.post(f"{API}/ticket", params={"Queue": "1"}).mock(
            return_value=httpx.Response(
                201, json={"id": "12", "type": "ticket", "_url": f"{API}/ticket/12"}
            )
        )
        created = _run(lambda client: client.create_ticket(_queue(), {"Subject": "Hello"}))

    assert created is not None
    assert created.id == "12"
    assert created.type == "ticket"
    sent = route.calls.last.request
    assert sent.headers["Content-Type"] == "application/json"
    assert json.loads(sent.content) == {"Subject": "Hello"}


def test_create_ticket_without_create_link_returns_none() -> None:
    result = _run(lambda client: client.create_ticket(_queue(with_create=False), {}))
    assert result is None


def test_create_ticket_failure_raises() -> None:
    with respx.mock:
        respx.post(f"{API}/ticket", params={"Queue": "1"}).mock(
            return_value=httpx.Response(400, json={"message": "Bad Request"})
        )
        with pytest.raises(FailedToCreateTicket) as exc:
            _run(lambda client: client.create_ticket(_queue(), {"Subject": "Hello"}))
    assert exc.value.status_code == 400


def _fetched_ticket(etag: str | None = "v1") -> Ticket:
    return Ticket.model_validate(_ticket_payload()).model_copy(update={"etag": etag})


def test_update_ticket_sends_if_match() -> None:
    with respx.mock:
        route = respx.put(f"{API}/ticket/7").mock(
            return_value=httpx.Response(200, json=["Ticket 7: Status changed from 'open' to 'resolved'"])
        )
        messages = _run(lambda client: client.update_ticket(_fetched_ticket(), {"Status": "resolved"}))

    assert messages == ["Ticket 7: Status changed from 'open' to 'resolved'"]
    sent = route.calls.last.request
    assert sent.headers["If-Match"] == "v1"
    assert json.loads(sent.content) == {"Status": "resolved"}


def test_update_ticket_without_etag_is_rejected_locally() -> None:
    with respx.mock:
        route = respx.put(f"{API}/ticket/7").mock(return_value=httpx.Response(200, json=[]))
        with pytest.raises(MissingConcurrencyToken):
            _run(lambda client: client.update_ticket(_fetched_ticket(None), {"Status": "open"}))
        assert not route.called


def test_update_ticket_412_raises_precondition_failed() -> None:
    with respx.mock:
        respx.put(f"{API}/ticket/7").mock(return_value=httpx.Response(412))
        with pytest.raises(PreconditionFailed):
            _run(lambda client: client.update_ticket(_fetched_ticket(), {"Status": "open"}))


def test_update_ticket_other_status_raises() -> None:
    with respx.mock:
        respx.put(f"{API}/ticket/7").mock(return_value=httpx.Response(403))
        with pytest.raises(FailedToUpdateTicket):
            _run(lambda client: client.update_ticket(_fetched_ticket(), {"Status": "open"}))


def test_update_ticket_unexpected_body_raises_decode_error() -> None:
    with respx.mock:
        respx.put(f"{API}/ticket/7").mock(return_value=httpx.Response(200, json={"ok": True}))
        with pytest.raises(FailedToDecodeResponse):
            _run(lambda client: client.update_ticket(_fetched_ticket(), {"Status": "open"}))


def test_get_queue_refs_walks_all_pages() -> None:
    url = f"{API}/queues/all"
    refs = [{"id": str(n), "type": "queue", "_url": f"{API}/queue/{n}"} for n in (1, 2, 3)]
    with respx.mock:
        first = respx.get(url, params={"fields": "Name"}).mock(
            return_value=httpx.Response(200, json=_page(url, 1, 2, refs[:2]))
        )
        second = respx.get(url, params={"page": "2"}).mock(
            return_value=httpx.Response(200, json=_page(url, 2, 2, refs[2:]))
        )
        result = _run(lambda client: client.get_queue_refs())

    assert [ref.id for ref in result] == ["1", "2", "3"]
    assert first.call_count == 1
    assert second.call_count == 1
    assert second.calls.last.request.headers["Authorization"] == "token test-token"


def test_fetch_collection_fails_when_a_page_fails() -> None:
    url = f"{API}/users"
    with respx.mock:
        respx.get(url, params={"fields": "RealName,id,Name"}).mock(
            return_value=httpx.Response(200, json=_page(url, 1, 2, [{"id": 1, "Name": "root"}]))
        )
        respx.get(url, params={"page": "2"}).mock(return_value=httpx.Response(500))
        with pytest.raises(FailedToFetchPaginatedData):
            _run(lambda client: client.get_users())


def test_fetch_collection_first_page_status_is_checked() -> None:
    with respx.mock:
        respx.get(f"{API}/users").mock(return_value=httpx.Response(401))
        with pytest.raises(UnexpectedStatus):
            _run(lambda client: client.get_users())


def test_fetch_collection_respects_max_pages() -> None:
    url = f"{API}/users"
    with respx.mock:
        respx.get(url).mock(
            return_value=httpx.Response(200, json=_page(url, 1, 2, [{"id": 1, "Name": "root"}]))
        )
        with pytest.raises(PaginationLimitExceeded):
            _run(lambda client: client.get_users(), max_pages=1)


def test_get_users_decodes_records() -> None:
    url = f"{API}/users"
    with respx.mock:
        respx.get(url).mock(
            return_value=httpx.Response(
                200,
                json={
                    "page": 1,
                    "pages": 1,
                    "per_page": 20,
                    "total": 2,
                    "count": 2,
                    "items": [
                        {"id": 1, "Name": "root", "RealName": "Enoch Root"},
                        {"id": "14", "Name": "alice"},
                    ],
                },
            )
        )
        users = _run(lambda client: client.get_users())

    assert [(u.id, u.name, u.real_name) for u in users] == [
        (1, "root", "Enoch Root"),
        (14, "alice", None),
    ]


def test_get_queues_fetches_each_ref() -> None:
    refs = [
        RTObject.model_validate({"id": "1", "type": "queue", "_url": f"{API}/queue/1"}),
        RTObject.model_validate({"id": "2", "type": "queue", "_url": f"{API}/queue/2"}),
    ]
    with respx.mock:
        respx.get(f"{API}/queue/1").mock(
            return_value=httpx.Response(200, json={"id": 1, "Name": "General"})
        )
        respx.get(f"{API}/queue/2").mock(
            return_value=httpx.Response(200, json={"id": 2, "Name": "Support", "Lifecycle": "default"})
        )
        queues = _run(lambda client: client.get_queues(refs))

    assert [q.name for q in queues] == ["General", "Support"]
    assert queues[1].lifecycle == "default"


def test_get_member_ticket_stats_counts_statuses() -> None:
    records = [{"Status": s} for s in ("new", "open", "open", "stalled", "resolved")]
    with respx.mock:
        route = respx.get(f"{API}/tickets").mock(
            return_value=httpx.Response(
                200,
                json={
                    "page": 1,
                    "pages": 1,
                    "per_page": 20,
                    "total": 5,
                    "count": 5,
                    "items": records,
                },
            )
        )
        stats = _run(lambda client: client.get_member_ticket_stats(_queue()))

    assert stats == TicketStats(new=1, open=2, stalled=1)
    params = route.calls.last.request.url.params
    assert params["query"] == "Queue = 'General' AND Status = '__Active__'"
    assert params["fields"] == "Status"


def test_verify_server_success() -> None:
    with respx.mock:
        respx.get(f"{API}/rt").mock(
            side_effect=[
                httpx.Response(401),
                httpx.Response(200, json={"Version": "5.0.5", "Plugins": []}),
            ]
        )
        version = _run(lambda client: client.verify_server())
    assert version == "5.0.5"


def test_verify_server_first_request_is_anonymous() -> None:
    with respx.mock:
        route = respx.get(f"{API}/rt").mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json={"Version": "5"})]
        )
        _run(lambda client: client.verify_server())
    first, second = route.calls
    assert "Authorization" not in first.request.headers
    assert second.request.headers["Authorization"] == "token test-token"


@pytest.mark.parametrize(
    ("responses", "error"),
    [
        ([httpx.Response(200)], ServerIsNotRT),
        ([httpx.Response(401), httpx.Response(401)], InvalidCredentials),
        ([httpx.Response(401), httpx.Response(500)], ServerIsNotRT),
        ([httpx.Response(401), httpx.Response(200, json={"Plugins": []})], ServerIsNotRT),
        ([httpx.Response(401), httpx.Response(200, content=b"<html/>")], ServerIsNotRT),
    ],
)
def test_verify_server_failures(responses: list[httpx.Response], error: type[Exception]) -> None:
    with respx.mock:
        respx.get(f"{API}/rt").mock(side_effect=responses)
        with pytest.raises(error):
            _run(lambda client: client.verify_server())


def test_network_failure_is_wrapped() -> None:
    with respx.mock:
        respx.get(f"{API}/ticket/7").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(NetworkRequestFailed):
            _run(lambda client: client.get_ticket(7))


def test_request_before_open_raises() -> None:
    client = AsyncRTClient(host="rt.example.com")
    with pytest.raises(ClientNotOpen):
        asyncio.run(client.get_ticket(1))


def test_caller_owned_http_client_is_not_closed() -> None:
    async def run() -> bool:
        async with httpx.AsyncClient() as http:
            async with AsyncRTClient(host="rt.example.com", http_client=http) as client:
                await client.get_ticket(7)
            return http.is_closed

    with respx.mock:
        respx.get(f"{API}/ticket/7").mock(return_value=httpx.Response(200, json=_ticket_payload()))
        assert asyncio.run(run()) is False


@pytest.mark.parametrize("host", ["", "https://rt.example.com", "rt.example.com/rt"])
def test_host_must_be_bare(host: str) -> None:
    with pytest.raises(ValueError):
        AsyncRTClient(host=host)


def test_from_settings_uses_configured_values() -> None:
    settings = make_settings(
        host="rt.internal",
        auth_mode="basic",
        credentials="root:password",
        overrides={"rt": {"api_root": "/rt/REST/2.0/", "user_agent": "ops-bot/1.0"}},
    )
    with respx.mock:
        route = respx.get("https://rt.internal/rt/REST/2.0/ticket/7").mock(
            return_value=httpx.Response(200, json=_ticket_payload())
        )

        async def run() -> None:
            async with AsyncRTClient.from_settings(settings) as client:
                await client.get_ticket(7)

        asyncio.run(run())

    sent = route.calls.last.request
    assert sent.headers["User-Agent"] == "ops-bot/1.0"
    assert sent.headers["Authorization"] == "Basic cm9vdDpwYXNzd29yZA=="
