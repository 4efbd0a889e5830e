from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from rt_rest_client._version import __version__
from rt_rest_client.adapters.http_util import DEFAULT_TIMEOUT_SECONDS, timeouts_for
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
from rt_rest_client.adapters.rt.models import Queue, RTObject, Ticket, User
from rt_rest_client.adapters.rt.pagination import aggregate
from rt_rest_client.adapters.rt.transport import RawResponse, execute
from rt_rest_client.config.settings import Settings
from rt_rest_client.domain.auth import AuthMode
from rt_rest_client.domain.request_spec import (
    DEFAULT_API_ROOT,
    DEFAULT_SCHEME,
    AbsoluteURL,
    HostPath,
    HTTPMethod,
    RequestBody,
    RequestDescription,
    RequestSettings,
    Target,
    build_request,
)

_M = TypeVar("_M", bound=BaseModel)

log = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = f"rt-rest-client/{__version__}"

_Query = tuple[tuple[str, str | None], ...]


@dataclass(frozen=True, slots=True)
class TicketStats:
    new: int = 0
    open: int = 0
    stalled: int = 0


class AsyncRTClient:
    """
    Async client for the RT REST 2.0 API.

    The underlying `httpx.AsyncClient` is created by `open()` and closed by `aclose()`
    unless one is passed in, in which case its lifecycle stays with the caller.
    Requests are issued one at a time; there are no retries.
    """

    def __init__(
        self,
        *,
        host: str,
        auth_mode: AuthMode = AuthMode.TOKEN,
        credentials: str = "",
        scheme: str = DEFAULT_SCHEME,
        api_root: str = DEFAULT_API_ROOT,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        verify_tls: bool = True,
        trust_env: bool = False,
        max_pages: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not host or "/" in host:
            raise ValueError("host must be a bare hostname, e.g. rt.example.com")
        if scheme not in {"http", "https"}:
            raise ValueError("scheme must be 'http' or 'https'")

        self._host = host
        self._auth_mode = auth_mode
        self._credentials = credentials
        self._request_settings = RequestSettings(
            scheme=scheme, api_root=api_root, user_agent=user_agent
        )
        self._timeout_seconds = timeout_seconds
        self._verify_tls = verify_tls
        self._trust_env = trust_env
        self._max_pages = max_pages

        self._owns_http_client = http_client is None
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> AsyncRTClient:
        rt = settings.rt
        return cls(
            host=rt.host,
            auth_mode=rt.auth_mode,
            credentials=rt.credentials.get_secret_value(),
            scheme=rt.scheme,
            api_root=rt.api_root,
            user_agent=rt.user_agent or DEFAULT_USER_AGENT,
            timeout_seconds=rt.timeout_seconds,
            verify_tls=rt.verify_tls,
            trust_env=settings.hardening.transport.trust_env,
            max_pages=rt.max_pages,
        )

    async def open(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            timeout=timeouts_for(self._timeout_seconds),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
            verify=self._verify_tls,
            trust_env=self._trust_env,
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        if self._owns_http_client and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> AsyncRTClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: Any,
    ) -> None:
        await self.aclose()

    # -- core -------------------------------------------------------------

    def describe(
        self,
        target: Target | str,
        *,
        method: HTTPMethod = HTTPMethod.GET,
        body: RequestBody | None = None,
        etag: str | None = None,
        query: _Query = (),
        authenticated: bool = True,
    ) -> RequestDescription:
        """Describe a request carrying this client's authentication.

        A plain string target is a path below the API root of the configured host.
        """
        if isinstance(target, str):
            target = HostPath(self._host, target)
        return RequestDescription(
            target=target,
            method=method,
            auth_mode=self._auth_mode if authenticated else AuthMode.NONE,
            credential=self._credentials if authenticated else "",
            body=body,
            etag=etag,
            query=query,
        )

    async def request(self, description: RequestDescription) -> RawResponse:
        if self._http is None:
            raise ClientNotOpen("Call open() (or use `async with`) before issuing requests")
        finalized = build_request(description, self._request_settings)
        return await execute(finalized, self._http, timeout_seconds=self._timeout_seconds)

    async def _fetch_page(self, url: str) -> RawResponse:
        return await self.request(self.describe(AbsoluteURL(url)))

    async def get_json(self, target: Target | str, *, query: _Query = ()) -> Any:
        response = await self.request(self.describe(target, query=query))
        if response.status_code != 200:
            raise UnexpectedStatus(
                f"RT answered status={response.status_code} at {response.url}",
                status_code=response.status_code,
            )
        return _json_body(response)

    async def fetch_collection(self, path: str, *, query: _Query = ()) -> list[Any]:
        """Fetch a paginated collection and return the items of every page in order."""
        first_page = await self.get_json(path, query=query)
        return await aggregate(first_page, self._fetch_page, max_pages=self._max_pages)

    # -- server -----------------------------------------------------------

    async def verify_server(self) -> str:
        """
        Check that the host runs RT with REST 2.0 and that the credentials are accepted.

        Returns the RT version reported by the server.
        """
        anonymous = await self.request(self.describe("/rt", authenticated=False))
        if anonymous.status_code != 401:
            raise ServerIsNotRT(
                f"Expected 401 for an anonymous request to {anonymous.url}, "
                f"got {anonymous.status_code}"
            )

        response = await self.request(self.describe("/rt"))
        if response.status_code == 401:
            raise InvalidCredentials("The provided credentials were not accepted by the server")
        if response.status_code != 200:
            raise ServerIsNotRT(f"Unexpected status={response.status_code} at {response.url}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServerIsNotRT(f"Response from {response.url} is not JSON") from exc
        if not isinstance(payload, dict) or "Version" not in payload:
            raise ServerIsNotRT(f"Response from {response.url} does not report an RT version")

        version = str(payload["Version"])
        log.info("rt.server.verified", host=self._host, version=version)
        return version

    # -- tickets ----------------------------------------------------------

    async def get_ticket(self, ticket_id: int) -> Ticket:
        return await self._get_ticket(HostPath(self._host, f"/ticket/{ticket_id}"))

    async def get_ticket_by_ref(self, ref: RTObject) -> Ticket:
        if ref.type != "ticket":
            raise InvalidTicketRef(f"Reference of type {ref.type!r} is not a ticket")
        return await self._get_ticket(AbsoluteURL(ref.url))

    async def _get_ticket(self, target: Target) -> Ticket:
        response = await self.request(self.describe(target))
        if response.status_code != 200:
            raise FailedToGetTicketInfo(
                f"Fetching ticket failed (status={response.status_code}) at {response.url}",
                status_code=response.status_code,
            )
        ticket = _decode(Ticket, _json_body(response))
        return ticket.model_copy(update={"etag": response.etag})

    async def create_ticket(self, queue: Queue, fields: Mapping[str, Any]) -> RTObject | None:
        """Create a ticket in `queue`; returns None when the queue offers no create link."""
        link = queue.link("create")
        if link is None:
            log.info("rt.ticket.create_unavailable", queue=queue.name)
            return None

        response = await self.request(
            self.describe(
                AbsoluteURL(link.url),
                method=HTTPMethod.POST,
                body=_json_request_body(fields),
            )
        )
        if response.status_code != 201:
            log.warning(
                "rt.ticket.create_failed",
                queue=queue.name,
                status=response.status_code,
                body=_body_preview(response),
            )
            raise FailedToCreateTicket(
                f"Creating ticket in queue {queue.name!r} failed "
                f"(status={response.status_code})",
                status_code=response.status_code,
            )
        return _decode(RTObject, _json_body(response))

    async def update_ticket(self, ticket: Ticket, fields: Mapping[str, Any]) -> list[str] | None:
        """
        Update `ticket` guarded by its ETag; returns the server's change messages.

        Returns None when the ticket carries no self link.
        """
        link = ticket.link("self")
        if link is None:
            log.info("rt.ticket.update_unavailable", ticket_id=ticket.id)
            return None

        response = await self.request(
            self.describe(
                AbsoluteURL(link.url),
                method=HTTPMethod.PUT,
                body=_json_request_body(fields),
                etag=ticket.etag,
            )
        )
        if response.status_code == 412:
            raise PreconditionFailed(
                f"Ticket {ticket.id} was modified since it was fetched (ETag mismatch)"
            )
        if response.status_code != 200:
            log.warning(
                "rt.ticket.update_failed",
                ticket_id=ticket.id,
                status=response.status_code,
                body=_body_preview(response),
            )
            raise FailedToUpdateTicket(
                f"Updating ticket {ticket.id} failed (status={response.status_code})",
                status_code=response.status_code,
            )

        try:
            return TypeAdapter(list[str]).validate_python(_json_body(response))
        except ValidationError as exc:
            raise FailedToDecodeResponse(
                f"RT update response format unexpected for ticket {ticket.id}: {exc!s}"
            ) from exc

    async def search_tickets(
        self, query: str, *, fields: Sequence[str] = ("Status",)
    ) -> list[dict[str, Any]]:
        """Run a TicketSQL search and return every matching record across all pages."""
        items = await self.fetch_collection(
            "/tickets",
            query=(("query", query), ("fields", ",".join(fields))),
        )
        try:
            return TypeAdapter(list[dict[str, Any]]).validate_python(items)
        except ValidationError as exc:
            raise FailedToDecodeResponse(f"RT search results are not records: {exc!s}") from exc

    # -- queues -----------------------------------------------------------

    async def get_queue_refs(self) -> list[RTObject]:
        items = await self.fetch_collection("/queues/all", query=(("fields", "Name"),))
        return [_decode(RTObject, item) for item in items]

    async def get_queues(self, refs: Iterable[RTObject]) -> list[Queue]:
        queues: list[Queue] = []
        for ref in refs:
            queues.append(_decode(Queue, await self.get_json(AbsoluteURL(ref.url))))
        return queues

    async def get_member_ticket_stats(self, queue: Queue) -> TicketStats:
        """Count the active tickets of `queue` by status."""
        name = queue.name.replace("'", "\\'")
        records = await self.search_tickets(
            f"Queue = '{name}' AND Status = '__Active__'", fields=("Status",)
        )
        counts = {"new": 0, "open": 0, "stalled": 0}
        for record in records:
            status = record.get("Status")
            if status in counts:
                counts[status] += 1
        return TicketStats(**counts)

    # -- users ------------------------------------------------------------

    async def get_users(self) -> list[User]:
        items = await self.fetch_collection("/users", query=(("fields", "RealName,id,Name"),))
        return [_decode(User, item) for item in items]


def _json_request_body(fields: Mapping[str, Any]) -> RequestBody:
    return RequestBody(
        content=json.dumps(dict(fields)).encode("utf-8"),
        content_type="application/json",
    )


def _json_body(response: RawResponse) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise FailedToDecodeResponse(
            f"Invalid JSON from RT (status={response.status_code}) at {response.url}"
        ) from exc


def _decode(model: type[_M], data: Any) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise FailedToDecodeResponse(
            f"RT response does not match {model.__name__}: {exc!s}"
        ) from exc


def _body_preview(response: RawResponse, limit: int = 512) -> str:
    return response.content[:limit].decode("utf-8", errors="replace")
