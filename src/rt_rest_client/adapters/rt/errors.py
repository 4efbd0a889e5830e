from __future__ import annotations

from rt_rest_client.domain.errors import RTClientError


class ClientNotOpen(RTClientError):
    """The client was used before `open()` or after `aclose()`."""


class ServerIsNotRT(RTClientError):
    """The server does not look like RT with REST 2.0 mounted at the API root."""


class InvalidCredentials(RTClientError):
    """The server rejected the configured credentials (HTTP 401)."""


class UnexpectedStatus(RTClientError):
    """An RT endpoint answered with a status the operation does not accept."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class FailedToDecodeResponse(RTClientError):
    """The response body does not match the expected record schema."""


class InvalidTicketRef(RTClientError):
    """The passed reference does not point at a ticket."""


class FailedToGetTicketInfo(UnexpectedStatus):
    """Fetching a ticket returned a non-200 status."""


class FailedToCreateTicket(UnexpectedStatus):
    """Creating a ticket returned a status other than 201."""


class FailedToUpdateTicket(UnexpectedStatus):
    """Updating a ticket returned a status other than 200 or 412."""


class PreconditionFailed(RTClientError):
    """The server rejected the ETag; the ticket changed since it was fetched (HTTP 412)."""
