from __future__ import annotations


class RTClientError(Exception):
    """Base class for every error raised by the RT client."""


class InvalidCredentialFormat(RTClientError):
    """Basic credentials are not in the `username:password` format."""


class MissingConcurrencyToken(RTClientError):
    """A PUT request was described without an ETag."""


class MissingContentType(RTClientError):
    """A request body was supplied without a content type."""


class UnexpectedRequestBody(RTClientError):
    """A body was attached to a method that does not send one."""


class InvalidRequestTarget(RTClientError):
    """The request target does not form a valid URL (e.g. a malformed server hyperlink)."""


class NetworkRequestFailed(RTClientError):
    """The transport failed to deliver the request or receive a response."""

    def __init__(self, message: str, *, method: str, url: str) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class InvalidFirstPage(RTClientError):
    """Aggregation was started from a page other than a well-formed first page."""


class FailedToFetchPaginatedData(RTClientError):
    """A follow-up page request returned a non-200 status."""

    def __init__(self, message: str, *, url: str, status_code: int) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FailedToDecodePage(RTClientError):
    """A follow-up page body is not a valid paginated response."""


class PaginationLimitExceeded(RTClientError):
    """The server kept announcing more pages than the configured limit."""
