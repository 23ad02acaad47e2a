"""Models for captured HTTP exchanges."""

from collections.abc import Mapping

from pydantic import BaseModel, Field


def find_header(headers: Mapping[str, str], name: str) -> str | None:
    """Look up a header case-insensitively."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class CapturedRequest(BaseModel):
    """Request as sent by the HTTP client."""

    method: str = Field(default="GET", description="Upper-case HTTP method")
    url: str = Field(..., description="Absolute request URL")
    headers: dict[str, str] = Field(default_factory=dict)
    body: object = Field(default=None, description="Request payload")

    def header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        return find_header(self.headers, name)


class CapturedResponse(BaseModel):
    """Response as received by the HTTP client."""

    status: int = Field(..., description="HTTP status code")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers; repeated headers are joined with ', '",
    )
    set_cookies: list[str] = Field(
        default_factory=list, description="Every Set-Cookie value, in order"
    )
    body: object = Field(default=None, description="Decoded JSON or text body")
    response_time: float = Field(default=0.0, description="Round trip in seconds")

    def header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        return find_header(self.headers, name)

    def cookies(self) -> list[str]:
        """Set-Cookie values, falling back to the joined header."""
        if self.set_cookies:
            return list(self.set_cookies)
        value = self.header("Set-Cookie")
        return [value] if value else []


class Exchange(BaseModel):
    """A request paired with the response it produced."""

    request: CapturedRequest
    response: CapturedResponse
