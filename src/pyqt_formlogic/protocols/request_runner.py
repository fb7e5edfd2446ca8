"""HTTP request-runner protocol.

The HTTP condition resolver never talks to the network directly: it hands a
fully interpolated :class:`HttpRequest` to a runner and receives the parsed JSON
body (or an exception) back on the evaluation thread. The default runner uses
a worker thread plus httpx; tests inject a manual runner to control ordering.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol


@dataclass(frozen=True)
class HttpRequest:
    """One outbound request, after template interpolation."""
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    body: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)


class RequestHandle(Protocol):
    """Handle to an in-flight request."""

    def cancel(self) -> None:
        """Suppress callbacks for this request."""
        ...


class RequestRunner(ABC):
    """Executes HTTP requests off the evaluation thread.

    Implementations must invoke exactly one of ``on_success`` / ``on_error``
    on the evaluation thread, and neither after ``cancel()`` or ``dispose()``.
    """

    @abstractmethod
    def submit(
        self,
        request: HttpRequest,
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> RequestHandle:
        """Start ``request``; ``on_success`` receives the parsed JSON body."""
        raise NotImplementedError

    def dispose(self) -> None:
        """Cancel in-flight work and release transport resources."""


class HttpStatusError(Exception):
    """Raised by runners for non-2xx responses."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} for {url}")
