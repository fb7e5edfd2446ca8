"""Default request runner: httpx on a QThread per request."""

import logging
from typing import Any, Callable, Optional

import httpx

from pyqt_formlogic.core.background_task import BackgroundTask, BackgroundTaskManager
from pyqt_formlogic.protocols.form_config import get_form_logic_config
from pyqt_formlogic.protocols.request_runner import HttpRequest, HttpStatusError, RequestRunner

logger = logging.getLogger(__name__)


class ThreadedRequestRunner(RequestRunner):
    """
    Runs each request with a shared ``httpx.Client`` on a BackgroundTask.

    Callbacks arrive on the evaluation thread through the task's signals.

    Args:
        client: Preconfigured client (tests pass one with ``httpx.MockTransport``)
        timeout_s: Used when creating the default client
    """

    def __init__(self, client: Optional[httpx.Client] = None, timeout_s: Optional[float] = None):
        if timeout_s is None:
            timeout_s = get_form_logic_config().http_timeout_s
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_s)
        self._tasks = BackgroundTaskManager()

    def _execute(self, request: HttpRequest) -> Any:
        """Worker-thread body: perform the request and parse JSON."""
        try:
            response = self._client.request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                params=request.params,
                json=request.body if request.method != "GET" else None,
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise HttpStatusError(e.response.status_code, str(e.request.url)) from e

    def submit(
        self,
        request: HttpRequest,
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> BackgroundTask:
        logger.debug(f"Submitting {request.method} {request.url}")
        return self._tasks.run(
            target=self._execute,
            args=(request,),
            on_success=on_success,
            on_error=on_error,
        )

    def dispose(self) -> None:
        self._tasks.cleanup()
        if self._owns_client:
            self._client.close()
