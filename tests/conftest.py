"""pytest configuration and fixtures for pyqt-formlogic tests."""

import pytest
from PyQt6.QtCore import QCoreApplication

from pyqt_formlogic.protocols import (
    RequestRunner,
    register_function_registry,
    set_form_logic_config,
)


@pytest.fixture(scope="session")
def qapp():
    """Create QCoreApplication instance for tests."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
    # Don't quit - may cause issues with other tests


@pytest.fixture(autouse=True)
def reset_globals():
    """Restore global configuration and function registry after each test."""
    yield
    set_form_logic_config(None)
    register_function_registry(None)


class ManualHandle:
    """One recorded request; the test decides when and how it completes."""

    def __init__(self, request, on_success, on_error):
        self.request = request
        self._on_success = on_success
        self._on_error = on_error
        self.cancelled = False
        self.done = False

    def cancel(self):
        self.cancelled = True

    def succeed(self, body):
        if self.cancelled or self.done:
            return
        self.done = True
        self._on_success(body)

    def fail(self, error=None):
        if self.cancelled or self.done:
            return
        self.done = True
        self._on_error(error or ConnectionError("connection refused"))


class ManualRequestRunner(RequestRunner):
    """Records submitted requests instead of sending them.

    ``responder`` answers synchronously inside ``submit`` when given.
    """

    def __init__(self, responder=None):
        self.calls = []
        self.responder = responder
        self.disposed = False

    def submit(self, request, on_success, on_error):
        handle = ManualHandle(request, on_success, on_error)
        self.calls.append(handle)
        if self.responder is not None:
            handle.succeed(self.responder(request))
        return handle

    @property
    def requests(self):
        return [call.request for call in self.calls]

    def pending(self):
        return [call for call in self.calls if not call.done and not call.cancelled]

    def dispose(self):
        self.disposed = True


@pytest.fixture
def manual_runner():
    """Deterministic request runner for HTTP condition tests."""
    return ManualRequestRunner()


@pytest.fixture
def runner_factory():
    """ManualRequestRunner class, for tests that need a responder."""
    return ManualRequestRunner
