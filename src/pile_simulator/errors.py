"""Error taxonomy shared by the config loaders, the pile engine and the protocol layer.

Only ``ConfigurationError`` is fatal to the process, and it is raised before
any session starts.  Everything else is local to one pile or one request.
"""

from __future__ import annotations


class PileSimulatorError(Exception):
    """Base class for every error raised by the simulator."""


class ConfigurationError(PileSimulatorError, ValueError):
    """Invalid configuration or price file (bad tariff partition, unknown zone, out-of-range value)."""


class AdmissionRejected(PileSimulatorError):
    """A charge request was refused; the queue is left unchanged."""

    def __init__(self, request_id: int, reason: str) -> None:
        super().__init__(f"request {request_id} rejected: {reason}")
        self.request_id = request_id
        self.reason = reason


class SessionNotFound(PileSimulatorError, KeyError):
    """No waiting or active session carries the given request id."""

    def __init__(self, request_id: int) -> None:
        super().__init__(request_id)
        self.request_id = request_id

    def __str__(self) -> str:
        return f"no session with id {self.request_id}"


class InvalidTransition(PileSimulatorError):
    """A state-machine transition was requested from a state that does not allow it."""


class InterruptionNotAllowed(InvalidTransition):
    """``interrupt`` was requested on a pile whose interruption option is disabled."""


class ProtocolDecodeError(PileSimulatorError, ValueError):
    """An inbound message could not be decoded into a known operation."""
