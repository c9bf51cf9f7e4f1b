from __future__ import annotations

from typing import Any


class ReportError(Exception):
    kind = 'report_error'

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'kind': self.kind, 'message': self.message}
        if self.cause is not None:
            payload['cause'] = f'{type(self.cause).__name__}: {self.cause}'
        return payload


class BackendUnavailableError(ReportError):
    kind = 'backend_unavailable'


class SerializationError(ReportError):
    kind = 'serialization_failed'


class InvalidSummaryError(ReportError):
    kind = 'invalid_summary'
