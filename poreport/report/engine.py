from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from pydantic import ValidationError

from poreport.config import Settings, get_settings, resolve_branding, resolve_customization
from poreport.errors import BackendUnavailableError, InvalidSummaryError
from poreport.types import Branding, Customization, Summary


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderBackend:
    name: str
    version: str
    compose: Callable[..., Any]


def load_backend() -> RenderBackend:
    """Import the PDF backend up front so a missing dependency fails before any layout work."""
    try:
        reportlab = importlib.import_module('reportlab')
        composer = importlib.import_module('poreport.report.consumption_pdf')
    except ImportError as exc:
        raise BackendUnavailableError(f'PDF rendering backend is unavailable: {exc}', cause=exc) from exc
    return RenderBackend(
        name='reportlab',
        version=str(getattr(reportlab, 'Version', '')),
        compose=composer.compose_document,
    )


def coerce_summary(value: Summary | dict[str, Any]) -> Summary:
    if isinstance(value, Summary):
        return value
    if not isinstance(value, dict):
        raise InvalidSummaryError(f'summary must be an object, got {type(value).__name__}')
    try:
        return Summary.model_validate(value)
    except ValidationError as exc:
        raise InvalidSummaryError(f'summary is structurally invalid: {exc.error_count()} error(s)', cause=exc) from exc


class ConsumptionReportEngine:
    def __init__(self, backend: RenderBackend | None = None, *, settings: Settings | None = None):
        self.backend = backend or load_backend()
        self.settings = settings or get_settings()
        logger.debug('Consumption report engine ready (backend=%s %s)', self.backend.name, self.backend.version)

    def compose(
        self,
        summary: Summary | dict[str, Any],
        branding: Branding | dict[str, Any] | None = None,
        customization: Customization | dict[str, Any] | None = None,
        *,
        generated_at: datetime | None = None,
    ):
        return self.backend.compose(
            coerce_summary(summary),
            resolve_branding(branding),
            resolve_customization(customization),
            settings=self.settings,
            generated_at=generated_at,
        )

    def render(
        self,
        summary: Summary | dict[str, Any],
        branding: Branding | dict[str, Any] | None = None,
        customization: Customization | dict[str, Any] | None = None,
        *,
        generated_at: datetime | None = None,
    ) -> bytes:
        return self.compose(summary, branding, customization, generated_at=generated_at).serialize()

    async def generate(
        self,
        summary: Summary | dict[str, Any],
        branding: Branding | dict[str, Any] | None = None,
        customization: Customization | dict[str, Any] | None = None,
        *,
        generated_at: datetime | None = None,
    ) -> bytes:
        # Layout runs to completion here; only flushing the bytes leaves the event loop.
        document = self.compose(summary, branding, customization, generated_at=generated_at)
        return await asyncio.to_thread(document.serialize)


async def generate_consumption_report(
    summary: Summary | dict[str, Any],
    branding: Branding | dict[str, Any] | None = None,
    customization: Customization | dict[str, Any] | None = None,
) -> bytes:
    return await ConsumptionReportEngine().generate(summary, branding, customization)
