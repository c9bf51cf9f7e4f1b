from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from poreport.errors import BackendUnavailableError, InvalidSummaryError, SerializationError
from poreport.report import engine as engine_module
from poreport.report.engine import ConsumptionReportEngine, generate_consumption_report, load_backend

from conftest import GENERATED_AT, pdf_pages, pdf_text


def test_load_backend_reports_reportlab():
    backend = load_backend()
    assert backend.name == 'reportlab'
    assert callable(backend.compose)


def test_missing_backend_fails_before_layout(monkeypatch):
    def missing(name):
        raise ImportError(f'No module named {name!r}')

    monkeypatch.setattr(engine_module, 'importlib', SimpleNamespace(import_module=missing))

    with pytest.raises(BackendUnavailableError) as info:
        ConsumptionReportEngine()

    assert info.value.kind == 'backend_unavailable'
    assert isinstance(info.value.cause, ImportError)
    assert info.value.to_payload()['kind'] == 'backend_unavailable'


def test_render_accepts_raw_payloads(selection_payload):
    pdf = ConsumptionReportEngine().render(
        selection_payload,
        {'colors': {'facturas': '#7C3AED'}},
        {'includeMovements': 'false'},
        generated_at=GENERATED_AT,
    )
    assert pdf_pages(pdf) >= 1
    assert 'Movimientos' not in pdf_text(pdf)


def test_generate_awaits_serialized_bytes(selection_payload):
    pdf = asyncio.run(ConsumptionReportEngine().generate(selection_payload, generated_at=GENERATED_AT))
    assert pdf.startswith(b'%PDF')


def test_module_level_generate(quiet_payload):
    pdf = asyncio.run(generate_consumption_report(quiet_payload))
    assert pdf.startswith(b'%PDF')
    assert pdf_pages(pdf) >= 1


def test_serialization_failure_is_typed(quiet_payload, monkeypatch):
    document = ConsumptionReportEngine().compose(quiet_payload)

    def broken_save():
        raise OSError('disk full')

    monkeypatch.setattr(document.canvas, 'save', broken_save)

    with pytest.raises(SerializationError) as info:
        asyncio.run(asyncio.to_thread(document.serialize))
    assert info.value.kind == 'serialization_failed'
    assert 'disk full' in info.value.to_payload()['cause']


def test_non_object_summary_is_rejected():
    with pytest.raises(InvalidSummaryError) as info:
        ConsumptionReportEngine().render(['not', 'a', 'summary'])
    assert info.value.kind == 'invalid_summary'


def test_structurally_invalid_summary_is_rejected():
    with pytest.raises(InvalidSummaryError):
        ConsumptionReportEngine().render({'items': 'nope'})
