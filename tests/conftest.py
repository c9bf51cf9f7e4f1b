from __future__ import annotations

import io
from datetime import datetime
from typing import Any, Callable

import pytest
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen.canvas import Canvas

from poreport.config import get_settings
from poreport.report.flow import FlowContext, PageBounds, ReportFonts


GENERATED_AT = datetime(2024, 5, 17, 9, 30)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv('POREPORT_OUTPUT_DIR', str(tmp_path / 'reports'))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fonts() -> ReportFonts:
    return ReportFonts(body='Helvetica', bold='Helvetica-Bold', body_size=9.0, small_size=7.5, title_size=16.0)


@pytest.fixture
def make_flow(fonts) -> Callable[..., FlowContext]:
    """Flow over an in-memory canvas whose content area is ``height`` points tall."""

    def factory(height: float = 600.0, *, top: float = 50.0) -> FlowContext:
        canvas = Canvas(io.BytesIO(), pagesize=letter)
        bounds = PageBounds(left=40.0, top=top, right=letter[0] - 40.0, bottom=top + height)
        return FlowContext(canvas, page_size=letter, bounds=bounds, fonts=fonts)

    return factory


def pdf_text(pdf_bytes: bytes) -> str:
    reader = PdfReader(io.BytesIO(pdf_bytes))
    return '\n'.join(page.extract_text() or '' for page in reader.pages)


def pdf_pages(pdf_bytes: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf_bytes)).pages)


def _movement(folio: str, monto: float, fecha: str, observaciones: str | None = None) -> dict[str, Any]:
    row: dict[str, Any] = {'id': folio, 'monto': monto, 'fecha': fecha}
    if observaciones:
        row['observaciones'] = observaciones
    return row


@pytest.fixture
def selection_payload() -> dict[str, Any]:
    return {
        'empresa': 'empresa07',
        'selectedIds': ['100', '100-1', '200'],
        'observations': ['Revisar saldo con compras antes del cierre.'],
        'items': [
            {
                'id': '100',
                'fecha': '2024-01-10',
                'total': 10000,
                'remisiones': [
                    _movement('R-1', 2500, '2024-02-01'),
                    _movement('R-2', 1500, '2024-02-15', 'Entrega parcial'),
                ],
                'facturas': [_movement('F-1', 1000, '2024-03-01')],
            },
            {
                'id': '100-1',
                'fecha': '2024-02-20',
                'total': '5,000.00',
                'remisiones': [_movement('R-3', 5000, '2024-03-05')],
                'facturas': [_movement('F-2', 1200, '2024-03-10')],
            },
            {
                'id': '200',
                'fecha': '2024-03-01',
                'total': 8000,
                'remisiones': [_movement('R-4', 400, '2024-03-12')],
                'facturas': [],
            },
        ],
    }


@pytest.fixture
def universe_payload(selection_payload) -> dict[str, Any]:
    payload = dict(selection_payload)
    payload.pop('selectedIds')
    payload['universe'] = {
        'isUniverse': True,
        'label': 'Todas las PO abiertas de 2024',
        'description': 'Órdenes con fecha entre enero y marzo.',
    }
    return payload


@pytest.fixture
def quiet_payload() -> dict[str, Any]:
    """Low consumption, no notes: nothing produces an observation or alert."""
    return {
        'companyName': 'Constructora Norte',
        'selectedIds': ['300'],
        'items': [
            {
                'id': '300',
                'fecha': '2024-04-01',
                'total': 10000,
                'remisiones': [_movement('R-9', 100, '2024-04-02')],
                'facturas': [],
            }
        ],
    }


@pytest.fixture
def many_movements_payload() -> dict[str, Any]:
    remisiones = [_movement(f'R-{i:03d}', 100 + i, '2024-05-01') for i in range(90)]
    facturas = [_movement(f'F-{i:03d}', 50 + i, '2024-05-02') for i in range(10)]
    return {
        'companyName': 'Constructora Norte',
        'selectedIds': ['900'],
        'items': [{'id': '900', 'fecha': '2024-05-01', 'total': 100000, 'remisiones': remisiones, 'facturas': facturas}],
    }
