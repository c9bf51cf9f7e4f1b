from __future__ import annotations

import io

from pypdf import PdfReader

from poreport.config import get_settings, resolve_branding
from poreport.report.consumption_pdf import (
    _step_combined_bar,
    _step_filter_statement,
    _step_footer,
    _step_header,
    _step_item_table,
    _step_movements,
    _step_totals_table,
    build_consumption_report_pdf,
    compose_document,
    composition_steps,
)
from poreport.types import Customization, Summary

from conftest import GENERATED_AT, pdf_pages, pdf_text


ALL_OFF = Customization.model_validate(
    {
        'includeSummary': False,
        'includeDetail': False,
        'includeCharts': False,
        'includeMovements': False,
        'includeObservations': False,
        'includeUniverse': False,
    }
)


def _render(payload, customization=None, branding=None) -> bytes:
    return build_consumption_report_pdf(
        Summary.model_validate(payload),
        resolve_branding(branding),
        customization or Customization(),
        generated_at=GENERATED_AT,
    )


def test_selection_report_contains_every_section(selection_payload):
    pdf = _render(selection_payload)
    text = pdf_text(pdf)

    assert pdf.startswith(b'%PDF')
    assert 'Reporte de seguimiento PO' in text
    assert 'Empresa: Empresa 07' in text
    assert 'Consumo global' in text
    assert 'Totales' in text
    assert 'Detalle por PO' in text
    assert 'Observaciones' in text
    assert 'Revisar saldo con compras antes del cierre.' in text
    assert 'Movimientos' in text
    assert 'Subtotal:' in text
    assert 'Fin del reporte' in text
    assert 'Filtro aplicado' not in text


def test_universe_report_has_filter_statement_and_no_movements(universe_payload):
    text = pdf_text(_render(universe_payload))

    assert 'Reporte de universo de PO' in text
    assert 'Filtro aplicado: Todas las PO abiertas de 2024' in text
    assert 'Movimientos' not in text


def test_universe_filter_statement_follows_switch(universe_payload):
    text = pdf_text(_render(universe_payload, Customization(include_universe=False)))
    assert 'Filtro aplicado' not in text


def test_disabled_charts_skip_every_bar(selection_payload):
    text = pdf_text(_render(selection_payload, Customization(include_charts=False)))
    assert 'Consumo global' not in text
    assert 'Remisiones: ' not in text


def test_empty_observations_show_placeholder(quiet_payload):
    text = pdf_text(_render(quiet_payload))
    assert 'Sin observaciones registradas.' in text


def test_observations_include_alerts_and_movement_notes(selection_payload):
    text = pdf_text(_render(selection_payload))
    assert 'ha alcanzado el' in text
    assert 'Entrega parcial' in text


def test_over_consumed_group_gets_excedente_row():
    payload = {
        'companyName': 'Constructora Norte',
        'items': [{'id': '100-2', 'total': 1000, 'totalRem': 300, 'totalFac': 800}],
    }
    text = pdf_text(_render(payload))
    assert 'Excedente' in text
    assert '$100.00' in text


def test_all_switches_off_leaves_core_steps():
    universe = Summary.model_validate({'universe': {'isUniverse': True}})
    selection = Summary.model_validate({})

    expected = [_step_header, _step_totals_table, _step_item_table, _step_footer]
    assert composition_steps(universe, ALL_OFF) == expected
    assert composition_steps(selection, ALL_OFF) == expected


def test_step_order_per_mode():
    universe = composition_steps(Summary.model_validate({'universe': {'isUniverse': True}}), Customization())
    selection = composition_steps(Summary.model_validate({}), Customization())

    assert universe.index(_step_filter_statement) < universe.index(_step_combined_bar)
    assert _step_movements not in universe
    assert _step_filter_statement not in selection
    assert selection[-2:] == [_step_movements, _step_footer]


def test_many_movements_span_several_pages(many_movements_payload):
    document = compose_document(
        Summary.model_validate(many_movements_payload),
        resolve_branding(),
        Customization(),
        generated_at=GENERATED_AT,
    )
    pdf = document.serialize()
    text = pdf_text(pdf)

    assert document.page_count >= 2
    assert pdf_pages(pdf) == document.page_count
    assert 'siguiente p' in text
    assert 'Sin registros en este bloque' in text
    assert 'Página 2' in text or 'gina 2' in text


def test_branding_texts_reach_page_chrome(quiet_payload):
    text = pdf_text(_render(quiet_payload, branding={'headerText': 'Compras Norte', 'footerText': 'Uso interno'}))
    assert 'Compras Norte' in text
    assert 'Uso interno' in text


def test_missing_letterhead_is_skipped(quiet_payload, tmp_path, caplog):
    branding = {'letterheadTop': str(tmp_path / 'missing.png')}
    pdf = _render(quiet_payload, branding=branding)
    assert pdf_pages(pdf) >= 1
    assert 'Letterhead image not found' in caplog.text


def test_default_branding_comes_from_settings(quiet_payload):
    pdf = build_consumption_report_pdf(Summary.model_validate(quiet_payload), generated_at=GENERATED_AT)
    assert get_settings().brand_header_text.startswith('Reporte de consumo de')
    assert 'Reporte de consumo de' in pdf_text(pdf)


def test_movements_title_shares_page_with_first_chunk(many_movements_payload):
    pdf = _render(many_movements_payload, customization=Customization(include_detail=False))
    pages = [page.extract_text() or '' for page in PdfReader(io.BytesIO(pdf)).pages]

    title_page = next(index for index, text in enumerate(pages) if 'Movimientos' in text)
    first_chunk_page = next(index for index, text in enumerate(pages) if 'Remisiones (1/' in text)

    assert title_page == first_chunk_page


def test_header_subtitle_reaches_page_chrome(quiet_payload):
    text = pdf_text(_render(quiet_payload, branding={'headerTitle': 'Compras', 'headerSubtitle': 'Sucursal Oriente'}))
    assert 'Compras' in text
    assert 'Sucursal Oriente' in text


def test_disabled_letterhead_is_not_loaded(quiet_payload, tmp_path, caplog):
    branding = {'letterheadTop': str(tmp_path / 'missing.png'), 'letterheadEnabled': False}
    pdf = _render(quiet_payload, branding=branding)
    assert pdf_pages(pdf) >= 1
    assert 'Letterhead image not found' not in caplog.text
