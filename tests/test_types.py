from __future__ import annotations

from datetime import date

import pytest

from poreport.formatting import coerce_amount, company_label, format_currency, format_date, format_percent, parse_date
from poreport.types import Alert, Customization, Movement, Summary, Totals


def test_lenient_amounts():
    assert coerce_amount('$1,234.50') == 1234.5
    assert coerce_amount('abc') == 0.0
    assert coerce_amount(float('nan')) == 0.0
    assert coerce_amount(None) == 0.0


def test_currency_and_percent_formatting():
    assert format_currency(1234.5) == '$1,234.50'
    assert format_currency(-12) == '-$12.00'
    assert format_currency(-0.001) == '$0.00'
    assert format_percent(12.5) == '12.50%'


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('2024-03-05T10:00:00Z', date(2024, 3, 5)),
        ('2024-03-05 10:00:00', date(2024, 3, 5)),
        ('05/03/2024', date(2024, 3, 5)),
        (1709596800000, date(2024, 3, 5)),
        ('garbage', None),
        (None, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_format_date_blank_for_invalid():
    assert format_date('not a date') == ''
    assert format_date('2024-01-31') == '2024-01-31'


def test_totals_rederive_supplied_computed_fields():
    totals = Totals.model_validate({'total': 100, 'totalRem': 30, 'totalFac': 90, 'totalConsumo': 1, 'restante': 99})
    assert totals.total_consumo == 120
    assert totals.restante == 0
    assert totals.overage == 20


def test_movement_accepts_legacy_keys():
    movement = Movement.model_validate({'folio': ' R-7 ', 'total': '$250', 'observaciones': '  '})
    assert movement.id == 'R-7'
    assert movement.monto == 250
    assert movement.observaciones is None


def test_alert_severity_aliases():
    assert Alert.model_validate({'type': 'critical', 'message': 'x'}).severity == 'danger'
    assert Alert.model_validate({'type': 'weird'}).severity == 'info'


def test_summary_company_fallback_and_selected_base_ids():
    summary = Summary.model_validate({'empresa': 'empresa07', 'selectedIds': '100-1, 100,200-3,'})
    assert summary.company_name == 'Empresa 07'
    assert summary.selected_ids == ['100', '200']
    assert not summary.is_universe


def test_company_label_passthrough():
    assert company_label('Grupo Sur') == 'Grupo Sur'


def test_summary_drops_blank_observations():
    summary = Summary.model_validate({'observations': ['  ', 'Nota', None]})
    assert summary.observations == ['Nota']


def test_customization_flags():
    custom = Customization.model_validate({'includeCharts': 'false', 'includeDetail': None, 'includeMovements': 0})
    assert not custom.enabled('includeCharts')
    assert custom.enabled('includeDetail')
    assert not custom.enabled('includeMovements')
    with pytest.raises(KeyError):
        custom.enabled('includeEverything')
