from __future__ import annotations

from poreport.config import get_settings, resolve_branding, resolve_customization
from poreport.types import Branding, Customization


def test_settings_read_environment(tmp_path, monkeypatch):
    monkeypatch.setenv('POREPORT_OUTPUT_DIR', str(tmp_path / 'out'))
    monkeypatch.setenv('ALERT_CONSUMPTION_RATIO', '0.25')
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.output_dir == tmp_path / 'out'
    assert settings.alert_consumption_ratio == 0.25
    assert get_settings() is settings


def test_branding_overrides_merge_colors_key_by_key():
    branding = resolve_branding({'colors': {'facturas': '#000000'}, 'headerText': 'Compras'})
    defaults = get_settings().default_branding()

    assert branding.colors.facturas == '#000000'
    assert branding.colors.remisiones == defaults.colors.remisiones
    assert branding.header_text == 'Compras'
    assert branding.footer_text == defaults.footer_text


def test_branding_model_overrides_only_set_fields():
    branding = resolve_branding(Branding(accent_color='#FF0000'))
    assert branding.accent_color == '#FF0000'
    assert branding.header_text == get_settings().brand_header_text


def test_customization_defaults_and_overrides():
    custom = resolve_customization({'includeDetail': False, 'includeCharts': None}, defaults={'includeSummary': 'no'})
    assert not custom.include_detail
    assert not custom.include_summary
    assert custom.include_charts

    assert resolve_customization(Customization(include_movements=False)).include_movements is False
    assert resolve_customization() == Customization()


def test_branding_accepts_snake_case_overrides():
    branding = resolve_branding({'accent_color': '#FF0000', 'header_text': 'Compras'})
    assert branding.accent_color == '#FF0000'
    assert branding.header_text == 'Compras'


def test_branding_accepts_flat_settings_keys():
    branding = resolve_branding(
        {
            'remColor': '#FF0000',
            'facColor': '#00FF00',
            'restanteColor': '#0000FF',
            'accentColor': '#111111',
            'headerTitle': 'Compras',
            'headerSubtitle': 'Región Norte',
            'letterheadEnabled': False,
        }
    )
    assert (branding.colors.remisiones, branding.colors.facturas, branding.colors.restante) == (
        '#FF0000',
        '#00FF00',
        '#0000FF',
    )
    assert branding.accent_color == '#111111'
    assert branding.header_text == 'Compras'
    assert branding.header_subtitle == 'Región Norte'
    assert branding.letterhead_enabled is False
