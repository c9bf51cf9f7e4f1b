from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import Branding, ConsumptionColors, Customization


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'PO Consumption Report Engine'

    output_dir: Path = Field(
        default=Path('./reports'),
        validation_alias=AliasChoices('POREPORT_OUTPUT_DIR', 'OUTPUT_DIR'),
    )
    log_level: str = Field(
        default='INFO',
        validation_alias=AliasChoices('POREPORT_LOG_LEVEL', 'LOG_LEVEL'),
    )

    # Page geometry (points, letter page)
    pdf_margin_left: float = 40.0
    pdf_margin_right: float = 40.0
    pdf_margin_top: float = 72.0
    pdf_margin_bottom: float = 56.0

    # Typography
    pdf_font_name: str = 'Helvetica'
    pdf_bold_font_name: str = 'Helvetica-Bold'
    pdf_title_font_size: float = 16.0
    pdf_body_font_size: float = 9.0
    pdf_small_font_size: float = 7.5
    pdf_table_row_padding: float = 6.0

    # Consumption alert thresholds
    alert_consumption_ratio: float = 0.10
    alert_warning_percentage: float = 90.0
    alert_critical_percentage: float = 100.0

    # Branding defaults, overridable per request
    brand_company_name: str = ''
    brand_header_text: str = 'Reporte de consumo de órdenes de compra'
    brand_header_subtitle: str = ''
    brand_footer_text: str = 'Documento generado automáticamente'
    brand_accent_color: str = '#1F2937'
    brand_color_remisiones: str = '#2563EB'
    brand_color_facturas: str = '#F59E0B'
    brand_color_restante: str = '#10B981'
    brand_letterhead_enabled: bool = True
    brand_letterhead_top: Path | None = None
    brand_letterhead_bottom: Path | None = None

    def default_branding(self) -> Branding:
        return Branding(
            colors=ConsumptionColors(
                remisiones=self.brand_color_remisiones,
                facturas=self.brand_color_facturas,
                restante=self.brand_color_restante,
            ),
            accent_color=self.brand_accent_color,
            header_text=self.brand_header_text,
            header_subtitle=self.brand_header_subtitle,
            footer_text=self.brand_footer_text,
            letterhead_enabled=self.brand_letterhead_enabled,
            letterhead_top=self.brand_letterhead_top,
            letterhead_bottom=self.brand_letterhead_bottom,
            company_name=self.brand_company_name,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def resolve_branding(overrides: dict[str, Any] | Branding | None = None) -> Branding:
    """Merge persisted branding defaults with per-request overrides."""
    base = get_settings().default_branding()
    if overrides is None:
        return base
    if isinstance(overrides, Branding):
        partial = overrides
    else:
        payload = {key: value for key, value in overrides.items() if value is not None}
        if isinstance(payload.get('colors'), dict):
            payload['colors'] = {key: value for key, value in payload['colors'].items() if value}
        # Validating first maps snake_case, camelCase and legacy keys onto the same fields.
        partial = Branding.model_validate(payload)

    merged = base.model_dump(by_alias=True)
    for key, value in partial.model_dump(by_alias=True, exclude_unset=True).items():
        if key == 'colors':
            merged['colors'] = {**merged['colors'], **value}
            continue
        merged[key] = value
    return Branding.model_validate(merged)


def resolve_customization(
    overrides: dict[str, Any] | Customization | None = None,
    *,
    defaults: dict[str, Any] | None = None,
) -> Customization:
    merged: dict[str, Any] = dict(defaults or {})
    if isinstance(overrides, Customization):
        overrides = overrides.model_dump(by_alias=True)
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    return Customization.model_validate(merged)
