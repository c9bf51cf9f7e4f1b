from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen.canvas import Canvas

from poreport.aggregate import (
    build_consumption_alerts,
    build_group_hierarchy,
    collect_movements,
    compute_percentages,
    consumption_level,
    grand_totals,
)
from poreport.config import Settings, get_settings
from poreport.errors import SerializationError
from poreport.formatting import format_currency, format_date, format_percent
from poreport.types import Alert, Branding, Customization, Group, Percentages, Summary, Totals

from .blocks import (
    INK,
    MUTED,
    AlertCell,
    SummaryCard,
    TableColumn,
    TableRow,
    draw_consumption_bar,
    draw_movement_columns,
    movement_lead_height,
    draw_observation_box,
    draw_paragraph,
    draw_section_title,
    draw_summary_cards,
    draw_table,
    resolve_color,
    scale_columns,
    table_row,
)
from .flow import FlowContext, PageBounds, ReportFonts


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = letter
PRODUCER = 'poreport consumption engine'
SECTION_GAP = 10.0

LEVEL_LABELS = {
    'critical': 'Crítica',
    'warning': 'Atención',
    'safe': 'En rango',
    'unknown': 'Sin dato',
}
_SEVERITY_RANK = {'info': 0, 'warning': 1, 'danger': 2}
_KIND_LABELS = {'remisiones': 'Remisión', 'facturas': 'Factura'}


@dataclass(frozen=True)
class ReportData:
    summary: Summary
    groups: list[Group]
    totals: Totals
    percentages: Percentages
    item_alerts: dict[str, list[Alert]]
    group_alerts: dict[str, list[Alert]]
    generated_at: datetime

    @property
    def company_name(self) -> str:
        return self.summary.company_name


def prepare_report_data(
    summary: Summary,
    *,
    settings: Settings | None = None,
    generated_at: datetime | None = None,
) -> ReportData:
    settings = settings or get_settings()
    groups = build_group_hierarchy(summary)
    totals = grand_totals(summary)
    item_alerts, group_alerts = build_consumption_alerts(groups, ratio=settings.alert_consumption_ratio)
    return ReportData(
        summary=summary,
        groups=groups,
        totals=totals,
        percentages=compute_percentages(totals),
        item_alerts=item_alerts,
        group_alerts=group_alerts,
        generated_at=generated_at or datetime.now(),
    )


@dataclass
class ComposedDocument:
    """A fully laid out document whose bytes have not been flushed yet."""

    canvas: Canvas
    buffer: io.BytesIO
    page_count: int

    def serialize(self) -> bytes:
        try:
            self.canvas.save()
        except Exception as exc:
            raise SerializationError(f'Failed to serialize report PDF: {exc}', cause=exc) from exc
        return self.buffer.getvalue()


@dataclass
class _Composition:
    flow: FlowContext
    data: ReportData
    branding: Branding
    customization: Customization
    settings: Settings

    @property
    def company(self) -> str:
        return self.data.company_name or self.branding.company_name or '-'


# ---- Page chrome


def _draw_letterhead(flow: FlowContext, path: Path | None, *, top: bool) -> None:
    if path is None:
        return
    if not Path(path).is_file():
        flow.warn_once(f'letterhead:{path}', 'Letterhead image not found at %s; skipping it.', path)
        return
    if top:
        height = max(flow.bounds.top - 32, 0)
        y = PAGE_HEIGHT - height
        anchor = 'n'
    else:
        height = max(PAGE_HEIGHT - flow.bounds.bottom - 24, 0)
        y = 0
        anchor = 's'
    if height <= 0:
        return
    try:
        flow.canvas.drawImage(
            str(path),
            0,
            y,
            width=PAGE_WIDTH,
            height=height,
            preserveAspectRatio=True,
            anchor=anchor,
            mask='auto',
        )
    except Exception as exc:
        flow.warn_once(f'letterhead:{path}', 'Failed to draw letterhead image from %s: %s', path, exc)


def _draw_page_chrome(flow: FlowContext, *, branding: Branding, company: str) -> None:
    canvas = flow.canvas
    canvas.saveState()
    if branding.letterhead_enabled:
        _draw_letterhead(flow, branding.letterhead_top, top=True)
        _draw_letterhead(flow, branding.letterhead_bottom, top=False)

    left = flow.bounds.left
    right = flow.bounds.right
    header_y = flow.y(flow.bounds.top - 10)
    title_y = flow.y(flow.bounds.top - 20) if branding.header_subtitle else header_y
    footer_y = flow.y(flow.bounds.bottom + 22)

    canvas.setStrokeColor(resolve_color(flow, '#D1D5DB'))
    canvas.setLineWidth(0.7)
    canvas.line(left, header_y - 4, right, header_y - 4)
    canvas.line(left, footer_y + 10, right, footer_y + 10)

    small = flow.fonts.small_size
    text_width = flow.bounds.width * 0.6
    canvas.setFillColor(resolve_color(flow, branding.accent_color))
    canvas.setFont(flow.fonts.bold, small + 0.5)
    canvas.drawString(left, title_y, flow.fit_text(branding.header_text, text_width, flow.fonts.bold, small + 0.5))
    canvas.setFont(flow.fonts.body, small)
    if branding.header_subtitle:
        canvas.setFillColor(resolve_color(flow, MUTED))
        canvas.drawString(left, header_y, flow.fit_text(branding.header_subtitle, text_width, size=small))
    canvas.setFillColor(resolve_color(flow, INK))
    canvas.drawRightString(right, header_y, flow.fit_text(company, flow.bounds.width * 0.35, size=small))

    canvas.setFillColor(resolve_color(flow, MUTED))
    canvas.drawString(left, footer_y, flow.fit_text(branding.footer_text, flow.bounds.width * 0.7, size=small))
    canvas.drawRightString(right, footer_y, f'Página {flow.page_count}')
    canvas.restoreState()


# ---- Composition steps


def _step_header(ctx: _Composition) -> None:
    flow = ctx.flow
    summary = ctx.data.summary
    universe = summary.universe
    if universe and universe.title:
        title = universe.title
    elif summary.is_universe:
        title = 'Reporte de universo de PO'
    else:
        title = 'Reporte de seguimiento PO'

    draw_paragraph(
        flow,
        title,
        font=flow.fonts.bold,
        size=flow.fonts.title_size,
        color=ctx.branding.accent_color,
        align='center',
    )
    draw_paragraph(flow, f'Empresa: {ctx.company}', align='center', space_after=1)
    if not summary.is_universe:
        selected = ', '.join(summary.selected_ids) or ', '.join(group.base_id for group in ctx.data.groups) or '-'
        draw_paragraph(flow, f'PO seleccionadas: {selected}', align='center', space_after=1)
    draw_paragraph(
        flow,
        f'Generado: {ctx.data.generated_at:%Y-%m-%d %H:%M}',
        size=flow.fonts.small_size,
        color=MUTED,
        align='center',
    )
    flow.advance(SECTION_GAP)


def _step_filter_statement(ctx: _Composition) -> None:
    universe = ctx.data.summary.universe
    if universe is None:
        return
    flow = ctx.flow
    label = universe.label or 'Todas las PO'
    draw_paragraph(flow, f'Filtro aplicado: {label}', font=flow.fonts.bold, space_after=1)
    if universe.description:
        draw_paragraph(flow, universe.description, size=flow.fonts.small_size, color=MUTED, space_after=1)
    draw_paragraph(
        flow,
        f'{len(ctx.data.summary.items)} PO en {len(ctx.data.groups)} grupos coinciden con el filtro.',
        size=flow.fonts.small_size,
        color=MUTED,
    )
    flow.advance(SECTION_GAP)


def _step_summary_cards(ctx: _Composition) -> None:
    totals = ctx.data.totals
    pct = ctx.data.percentages
    palette = ctx.branding.colors
    cards = [
        SummaryCard(
            label='Total autorizado',
            value=format_currency(totals.total),
            detail=f'{len(ctx.data.summary.items)} PO · {len(ctx.data.groups)} grupos',
            color=ctx.branding.accent_color,
        ),
        SummaryCard('Remisiones', format_currency(totals.total_rem), format_percent(pct.rem), palette.remisiones),
        SummaryCard('Facturas', format_currency(totals.total_fac), format_percent(pct.fac), palette.facturas),
        SummaryCard('Restante', format_currency(totals.restante), format_percent(pct.rest), palette.restante),
    ]
    draw_summary_cards(ctx.flow, cards)
    ctx.flow.advance(SECTION_GAP)


def _step_combined_bar(ctx: _Composition) -> None:
    draw_section_title(ctx.flow, 'Consumo global', accent=ctx.branding.accent_color)
    draw_consumption_bar(
        ctx.flow,
        percentages=ctx.data.percentages,
        totals=ctx.data.totals,
        palette=ctx.branding.colors,
    )
    ctx.flow.advance(SECTION_GAP)


def _step_totals_table(ctx: _Composition) -> None:
    flow = ctx.flow
    totals = ctx.data.totals
    pct = ctx.data.percentages
    authorized = totals.total > 0
    columns = scale_columns(
        [
            TableColumn('Concepto', 3.0),
            TableColumn('Monto', 2.0, 'right'),
            TableColumn('Porcentaje', 1.5, 'right'),
        ],
        flow.bounds.width,
    )

    def share(value: float) -> str:
        return format_percent(value) if authorized else '-'

    rows = [
        table_row(['Total autorizado', format_currency(totals.total), share(100.0)]),
        table_row(['Remisiones', format_currency(totals.total_rem), share(pct.rem)]),
        table_row(['Facturas', format_currency(totals.total_fac), share(pct.fac)]),
        table_row(['Consumo total', format_currency(totals.total_consumo), share(pct.consumo)], emphasis=True),
        table_row(['Restante', format_currency(totals.restante), share(pct.rest)]),
    ]
    if authorized and totals.overage > 0:
        rows.append(
            table_row(
                ['Excedente', format_currency(totals.overage), format_percent(totals.overage / totals.total * 100)],
                highlight=True,
            )
        )
    elif not authorized and pct.overage > 0:
        rows.append(table_row(['Consumo sin monto autorizado', format_currency(pct.overage), '-'], highlight=True))

    draw_section_title(flow, 'Totales', accent=ctx.branding.accent_color)
    draw_table(flow, columns, rows, padding=ctx.settings.pdf_table_row_padding)
    flow.advance(SECTION_GAP)


def _alert_cell(ctx: _Composition, item_id: str, totals: Totals) -> AlertCell:
    alerts = ctx.data.item_alerts.get(item_id) or []
    if alerts:
        worst = max(alerts, key=lambda alert: _SEVERITY_RANK.get(alert.severity, 0))
        text = worst.message
        if len(alerts) > 1:
            text = f'{text} (+{len(alerts) - 1})'
        return AlertCell(text=text, severity=worst.severity)
    level = consumption_level(
        totals,
        warning_percentage=ctx.settings.alert_warning_percentage,
        critical_percentage=ctx.settings.alert_critical_percentage,
    )
    return AlertCell(text=LEVEL_LABELS[level], severity=level)


def _member_rows(ctx: _Composition, group: Group, *, with_alerts: bool) -> list[TableRow]:
    rows: list[TableRow] = []
    for member in group.items:
        values = [
            member.id,
            'Base' if member.is_base else f'Ext. de {group.base_id}',
            format_date(member.item.fecha) or '-',
            format_currency(member.totals.total),
            format_currency(member.totals.total_rem),
            format_currency(member.totals.total_fac),
            format_currency(member.totals.restante),
            format_percent(member.percentages.consumo),
        ]
        if with_alerts:
            values.append(_alert_cell(ctx, member.id, member.totals))
        rows.append(table_row(values, highlight=group.fully_consumed))
    return rows


def _item_columns(width: float, *, with_alerts: bool) -> list[TableColumn]:
    columns = [
        TableColumn('PO', 1.3),
        TableColumn('Tipo', 1.2),
        TableColumn('Fecha', 1.1),
        TableColumn('Autorizado', 1.5, 'right'),
        TableColumn('Remisiones', 1.5, 'right'),
        TableColumn('Facturas', 1.5, 'right'),
        TableColumn('Restante', 1.5, 'right'),
        TableColumn('Consumo', 1.0, 'right'),
    ]
    if with_alerts:
        columns.append(TableColumn('Alertas', 2.2))
    return scale_columns(columns, width)


def _step_item_table(ctx: _Composition) -> None:
    flow = ctx.flow
    columns = _item_columns(flow.bounds.width, with_alerts=True)
    rows: list[TableRow] = []
    for group in ctx.data.groups:
        if group.extension_ids:
            rows.append(
                table_row(
                    [
                        f'Grupo {group.base_id}',
                        f'{len(group.extension_ids)} ext.',
                        '',
                        format_currency(group.totals.total),
                        format_currency(group.totals.total_rem),
                        format_currency(group.totals.total_fac),
                        format_currency(group.totals.restante),
                        format_percent(min(group.percentages.consumo, 100.0)),
                        '',
                    ],
                    highlight=group.fully_consumed,
                    emphasis=True,
                )
            )
        rows.extend(_member_rows(ctx, group, with_alerts=True))

    draw_section_title(
        flow,
        'Detalle por PO',
        subtitle='Agrupado por PO base y sus extensiones. Las filas resaltadas pertenecen a grupos sin saldo.',
        accent=ctx.branding.accent_color,
    )
    draw_table(flow, columns, rows, padding=ctx.settings.pdf_table_row_padding, font_size=flow.fonts.small_size)
    flow.advance(SECTION_GAP)


def _observation_notes(data: ReportData) -> list[str]:
    notes = list(data.summary.observations)
    for group in data.groups:
        for member in group.items:
            for alert in data.item_alerts.get(member.id) or []:
                notes.append(f'[{alert.severity.upper()}] {alert.message}')
        for alert in data.group_alerts.get(group.base_id) or []:
            notes.append(f'[{alert.severity.upper()}] {alert.message}')
    for item in data.summary.items:
        for kind, label in _KIND_LABELS.items():
            for movement in item.movements(kind):
                if movement.observaciones:
                    notes.append(f'{label} {movement.id or "-"} ({item.id}): {movement.observaciones}')
    return list(dict.fromkeys(notes))


def _step_observations(ctx: _Composition) -> None:
    draw_observation_box(
        ctx.flow,
        _observation_notes(ctx.data),
        always_show=True,
        accent=ctx.branding.accent_color,
    )
    ctx.flow.advance(SECTION_GAP)


def _step_group_details(ctx: _Composition) -> None:
    flow = ctx.flow
    columns = _item_columns(flow.bounds.width, with_alerts=False)
    for group in ctx.data.groups:
        if group.extension_ids:
            subtitle = 'Extensiones: ' + ', '.join(group.extension_ids)
        else:
            subtitle = 'Sin extensiones'
        draw_section_title(flow, f'PO {group.base_id}', subtitle=subtitle, accent=ctx.branding.accent_color)
        if ctx.customization.include_charts:
            draw_consumption_bar(
                flow,
                percentages=group.percentages,
                totals=group.totals,
                palette=ctx.branding.colors,
                bar_height=10.0,
            )
            flow.advance(4)
        draw_table(
            flow,
            columns,
            _member_rows(ctx, group, with_alerts=False),
            padding=ctx.settings.pdf_table_row_padding,
            font_size=flow.fonts.small_size,
        )
        group_alerts = [alert.message for alert in ctx.data.group_alerts.get(group.base_id) or []]
        if group_alerts:
            flow.advance(4)
            draw_observation_box(flow, group_alerts, title='Alertas del grupo', accent=ctx.branding.accent_color)
        flow.advance(SECTION_GAP)


def _step_movements(ctx: _Composition) -> None:
    flow = ctx.flow
    items = ctx.data.summary.items
    remisiones = collect_movements(items, ctx.data.totals, 'remisiones')
    facturas = collect_movements(items, ctx.data.totals, 'facturas')
    draw_section_title(
        flow,
        'Movimientos',
        subtitle='Remisiones y facturas ordenadas por monto; porcentajes sobre el total autorizado.',
        accent=ctx.branding.accent_color,
        keep_with_next=movement_lead_height(flow, remisiones, facturas),
    )
    draw_movement_columns(flow, remisiones, facturas, palette=ctx.branding.colors)
    flow.advance(SECTION_GAP)


def _step_footer(ctx: _Composition) -> None:
    flow = ctx.flow
    parts = [part for part in (ctx.branding.footer_text, f'Generado el {ctx.data.generated_at:%Y-%m-%d %H:%M}') if part]
    draw_paragraph(flow, ' · '.join(parts), size=flow.fonts.small_size, color=MUTED, space_after=1)
    draw_paragraph(flow, 'Fin del reporte', size=flow.fonts.small_size, color=MUTED)


Step = Callable[[_Composition], None]

UNIVERSE_STEPS: tuple[tuple[str | None, Step], ...] = (
    (None, _step_header),
    ('includeUniverse', _step_filter_statement),
    ('includeSummary', _step_summary_cards),
    ('includeCharts', _step_combined_bar),
    (None, _step_totals_table),
    (None, _step_item_table),
    ('includeObservations', _step_observations),
    ('includeDetail', _step_group_details),
    (None, _step_footer),
)

SELECTION_STEPS: tuple[tuple[str | None, Step], ...] = (
    (None, _step_header),
    ('includeSummary', _step_summary_cards),
    ('includeCharts', _step_combined_bar),
    (None, _step_totals_table),
    (None, _step_item_table),
    ('includeObservations', _step_observations),
    ('includeDetail', _step_group_details),
    ('includeMovements', _step_movements),
    (None, _step_footer),
)


def composition_steps(summary: Summary, customization: Customization) -> list[Step]:
    steps = UNIVERSE_STEPS if summary.is_universe else SELECTION_STEPS
    return [step for switch, step in steps if switch is None or customization.enabled(switch)]


def _build_fonts(settings: Settings) -> ReportFonts:
    return ReportFonts(
        body=settings.pdf_font_name,
        bold=settings.pdf_bold_font_name,
        body_size=settings.pdf_body_font_size,
        small_size=settings.pdf_small_font_size,
        title_size=settings.pdf_title_font_size,
    )


def compose_document(
    summary: Summary,
    branding: Branding,
    customization: Customization,
    *,
    settings: Settings | None = None,
    generated_at: datetime | None = None,
) -> ComposedDocument:
    settings = settings or get_settings()
    data = prepare_report_data(summary, settings=settings, generated_at=generated_at)

    buffer = io.BytesIO()
    canvas = Canvas(buffer, pagesize=letter)
    canvas.setTitle(f'Reporte de consumo PO - {data.company_name or branding.company_name}'.rstrip(' -'))
    canvas.setAuthor(branding.company_name or data.company_name or PRODUCER)
    canvas.setSubject('Consumo de órdenes de compra')
    canvas.setProducer(PRODUCER)
    canvas.setCreator(settings.app_name)

    bounds = PageBounds(
        left=settings.pdf_margin_left,
        top=settings.pdf_margin_top,
        right=PAGE_WIDTH - settings.pdf_margin_right,
        bottom=PAGE_HEIGHT - settings.pdf_margin_bottom,
    )
    flow = FlowContext(canvas, page_size=(PAGE_WIDTH, PAGE_HEIGHT), bounds=bounds, fonts=_build_fonts(settings))
    ctx = _Composition(flow=flow, data=data, branding=branding, customization=customization, settings=settings)
    flow.add_page_setup(lambda current: _draw_page_chrome(current, branding=branding, company=ctx.company))
    flow.start()

    steps = composition_steps(summary, customization)
    for step in steps:
        step(ctx)
    logger.info(
        'Composed %s consumption report: %d groups, %d pages',
        'universe' if summary.is_universe else 'selection',
        len(data.groups),
        flow.page_count,
    )
    return ComposedDocument(canvas=canvas, buffer=buffer, page_count=flow.page_count)


def build_consumption_report_pdf(
    summary: Summary,
    branding: Branding | None = None,
    customization: Customization | None = None,
    *,
    settings: Settings | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    settings = settings or get_settings()
    document = compose_document(
        summary,
        branding or settings.default_branding(),
        customization or Customization(),
        settings=settings,
        generated_at=generated_at,
    )
    return document.serialize()
