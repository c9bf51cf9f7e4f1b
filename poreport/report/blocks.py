from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union

from reportlab.lib import colors

from poreport.aggregate import segment_widths
from poreport.formatting import format_currency, format_date, format_percent
from poreport.types import Alert, ConsumptionColors, MovementEntry, MovementListing, Percentages, Totals

from .flow import FlowContext, line_leading


INK = '#111827'
MUTED = '#6B7280'
GRID = '#CBD5E1'
PANEL = '#F8FAFC'
HEADER_FILL = '#F1F5F9'
HIGHLIGHT_FILL = '#FEE2E2'
BAR_TRACK = '#E5E7EB'

SEVERITY_COLORS = {
    'info': '#2563EB',
    'warning': '#D97706',
    'danger': '#B91C1C',
    'critical': '#B91C1C',
    'safe': '#15803D',
    'unknown': '#6B7280',
}

CELL_INSET = 3.0
ALERT_ICON_RADIUS = 2.6
ALERT_ICON_SPACE = 9.0
DEFAULT_ROW_PADDING = 6.0

SEGMENT_LABELS = ('Remisiones', 'Facturas', 'Restante')

MOVEMENT_ROW_HEIGHT = 13.0
MOVEMENT_LEAD_ROWS = 3
NO_ENTRIES_TEXT = 'Sin registros en este bloque'
CONTINUES_TEXT = 'Continúa en la siguiente página'


def resolve_color(flow: FlowContext, value: str | None, fallback: str = INK) -> Any:
    try:
        return colors.HexColor(str(value or fallback))
    except (TypeError, ValueError):
        flow.warn_once(f'color:{value}', 'Invalid color %r in report branding; using %s', value, fallback)
        return colors.HexColor(fallback)


def _baseline(top: float, index: int, size: float, leading: float) -> float:
    return top + index * leading + (leading - size) / 2 + size * 0.8


def _draw_lines(
    flow: FlowContext,
    lines: Sequence[str],
    *,
    x: float,
    top: float,
    width: float,
    font: str,
    size: float,
    color: Any,
    align: str = 'left',
    leading: float | None = None,
) -> None:
    canvas = flow.canvas
    leading = leading or line_leading(size)
    canvas.setFont(font, size)
    canvas.setFillColor(color)
    for index, line in enumerate(lines):
        y = flow.y(_baseline(top, index, size, leading))
        if align == 'right':
            canvas.drawRightString(x + width, y, line)
        elif align == 'center':
            canvas.drawCentredString(x + width / 2, y, line)
        else:
            canvas.drawString(x, y, line)


def draw_paragraph(
    flow: FlowContext,
    text: str,
    *,
    font: str | None = None,
    size: float | None = None,
    color: str = INK,
    align: str = 'left',
    space_after: float = 4.0,
) -> float:
    font = font or flow.fonts.body
    size = size or flow.fonts.body_size
    width = flow.bounds.width
    lines = flow.wrap_text(text, width, font, size)
    height = len(lines) * line_leading(size)
    flow.ensure_space(height)
    _draw_lines(
        flow,
        lines,
        x=flow.bounds.left,
        top=flow.cursor,
        width=width,
        font=font,
        size=size,
        color=resolve_color(flow, color),
        align=align,
    )
    flow.advance(height + space_after)
    return height


def draw_section_title(
    flow: FlowContext,
    title: str,
    *,
    subtitle: str | None = None,
    accent: str = INK,
    keep_with_next: float = 60.0,
) -> None:
    size = flow.fonts.title_size * 0.8
    title_h = line_leading(size)
    subtitle_lines = flow.wrap_text(subtitle, flow.bounds.width, size=flow.fonts.small_size) if subtitle else []
    subtitle_h = len(subtitle_lines) * line_leading(flow.fonts.small_size)
    height = title_h + subtitle_h + 6
    # Keep the title on the same page as the start of its content.
    flow.ensure_space(height + keep_with_next)

    accent_color = resolve_color(flow, accent)
    _draw_lines(
        flow,
        [title],
        x=flow.bounds.left,
        top=flow.cursor,
        width=flow.bounds.width,
        font=flow.fonts.bold,
        size=size,
        color=accent_color,
    )
    flow.advance(title_h)
    if subtitle_lines:
        _draw_lines(
            flow,
            subtitle_lines,
            x=flow.bounds.left,
            top=flow.cursor,
            width=flow.bounds.width,
            font=flow.fonts.body,
            size=flow.fonts.small_size,
            color=resolve_color(flow, MUTED),
        )
        flow.advance(subtitle_h)
    canvas = flow.canvas
    canvas.setStrokeColor(accent_color)
    canvas.setLineWidth(0.8)
    rule_y = flow.y(flow.cursor + 2)
    canvas.line(flow.bounds.left, rule_y, flow.bounds.right, rule_y)
    flow.advance(6)


# ---- Tables


@dataclass(frozen=True)
class TableColumn:
    label: str
    width: float
    align: str = 'left'


@dataclass(frozen=True)
class TextCell:
    text: str


@dataclass(frozen=True)
class AlertCell:
    text: str
    severity: str = 'info'


Cell = Union[TextCell, AlertCell]


@dataclass(frozen=True)
class TableRow:
    cells: tuple[Cell, ...]
    highlight: bool = False
    emphasis: bool = False


@dataclass
class TableLayout:
    pages: list[int] = field(default_factory=list)
    header_draws: int = 0
    row_heights: list[float] = field(default_factory=list)


def to_cell(value: Any) -> Cell:
    if isinstance(value, (TextCell, AlertCell)):
        return value
    if isinstance(value, Alert):
        return AlertCell(text=value.message, severity=value.severity)
    return TextCell('' if value is None else str(value))


def table_row(values: Iterable[Any], *, highlight: bool = False, emphasis: bool = False) -> TableRow:
    return TableRow(cells=tuple(to_cell(value) for value in values), highlight=highlight, emphasis=emphasis)


def scale_columns(columns: Sequence[TableColumn], total_width: float) -> list[TableColumn]:
    """Rescale relative column widths so they fill ``total_width``."""
    weight = sum(column.width for column in columns) or 1.0
    return [TableColumn(c.label, total_width * c.width / weight, c.align) for c in columns]


def _cell_text_width(column: TableColumn, cell: Cell) -> float:
    width = column.width - 2 * CELL_INSET
    if isinstance(cell, AlertCell):
        width -= ALERT_ICON_SPACE
    return max(width, 1.0)


def measure_row(flow: FlowContext, columns: Sequence[TableColumn], row: TableRow, size: float) -> float:
    font = flow.fonts.bold if row.emphasis else flow.fonts.body
    heights = [
        flow.measure_text(cell.text, _cell_text_width(column, cell), font, size)
        for column, cell in zip(columns, row.cells)
    ]
    return max(heights or [line_leading(size)])


def _draw_alert_icon(flow: FlowContext, cell: AlertCell, x: float, top: float, size: float) -> None:
    canvas = flow.canvas
    canvas.saveState()
    try:
        canvas.setFillColor(resolve_color(flow, SEVERITY_COLORS.get(cell.severity, MUTED)))
        cy = flow.y(top + line_leading(size) / 2)
        canvas.circle(x + ALERT_ICON_RADIUS, cy, ALERT_ICON_RADIUS, stroke=0, fill=1)
    except Exception as exc:
        flow.warn_once('alert-icon', 'Failed to draw alert icon, falling back to text: %s', exc)
    finally:
        canvas.restoreState()


def _draw_table_row(
    flow: FlowContext,
    columns: Sequence[TableColumn],
    row: TableRow,
    *,
    x: float,
    height: float,
    padding: float,
    size: float,
    fill: str | None = None,
    font: str | None = None,
) -> None:
    canvas = flow.canvas
    top = flow.cursor
    width = sum(column.width for column in columns)
    bottom_y = flow.y(top + height)

    canvas.saveState()
    if fill:
        canvas.setFillColor(resolve_color(flow, fill))
        canvas.rect(x, bottom_y, width, height, stroke=0, fill=1)
    canvas.setStrokeColor(resolve_color(flow, GRID))
    canvas.setLineWidth(0.5)
    cell_x = x
    for column in columns:
        canvas.rect(cell_x, bottom_y, column.width, height, stroke=1, fill=0)
        cell_x += column.width
    canvas.restoreState()

    font = font or (flow.fonts.bold if row.emphasis else flow.fonts.body)
    text_top = top + padding / 2
    cell_x = x
    for column, cell in zip(columns, row.cells):
        text_x = cell_x + CELL_INSET
        color = resolve_color(flow, INK)
        if isinstance(cell, AlertCell):
            _draw_alert_icon(flow, cell, text_x, text_top, size)
            text_x += ALERT_ICON_SPACE
            color = resolve_color(flow, SEVERITY_COLORS.get(cell.severity, INK))
        text_width = _cell_text_width(column, cell)
        _draw_lines(
            flow,
            flow.wrap_text(cell.text, text_width, font, size),
            x=text_x,
            top=text_top,
            width=text_width,
            font=font,
            size=size,
            color=color,
            align=column.align,
        )
        cell_x += column.width
    flow.advance(height)


def draw_table(
    flow: FlowContext,
    columns: Sequence[TableColumn],
    rows: Sequence[TableRow],
    *,
    x: float | None = None,
    padding: float = DEFAULT_ROW_PADDING,
    font_size: float | None = None,
    empty_text: str = 'Sin registros',
) -> TableLayout:
    """Bounded table whose header repeats on every continuation page; rows never split."""
    x = flow.bounds.left if x is None else x
    size = font_size or flow.fonts.body_size
    header = TableRow(cells=tuple(TextCell(column.label) for column in columns), emphasis=True)
    header_height = measure_row(flow, columns, header, size) + padding

    if not rows:
        rows = [table_row([empty_text] + [''] * (len(columns) - 1))]

    layout = TableLayout()
    header_page: int | None = None

    def draw_header() -> None:
        _draw_table_row(
            flow,
            columns,
            header,
            x=x,
            height=header_height,
            padding=padding,
            size=size,
            fill=HEADER_FILL,
        )
        layout.header_draws += 1

    for row in rows:
        row_height = measure_row(flow, columns, row, size) + padding
        if header_page != flow.page_count:
            flow.ensure_space(header_height + row_height)
            draw_header()
            header_page = flow.page_count
        elif flow.ensure_space(row_height):
            draw_header()
            header_page = flow.page_count
        if not layout.pages or layout.pages[-1] != flow.page_count:
            layout.pages.append(flow.page_count)
        _draw_table_row(
            flow,
            columns,
            row,
            x=x,
            height=row_height,
            padding=padding,
            size=size,
            fill=HIGHLIGHT_FILL if row.highlight else None,
        )
        layout.row_heights.append(row_height)
    return layout


# ---- Consumption bar


def _legend_lines(
    percentages: Percentages,
    totals: Totals,
) -> list[tuple[str, int | None]]:
    amounts = (totals.total_rem, totals.total_fac, totals.restante)
    values = (percentages.rem, percentages.fac, percentages.rest)
    lines: list[tuple[str, int | None]] = [
        (f'{label}: {format_percent(value)} · {format_currency(amount)}', index)
        for index, (label, value, amount) in enumerate(zip(SEGMENT_LABELS, values, amounts))
    ]
    if totals.total > 0 and totals.overage > 0:
        lines.append((f'Excedente sobre lo autorizado: {format_currency(totals.overage)}', None))
    elif totals.total <= 0 and percentages.overage > 0:
        lines.append((f'Consumo sin monto autorizado: {format_currency(percentages.overage)}', None))
    return lines


def draw_consumption_bar(
    flow: FlowContext,
    *,
    percentages: Percentages,
    totals: Totals,
    palette: ConsumptionColors,
    title: str | None = None,
    width: float | None = None,
    bar_height: float = 14.0,
) -> tuple[float, float, float]:
    canvas = flow.canvas
    x = flow.bounds.left
    width = width or flow.bounds.width
    size = flow.fonts.small_size
    leading = line_leading(size)
    title_height = line_leading(flow.fonts.body_size) + 2 if title else 0.0
    legend = _legend_lines(percentages, totals)
    flow.ensure_space(title_height + bar_height + 6 + len(legend) * leading)

    if title:
        _draw_lines(
            flow,
            [title],
            x=x,
            top=flow.cursor,
            width=width,
            font=flow.fonts.bold,
            size=flow.fonts.body_size,
            color=resolve_color(flow, INK),
        )
        flow.advance(title_height)

    segment_colors = (
        resolve_color(flow, palette.remisiones),
        resolve_color(flow, palette.facturas),
        resolve_color(flow, palette.restante),
    )
    widths = segment_widths(percentages, width)
    radius = bar_height / 2
    bottom_y = flow.y(flow.cursor + bar_height)

    canvas.saveState()
    clip = canvas.beginPath()
    clip.roundRect(x, bottom_y, width, bar_height, radius)
    canvas.clipPath(clip, stroke=0, fill=0)
    canvas.setFillColor(resolve_color(flow, BAR_TRACK))
    canvas.rect(x, bottom_y, width, bar_height, stroke=0, fill=1)
    offset = x
    for segment_width, color in zip(widths, segment_colors):
        if segment_width <= 0:
            continue
        canvas.setFillColor(color)
        canvas.rect(offset, bottom_y, segment_width, bar_height, stroke=0, fill=1)
        offset += segment_width
    canvas.restoreState()

    canvas.saveState()
    canvas.setStrokeColor(resolve_color(flow, GRID))
    canvas.setLineWidth(0.6)
    canvas.roundRect(x, bottom_y, width, bar_height, radius, stroke=1, fill=0)
    canvas.restoreState()
    flow.advance(bar_height + 6)

    for text, color_index in legend:
        text_x = x
        if color_index is not None:
            canvas.setFillColor(segment_colors[color_index])
            swatch = size * 0.9
            canvas.rect(x, flow.y(flow.cursor + (leading + swatch) / 2), swatch, swatch, stroke=0, fill=1)
            text_x = x + swatch + 4
        _draw_lines(
            flow,
            [text],
            x=text_x,
            top=flow.cursor,
            width=width,
            font=flow.fonts.body,
            size=size,
            color=resolve_color(flow, INK if color_index is not None else SEVERITY_COLORS['danger']),
        )
        flow.advance(leading)
    return widths


# ---- Summary cards


@dataclass(frozen=True)
class SummaryCard:
    label: str
    value: str
    detail: str = ''
    color: str = INK


def draw_summary_cards(
    flow: FlowContext,
    cards: Sequence[SummaryCard],
    *,
    height: float = 50.0,
    gap: float = 8.0,
) -> None:
    if not cards:
        return
    canvas = flow.canvas
    flow.ensure_space(height)
    card_width = (flow.bounds.width - gap * (len(cards) - 1)) / len(cards)
    top = flow.cursor
    bottom_y = flow.y(top + height)
    for index, card in enumerate(cards):
        x = flow.bounds.left + index * (card_width + gap)
        accent = resolve_color(flow, card.color)
        canvas.saveState()
        canvas.setFillColor(resolve_color(flow, PANEL))
        canvas.setStrokeColor(resolve_color(flow, GRID))
        canvas.setLineWidth(0.6)
        canvas.roundRect(x, bottom_y, card_width, height, 4, stroke=1, fill=1)
        canvas.setFillColor(accent)
        canvas.rect(x, flow.y(top + 3), card_width, 3, stroke=0, fill=1)
        canvas.restoreState()

        inner = card_width - 12
        _draw_lines(
            flow,
            [flow.fit_text(card.label, inner, size=flow.fonts.small_size)],
            x=x + 6,
            top=top + 7,
            width=inner,
            font=flow.fonts.body,
            size=flow.fonts.small_size,
            color=resolve_color(flow, MUTED),
        )
        value_size = flow.fonts.body_size + 3
        _draw_lines(
            flow,
            [flow.fit_text(card.value, inner, flow.fonts.bold, value_size)],
            x=x + 6,
            top=top + 18,
            width=inner,
            font=flow.fonts.bold,
            size=value_size,
            color=accent,
        )
        if card.detail:
            _draw_lines(
                flow,
                [flow.fit_text(card.detail, inner, size=flow.fonts.small_size)],
                x=x + 6,
                top=top + 34,
                width=inner,
                font=flow.fonts.body,
                size=flow.fonts.small_size,
                color=resolve_color(flow, MUTED),
            )
    flow.advance(height)


# ---- Observation box


def draw_observation_box(
    flow: FlowContext,
    notes: Iterable[str],
    *,
    title: str = 'Observaciones',
    always_show: bool = False,
    placeholder: str = 'Sin observaciones registradas.',
    min_height: float = 40.0,
    padding: float = 8.0,
    accent: str = INK,
) -> bool:
    """Bulleted notes inside a bordered box. Returns False when nothing was drawn."""
    clean = [str(note).strip() for note in notes if str(note or '').strip()]
    if not clean and not always_show:
        return False

    canvas = flow.canvas
    size = flow.fonts.body_size
    leading = line_leading(size)
    bullet_indent = 10.0
    inner_width = flow.bounds.width - 2 * padding
    title_height = line_leading(flow.fonts.body_size) + 4

    blocks = [flow.wrap_text(note, inner_width - bullet_indent, size=size) for note in clean]
    placeholder_lines = [] if clean else flow.wrap_text(placeholder, inner_width, size=size)
    content_height = title_height + leading * (sum(len(lines) for lines in blocks) + len(placeholder_lines))
    box_height = max(min_height, content_height + 2 * padding)
    flow.ensure_space(box_height)

    top = flow.cursor
    x = flow.bounds.left
    canvas.saveState()
    canvas.setFillColor(resolve_color(flow, PANEL))
    canvas.setStrokeColor(resolve_color(flow, GRID))
    canvas.setLineWidth(0.6)
    canvas.roundRect(x, flow.y(top + box_height), flow.bounds.width, box_height, 4, stroke=1, fill=1)
    canvas.restoreState()

    cursor = top + padding
    _draw_lines(
        flow,
        [title],
        x=x + padding,
        top=cursor,
        width=inner_width,
        font=flow.fonts.bold,
        size=flow.fonts.body_size,
        color=resolve_color(flow, accent),
    )
    cursor += title_height
    ink = resolve_color(flow, INK)
    for lines in blocks:
        _draw_lines(flow, ['•'], x=x + padding, top=cursor, width=bullet_indent, font=flow.fonts.body, size=size, color=ink)
        _draw_lines(
            flow,
            lines,
            x=x + padding + bullet_indent,
            top=cursor,
            width=inner_width - bullet_indent,
            font=flow.fonts.body,
            size=size,
            color=ink,
        )
        cursor += leading * len(lines)
    if placeholder_lines:
        _draw_lines(
            flow,
            placeholder_lines,
            x=x + padding,
            top=cursor,
            width=inner_width,
            font=flow.fonts.body,
            size=size,
            color=resolve_color(flow, MUTED),
        )
    flow.advance(box_height)
    return True


# ---- Two-column movement listing


def rows_per_page(available_height: float, row_height: float, chrome_height: float = 0.0) -> int:
    if row_height <= 0:
        return 1
    return max(1, int(math.floor((available_height - chrome_height) / row_height)))


def chunk_movements(
    left: Sequence[MovementEntry],
    right: Sequence[MovementEntry],
    rows: int,
    *,
    first_rows: int | None = None,
) -> list[tuple[tuple[MovementEntry, ...], tuple[MovementEntry, ...]]]:
    """Split both lists into aligned chunks; chunk i of one side pairs with chunk i of the other."""
    rows = max(1, rows)
    size = max(1, first_rows or rows)
    chunks: list[tuple[tuple[MovementEntry, ...], tuple[MovementEntry, ...]]] = []
    start = 0
    while True:
        chunks.append((tuple(left[start:start + size]), tuple(right[start:start + size])))
        start += size
        if start >= len(left) and start >= len(right):
            return chunks
        size = rows


@dataclass(frozen=True)
class _MovementBoxMetrics:
    padding: float
    header_height: float
    footer_height: float
    row_height: float

    @property
    def chrome(self) -> float:
        return self.header_height + self.footer_height + 2 * self.padding


def _movement_metrics(flow: FlowContext, row_height: float) -> _MovementBoxMetrics:
    padding = 6.0
    return _MovementBoxMetrics(
        padding=padding,
        header_height=line_leading(flow.fonts.body_size) + 6,
        footer_height=2 * line_leading(flow.fonts.small_size) + 4,
        row_height=row_height,
    )


def _draw_movement_box(
    flow: FlowContext,
    *,
    x: float,
    width: float,
    height: float,
    title: str,
    accent: Any,
    entries: Sequence[MovementEntry],
    listing: MovementListing,
    final: bool,
    metrics: _MovementBoxMetrics,
) -> None:
    canvas = flow.canvas
    top = flow.cursor
    canvas.saveState()
    canvas.setStrokeColor(resolve_color(flow, GRID))
    canvas.setLineWidth(0.6)
    canvas.rect(x, flow.y(top + height), width, height, stroke=1, fill=0)
    canvas.setFillColor(accent)
    canvas.rect(x, flow.y(top + metrics.header_height), width, metrics.header_height, stroke=0, fill=1)
    canvas.restoreState()

    inner_x = x + metrics.padding
    inner_width = width - 2 * metrics.padding
    _draw_lines(
        flow,
        [flow.fit_text(title, inner_width, flow.fonts.bold)],
        x=inner_x,
        top=top + 3,
        width=inner_width,
        font=flow.fonts.bold,
        size=flow.fonts.body_size,
        color=colors.white,
    )

    size = flow.fonts.small_size
    ink = resolve_color(flow, INK)
    id_width = inner_width * 0.36
    date_x = inner_x + id_width + 4
    amount_right = inner_x + inner_width * 0.84
    cursor = top + metrics.header_height + metrics.padding
    if not entries:
        _draw_lines(
            flow,
            [NO_ENTRIES_TEXT],
            x=inner_x,
            top=cursor,
            width=inner_width,
            font=flow.fonts.body,
            size=size,
            color=resolve_color(flow, MUTED),
            leading=metrics.row_height,
        )
    for entry in entries:
        movement = entry.movement
        label = movement.id or entry.item_id
        if movement.id and entry.item_id:
            label = f'{movement.id} ({entry.item_id})'
        _draw_lines(flow, [flow.fit_text(label, id_width, size=size)], x=inner_x, top=cursor, width=id_width,
                    font=flow.fonts.body, size=size, color=ink, leading=metrics.row_height)
        _draw_lines(flow, [format_date(movement.fecha)], x=date_x, top=cursor, width=inner_width * 0.2,
                    font=flow.fonts.body, size=size, color=ink, leading=metrics.row_height)
        _draw_lines(flow, [format_currency(movement.monto)], x=inner_x, top=cursor, width=amount_right - inner_x,
                    font=flow.fonts.body, size=size, color=ink, align='right', leading=metrics.row_height)
        _draw_lines(flow, [format_percent(entry.percentage)], x=inner_x, top=cursor, width=inner_width,
                    font=flow.fonts.body, size=size, color=resolve_color(flow, MUTED), align='right',
                    leading=metrics.row_height)
        cursor += metrics.row_height

    footer_top = top + height - metrics.padding - metrics.footer_height
    if final:
        footer = [
            f'Subtotal: {format_currency(listing.subtotal)}',
            f'{format_percent(listing.percentage_of_grand_total)} del total autorizado',
        ]
        font = flow.fonts.bold
    else:
        footer = [CONTINUES_TEXT]
        font = flow.fonts.body
    _draw_lines(flow, footer, x=inner_x, top=footer_top + 2, width=inner_width, font=font, size=size,
                color=ink if final else resolve_color(flow, MUTED), align='right')


def movement_lead_height(
    flow: FlowContext,
    left: MovementListing,
    right: MovementListing,
    *,
    row_height: float = MOVEMENT_ROW_HEIGHT,
) -> float:
    """Height a section title should keep free so the first chunk starts under it."""
    rows = min(max(len(left.movements), len(right.movements), 1), MOVEMENT_LEAD_ROWS)
    return _movement_metrics(flow, row_height).chrome + rows * row_height


def draw_movement_columns(
    flow: FlowContext,
    left: MovementListing,
    right: MovementListing,
    *,
    titles: tuple[str, str] = ('Remisiones', 'Facturas'),
    palette: ConsumptionColors | None = None,
    gap: float = 12.0,
    row_height: float = MOVEMENT_ROW_HEIGHT,
) -> int:
    """Remisiones and facturas side by side, chunked so every chunk fits one page. Returns the chunk count."""
    palette = palette or ConsumptionColors()
    metrics = _movement_metrics(flow, row_height)
    flow.ensure_space(metrics.chrome + row_height)
    capacity = rows_per_page(flow.usable_height, row_height, metrics.chrome)
    # The first chunk fills what is left of the current page; later chunks get whole pages.
    first = min(rows_per_page(flow.remaining, row_height, metrics.chrome), capacity)
    chunks = chunk_movements(left.movements, right.movements, capacity, first_rows=first)
    box_width = (flow.bounds.width - gap) / 2
    accents = (resolve_color(flow, palette.remisiones), resolve_color(flow, palette.facturas))

    for index, (left_chunk, right_chunk) in enumerate(chunks):
        final = index == len(chunks) - 1
        body_rows = max(len(left_chunk), len(right_chunk), 1)
        box_height = metrics.chrome + body_rows * row_height
        if index:
            flow.new_page()
        suffix = f' ({index + 1}/{len(chunks)})' if len(chunks) > 1 else ''
        for side, (title, entries, listing) in enumerate(
            ((titles[0], left_chunk, left), (titles[1], right_chunk, right))
        ):
            _draw_movement_box(
                flow,
                x=flow.bounds.left + side * (box_width + gap),
                width=box_width,
                height=box_height,
                title=f'{title}{suffix}',
                accent=accents[side],
                entries=entries,
                listing=listing,
                final=final,
                metrics=metrics,
            )
        flow.advance(box_height)
    return len(chunks)
