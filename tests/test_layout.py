from __future__ import annotations

import math

from poreport.aggregate import collect_movements
from poreport.report.blocks import (
    AlertCell,
    TableColumn,
    TextCell,
    chunk_movements,
    draw_movement_columns,
    draw_observation_box,
    draw_table,
    rows_per_page,
    scale_columns,
    table_row,
)
from poreport.types import Alert, Item, MovementEntry, Movement, Totals


def test_ensure_space_breaks_page_and_runs_hooks_in_order(make_flow):
    flow = make_flow(100.0)
    calls: list[str] = []
    flow.add_page_setup(lambda f: calls.append('letterhead'))
    flow.add_page_setup(lambda f: calls.append('footer'))
    flow.start()

    assert flow.ensure_space(60) is False
    flow.advance(60)
    assert flow.ensure_space(60) is True

    assert flow.page_count == 2
    assert flow.cursor == flow.bounds.top
    assert calls == ['letterhead', 'footer', 'letterhead', 'footer']


def test_block_taller_than_page_does_not_loop(make_flow):
    flow = make_flow(100.0)
    flow.start()
    assert flow.ensure_space(500) is False
    assert flow.page_count == 1


def test_page_setup_hook_can_reserve_space(make_flow):
    flow = make_flow(200.0)
    flow.add_page_setup(lambda f: f.advance(50))
    flow.start()
    assert flow.cursor == flow.bounds.top + 50
    assert flow.usable_height == 150
    assert flow.remaining == 150


def test_measure_text_grows_with_wrapping(make_flow):
    flow = make_flow()
    short = flow.measure_text('Remisión', 200)
    long = flow.measure_text('Remisión parcial entregada en almacén central ' * 6, 200)
    assert long > short
    assert short == flow.measure_text('Remisión', 200, leading=None)


def test_fit_text_truncates_with_ellipsis(make_flow):
    flow = make_flow()
    fitted = flow.fit_text('Proveedor con un nombre muy largo para la celda', 60)
    assert fitted.endswith('...')
    assert flow.string_width(fitted) <= 60


def test_table_repeats_header_on_every_page(make_flow):
    flow = make_flow(200.0)
    flow.start()
    columns = scale_columns([TableColumn('PO', 1), TableColumn('Monto', 1, 'right')], flow.bounds.width)
    rows = [table_row([f'PO-{index}', '$1.00']) for index in range(25)]

    layout = draw_table(flow, columns, rows)

    row_height = layout.row_heights[0]
    per_page = math.floor(flow.bounds.height / row_height) - 1
    assert len(layout.pages) == math.ceil(len(rows) / per_page)
    assert layout.header_draws == len(layout.pages)
    assert layout.pages == list(range(1, flow.page_count + 1))


def test_table_header_moves_with_first_row(make_flow):
    flow = make_flow(200.0)
    flow.start()
    flow.advance(190)
    columns = [TableColumn('PO', 200)]

    layout = draw_table(flow, columns, [table_row(['PO-1'])])

    assert layout.pages == [2]
    assert layout.header_draws == 1


def test_table_cells_resolve_to_tagged_variants():
    row = table_row(['100', Alert(severity='warning', message='Alto consumo'), AlertCell('ok', 'safe'), None])
    assert row.cells == (TextCell('100'), AlertCell('Alto consumo', 'warning'), AlertCell('ok', 'safe'), TextCell(''))


def test_empty_table_draws_placeholder_row(make_flow):
    flow = make_flow()
    flow.start()
    layout = draw_table(flow, [TableColumn('PO', 100)], [], empty_text='Sin PO')
    assert len(layout.row_heights) == 1


def test_observation_box_omitted_or_placeholder(make_flow):
    flow = make_flow()
    flow.start()
    start = flow.cursor

    assert draw_observation_box(flow, ['   ']) is False
    assert flow.cursor == start

    assert draw_observation_box(flow, [], always_show=True, min_height=40) is True
    assert flow.cursor - start >= 40


def test_observation_box_grows_with_notes(make_flow):
    flow = make_flow()
    flow.start()
    start = flow.cursor
    draw_observation_box(flow, [f'Nota {index}' for index in range(10)], min_height=20)
    assert flow.cursor - start > 20


def _entries(prefix: str, count: int) -> list[MovementEntry]:
    return [MovementEntry(item_id='1', movement=Movement(id=f'{prefix}{index}', monto=10), percentage=1.0) for index in range(count)]


def test_chunk_movements_aligns_sides():
    chunks = chunk_movements(_entries('R', 7), _entries('F', 2), 5)

    assert [(len(left), len(right)) for left, right in chunks] == [(5, 2), (2, 0)]


def test_chunk_movements_always_yields_one_chunk():
    assert chunk_movements([], [], 5) == [((), ())]


def test_rows_per_page_has_a_floor_of_one():
    assert rows_per_page(100, 13, 60) == 3
    assert rows_per_page(10, 13, 60) == 1


def test_movement_columns_paginate_in_chunks(make_flow):
    # Chrome is roughly 53pt, so 125pt leaves room for five 13pt rows.
    flow = make_flow(125.0)
    flow.start()
    item = Item.model_validate(
        {
            'id': '1',
            'total': 1000,
            'remisiones': [{'id': f'R{index}', 'monto': 10 + index} for index in range(7)],
            'facturas': [{'id': f'F{index}', 'monto': 5} for index in range(2)],
        }
    )
    totals = Totals.derive(1000, 91, 10)
    left = collect_movements([item], totals, 'remisiones')
    right = collect_movements([item], totals, 'facturas')

    chunks = draw_movement_columns(flow, left, right)

    assert chunks == 2
    assert flow.page_count == 2
    assert left.subtotal == sum(10 + index for index in range(7))
    assert right.subtotal == 10


def test_chunk_movements_first_chunk_can_be_shorter():
    chunks = chunk_movements(_entries('R', 7), _entries('F', 2), 5, first_rows=2)

    assert [(len(left), len(right)) for left, right in chunks] == [(2, 2), (5, 0)]


def test_movement_columns_start_on_current_page(make_flow):
    flow = make_flow(300.0)
    flow.start()
    flow.advance(150.0)
    item = Item.model_validate(
        {'id': '1', 'total': 1000, 'remisiones': [{'id': f'R{index}', 'monto': 10} for index in range(20)]}
    )
    totals = Totals.derive(1000, 200, 0)
    left = collect_movements([item], totals, 'remisiones')
    right = collect_movements([item], totals, 'facturas')

    chunks = draw_movement_columns(flow, left, right)

    # The first chunk fills the rest of page one instead of jumping to a fresh page.
    assert chunks == 2
    assert flow.page_count == 2
