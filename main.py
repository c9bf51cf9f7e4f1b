from __future__ import annotations

import argparse
import io
import json
import logging
from pathlib import Path
from typing import Any

from pypdf import PdfReader

from poreport.aggregate import build_consumption_alerts, build_group_hierarchy, collect_movements, compute_percentages, grand_totals
from poreport.config import get_settings
from poreport.errors import InvalidSummaryError, ReportError
from poreport.report.engine import ConsumptionReportEngine, coerce_summary
from poreport.storage import default_output_path, read_json, write_bytes_atomic, write_json_atomic


logger = logging.getLogger('poreport.cli')


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _error_payload(exc: ReportError) -> dict:
    return {'status': 'error', **exc.to_payload()}


def _load_object(path_value: str | None, label: str) -> dict[str, Any] | None:
    if not path_value:
        return None
    path = Path(path_value).expanduser().resolve()
    if not path.is_file():
        raise InvalidSummaryError(f'{label} file not found: {path}')
    try:
        payload = read_json(path)
    except (OSError, ValueError) as exc:
        raise InvalidSummaryError(f'{label} file is not valid JSON: {path}', cause=exc) from exc
    if not isinstance(payload, dict):
        raise InvalidSummaryError(f'{label} must be a JSON object: {path}')
    return payload


def _inspection(summary_payload: dict[str, Any]) -> dict:
    settings = get_settings()
    summary = coerce_summary(summary_payload)
    groups = build_group_hierarchy(summary)
    totals = grand_totals(summary)
    item_alerts, group_alerts = build_consumption_alerts(groups, ratio=settings.alert_consumption_ratio)
    movements = {kind: collect_movements(summary.items, totals, kind) for kind in ('remisiones', 'facturas')}
    return {
        'mode': 'universe' if summary.is_universe else 'selection',
        'company_name': summary.company_name,
        'selected_ids': summary.selected_ids,
        'totals': totals.model_dump(by_alias=True),
        'percentages': compute_percentages(totals).model_dump(),
        'groups': [
            {
                'base_id': group.base_id,
                'ids': list(group.ids),
                'extension_ids': list(group.extension_ids),
                'fully_consumed': group.fully_consumed,
                'totals': group.totals.model_dump(by_alias=True),
                'percentages': group.percentages.model_dump(),
                'alerts': [alert.model_dump() for alert in group_alerts.get(group.base_id, [])],
                'items': [
                    {
                        'id': member.id,
                        'is_base': member.is_base,
                        'totals': member.totals.model_dump(by_alias=True),
                        'percentages': member.percentages.model_dump(),
                        'alerts': [alert.model_dump() for alert in item_alerts.get(member.id, [])],
                    }
                    for member in group.items
                ],
            }
            for group in groups
        ],
        'movements': {
            kind: {
                'count': len(listing.movements),
                'subtotal': listing.subtotal,
                'percentage_of_grand_total': listing.percentage_of_grand_total,
            }
            for kind, listing in movements.items()
        },
    }


def cmd_render(args: argparse.Namespace) -> int:
    try:
        summary = _load_object(args.summary, 'summary')
        branding = _load_object(args.branding, 'branding')
        customization = _load_object(args.customization, 'customization')
        engine = ConsumptionReportEngine()
        pdf_bytes = engine.render(summary, branding, customization)
    except ReportError as exc:
        logger.error('Report rendering failed: %s', exc.message)
        _print_json(_error_payload(exc))
        return 2

    output = Path(args.output).expanduser().resolve() if args.output else default_output_path(Path(args.summary))
    write_bytes_atomic(output, pdf_bytes)
    page_count = len(PdfReader(io.BytesIO(pdf_bytes)).pages)
    logger.info('Wrote %s (%d bytes, %d pages)', output, len(pdf_bytes), page_count)
    _print_json(
        {
            'status': 'ok',
            'path': str(output),
            'bytes': len(pdf_bytes),
            'pages': page_count,
        }
    )
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    try:
        payload = _inspection(_load_object(args.summary, 'summary'))
    except ReportError as exc:
        _print_json(_error_payload(exc))
        return 2

    if args.output:
        write_json_atomic(Path(args.output).expanduser().resolve(), payload)
    _print_json(payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='PO consumption report CLI')
    sub = parser.add_subparsers(dest='command', required=True)

    render = sub.add_parser('render', help='Render a consumption report PDF')
    render.add_argument('--summary', required=True, help='Path to the summary JSON')
    render.add_argument('--branding', required=False, help='Optional branding overrides JSON')
    render.add_argument('--customization', required=False, help='Optional section switches JSON')
    render.add_argument('--output', required=False, help='Output PDF path')
    render.set_defaults(func=cmd_render)

    inspect = sub.add_parser('inspect', help='Print groups, percentages and subtotals')
    inspect.add_argument('--summary', required=True, help='Path to the summary JSON')
    inspect.add_argument('--output', required=False, help='Also write the inspection JSON here')
    inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
