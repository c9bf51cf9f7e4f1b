from __future__ import annotations

from typing import Iterable, Sequence

from .formatting import date_sort_key, round2
from .types import (
    MOVEMENT_KINDS,
    Alert,
    Group,
    GroupMember,
    Item,
    MovementEntry,
    MovementListing,
    Percentages,
    Summary,
    Totals,
    derive_base_id,
)


MAX_ITEM_PERCENT = 999.99
MAX_REST_PERCENT = 100.0
DISPLAY_CONSUMO_CAP = 100.0

__all__ = [
    'build_consumption_alerts',
    'build_group_hierarchy',
    'collect_movements',
    'compute_percentages',
    'compute_segment_scale',
    'consumption_level',
    'derive_base_id',
    'grand_totals',
    'item_totals',
    'normalize_item_totals',
    'segment_widths',
]


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _share(amount: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round2(max(amount, 0.0) / total * 100.0)


def compute_percentages(totals: Totals | None) -> Percentages:
    if totals is None:
        return Percentages()
    total = totals.total
    if total <= 0:
        return Percentages(overage=round2(max(totals.total_consumo, 0.0)))

    rem = _clamp(_share(totals.total_rem, total), 0.0, MAX_ITEM_PERCENT)
    fac = _clamp(_share(totals.total_fac, total), 0.0, MAX_ITEM_PERCENT)
    rest = _clamp(_share(totals.restante, total), 0.0, MAX_REST_PERCENT)
    return Percentages(rem=rem, fac=fac, rest=rest, consumo=round2(rem + fac))


def compute_segment_scale(percentages: Percentages) -> float:
    observed = max(percentages.rem, 0.0) + max(percentages.fac, 0.0) + max(percentages.rest, 0.0)
    return max(observed, 100.0)


def segment_widths(percentages: Percentages, width: float) -> tuple[float, float, float]:
    """Widths of the remisiones/facturas/restante segments inside a bar of ``width``."""
    scale = compute_segment_scale(percentages)
    widths: list[float] = []
    used = 0.0
    for value in (percentages.rem, percentages.fac, percentages.rest):
        segment = width * max(value, 0.0) / scale
        segment = max(0.0, min(segment, width - used))
        widths.append(segment)
        used += segment
    return widths[0], widths[1], widths[2]


def item_totals(item: Item) -> Totals:
    total_rem = item.total_rem
    if total_rem is None:
        total_rem = sum(movement.monto for movement in item.remisiones)
    total_fac = item.total_fac
    if total_fac is None:
        total_fac = sum(movement.monto for movement in item.facturas)
    return Totals.derive(item.total, total_rem, total_fac)


def normalize_item_totals(item: Item | Totals) -> tuple[Totals, Percentages]:
    """Totals and display percentages for one item, with ``consumo`` capped at 100."""
    if isinstance(item, Totals):
        totals = Totals.derive(item.total, item.total_rem, item.total_fac)
    else:
        totals = item_totals(item)
    percentages = compute_percentages(totals)
    capped = percentages.model_copy(update={'consumo': min(percentages.consumo, DISPLAY_CONSUMO_CAP)})
    return totals, capped


def grand_totals(summary: Summary) -> Totals:
    if summary.totals is not None:
        return summary.totals
    total = total_rem = total_fac = 0.0
    for item in summary.items:
        totals = item_totals(item)
        total += totals.total
        total_rem += totals.total_rem
        total_fac += totals.total_fac
    return Totals.derive(total, total_rem, total_fac)


def _same_id(left: str, right: str) -> bool:
    return left.strip().upper() == right.strip().upper()


def _order_members(members: list[tuple[int, GroupMember]]) -> list[GroupMember]:
    by_id = sorted(members, key=lambda pair: (pair[1].id, pair[0]))
    base = [pair for pair in by_id if pair[1].is_base]
    if not base:
        # No member carries the base id: lead with the earliest dated one.
        lead = min(by_id, key=lambda pair: (date_sort_key(pair[1].item.fecha), pair[1].id, pair[0]))
        base = [lead]
    leading = {pair[0] for pair in base}
    rest = [pair for pair in by_id if pair[0] not in leading]
    return [pair[1] for pair in base + rest]


def build_group_hierarchy(summary: Summary | Iterable[Item]) -> list[Group]:
    items = summary.items if isinstance(summary, Summary) else list(summary)
    buckets: dict[str, list[tuple[int, GroupMember]]] = {}

    for index, item in enumerate(items):
        if not item.id:
            continue
        base_id = derive_base_id(item.id, item.base_id)
        totals, percentages = normalize_item_totals(item)
        member = GroupMember(
            item=item,
            totals=totals,
            percentages=percentages,
            is_base=_same_id(item.id, base_id),
        )
        buckets.setdefault(base_id, []).append((index, member))

    groups: list[Group] = []
    for base_id in sorted(buckets):
        members = _order_members(buckets[base_id])
        total = sum(member.totals.total for member in members)
        total_rem = sum(member.totals.total_rem for member in members)
        total_fac = sum(member.totals.total_fac for member in members)
        totals = Totals.derive(total, total_rem, total_fac)

        ids = tuple(dict.fromkeys(member.id for member in members))
        groups.append(
            Group(
                base_id=base_id,
                ids=ids,
                extension_ids=tuple(ident for ident in ids if not _same_id(ident, base_id)),
                totals=totals,
                percentages=compute_percentages(totals),
                items=tuple(members),
            )
        )
    return groups


def collect_movements(items: Sequence[Item], totals: Totals, kind: str) -> MovementListing:
    if kind not in MOVEMENT_KINDS:
        raise ValueError(f'unknown movement kind: {kind}')

    grand_total = totals.total
    entries = [
        MovementEntry(item_id=item.id, movement=movement, percentage=_share(movement.monto, grand_total))
        for item in items
        for movement in item.movements(kind)
    ]
    # sorted() is stable, so equal amounts keep their input order.
    entries = sorted(entries, key=lambda entry: -entry.monto)
    subtotal = sum(entry.monto for entry in entries)
    return MovementListing(
        kind=kind,
        movements=tuple(entries),
        subtotal=subtotal,
        percentage_of_grand_total=_share(subtotal, grand_total),
    )


def consumption_level(
    totals: Totals,
    *,
    warning_percentage: float = 90.0,
    critical_percentage: float = 100.0,
) -> str:
    if totals.total <= 0:
        return 'unknown'
    raw = totals.total_consumo / totals.total * 100.0
    if raw >= critical_percentage:
        return 'critical'
    if raw >= warning_percentage:
        return 'warning'
    return 'safe'


def _consumption_alert(totals: Totals, ratio: float, message: str) -> Alert | None:
    if totals.total <= 0 or totals.total_consumo < totals.total * ratio:
        return None
    return Alert(severity='warning', message=message)


def build_consumption_alerts(
    groups: Sequence[Group],
    *,
    ratio: float = 0.10,
) -> tuple[dict[str, list[Alert]], dict[str, list[Alert]]]:
    """Alerts per item id and per group base id; supplied alerts plus a warning at ``ratio`` consumption."""
    per_item: dict[str, list[Alert]] = {}
    per_group: dict[str, list[Alert]] = {}
    for group in groups:
        for member in group.items:
            alerts = list(member.item.alerts)
            raw = member.totals.total_consumo / member.totals.total * 100.0 if member.totals.total > 0 else 0.0
            generated = _consumption_alert(
                member.totals,
                ratio,
                f'El consumo del PO {member.id} ha alcanzado el {raw:.2f}%',
            )
            if generated and all(alert.message != generated.message for alert in alerts):
                alerts.append(generated)
            per_item[member.id] = alerts

        if group.totals.total > 0:
            raw = group.totals.total_consumo / group.totals.total * 100.0
            generated = _consumption_alert(
                group.totals,
                ratio,
                f'El consumo total del grupo {group.base_id} supera el {ratio * 100:.0f}% ({raw:.2f}%)',
            )
            per_group[group.base_id] = [generated] if generated else []
        else:
            per_group[group.base_id] = []
    return per_item, per_group
