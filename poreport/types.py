from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .formatting import coerce_amount, company_label


_INPUT_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

ALERT_SEVERITIES = ('info', 'warning', 'danger')
_SEVERITY_ALIASES = {
    'alerta': 'warning',
    'warn': 'warning',
    'critical': 'danger',
    'error': 'danger',
    'success': 'info',
}
MOVEMENT_KINDS = ('remisiones', 'facturas')
_EXTENSION_SUFFIX = re.compile(r'-\d+$')


def _clean_id(value: Any) -> str:
    return str(value if value is not None else '').strip()


def derive_base_id(item_id: Any, explicit: Any = None) -> str:
    """Root id of an item: the explicit base id, else the id without a trailing -<digits>."""
    token = _clean_id(explicit)
    if token:
        return token
    ident = _clean_id(item_id)
    return _EXTENSION_SUFFIX.sub('', ident) or ident


class Movement(BaseModel):
    model_config = _INPUT_CONFIG

    id: str = ''
    monto: float = 0.0
    fecha: Any = None
    observaciones: str | None = None

    @model_validator(mode='before')
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        if not payload.get('id') and payload.get('folio'):
            payload['id'] = payload['folio']
        if payload.get('monto') is None and payload.get('total') is not None:
            payload['monto'] = payload['total']
        return payload

    @field_validator('id', mode='before')
    @classmethod
    def _strip_id(cls, value: Any) -> str:
        return _clean_id(value)

    @field_validator('monto', mode='before')
    @classmethod
    def _lenient_amount(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator('observaciones', mode='before')
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        text = str(value or '').strip()
        return text or None


class Alert(BaseModel):
    model_config = _INPUT_CONFIG

    severity: str = Field(default='info', alias='type')
    message: str = ''

    @field_validator('severity', mode='before')
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        token = str(value or '').strip().lower()
        token = _SEVERITY_ALIASES.get(token, token)
        return token if token in ALERT_SEVERITIES else 'info'

    @field_validator('message', mode='before')
    @classmethod
    def _strip_message(cls, value: Any) -> str:
        return str(value or '').strip()


class Item(BaseModel):
    model_config = _INPUT_CONFIG

    id: str
    base_id: str | None = Field(default=None, alias='baseId')
    fecha: Any = None
    total: float = 0.0
    subtotal: float = 0.0
    total_rem: float | None = Field(default=None, alias='totalRem')
    total_fac: float | None = Field(default=None, alias='totalFac')
    remisiones: list[Movement] = Field(default_factory=list)
    facturas: list[Movement] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def _lift_nested_totals(cls, data: Any) -> Any:
        # Upstream payloads may carry consumption under a nested "totals" object.
        if not isinstance(data, dict):
            return data
        nested = data.get('totals')
        if not isinstance(nested, dict):
            return data
        payload = dict(data)
        for key in ('totalRem', 'totalFac'):
            if payload.get(key) is None and nested.get(key) is not None:
                payload[key] = nested[key]
        if payload.get('total') is None and nested.get('total') is not None:
            payload['total'] = nested['total']
        return payload

    @field_validator('id', mode='before')
    @classmethod
    def _strip_id(cls, value: Any) -> str:
        return _clean_id(value)

    @field_validator('base_id', mode='before')
    @classmethod
    def _blank_base_id(cls, value: Any) -> str | None:
        token = _clean_id(value)
        return token or None

    @field_validator('total', 'subtotal', mode='before')
    @classmethod
    def _lenient_amount(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator('total_rem', 'total_fac', mode='before')
    @classmethod
    def _lenient_optional_amount(cls, value: Any) -> float | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return coerce_amount(value)

    @field_validator('remisiones', 'facturas', 'alerts', mode='before')
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def movements(self, kind: str) -> list[Movement]:
        if kind not in MOVEMENT_KINDS:
            raise ValueError(f'unknown movement kind: {kind}')
        return self.remisiones if kind == 'remisiones' else self.facturas


class Totals(BaseModel):
    """Consumption amounts. Derived fields are always recomputed on construction."""

    model_config = _INPUT_CONFIG

    total: float = 0.0
    total_rem: float = Field(default=0.0, alias='totalRem')
    total_fac: float = Field(default=0.0, alias='totalFac')
    total_consumo: float = Field(default=0.0, alias='totalConsumo')
    restante: float = 0.0

    @model_validator(mode='before')
    @classmethod
    def _rederive(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        total = coerce_amount(data.get('total'))
        total_rem = coerce_amount(data.get('totalRem', data.get('total_rem')))
        total_fac = coerce_amount(data.get('totalFac', data.get('total_fac')))
        consumo = total_rem + total_fac
        return {
            'total': total,
            'totalRem': total_rem,
            'totalFac': total_fac,
            'totalConsumo': consumo,
            'restante': max(total - consumo, 0.0),
        }

    @classmethod
    def derive(cls, total: Any, total_rem: Any, total_fac: Any) -> Totals:
        return cls.model_validate({'total': total, 'totalRem': total_rem, 'totalFac': total_fac})

    @property
    def overage(self) -> float:
        return max(self.total_consumo - max(self.total, 0.0), 0.0)


class Percentages(BaseModel):
    model_config = ConfigDict(frozen=True)

    rem: float = 0.0
    fac: float = 0.0
    rest: float = 0.0
    consumo: float = 0.0
    overage: float = 0.0


class UniverseInfo(BaseModel):
    model_config = _INPUT_CONFIG

    is_universe: bool = Field(default=False, alias='isUniverse')
    label: str = ''
    description: str = ''
    title: str = ''

    @field_validator('label', 'description', 'title', mode='before')
    @classmethod
    def _none_to_text(cls, value: Any) -> str:
        return str(value or '').strip()


class Summary(BaseModel):
    model_config = _INPUT_CONFIG

    items: list[Item] = Field(default_factory=list)
    totals: Totals | None = None
    universe: UniverseInfo | None = None
    selected_ids: list[str] = Field(default_factory=list, alias='selectedIds')
    company_name: str = Field(default='', alias='companyName')
    observations: list[str] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def _company_fallback(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if str(data.get('companyName') or data.get('company_name') or '').strip():
            return data
        payload = dict(data)
        payload['companyName'] = str(payload.get('empresaLabel') or company_label(payload.get('empresa')))
        return payload

    @field_validator('items', 'observations', mode='before')
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator('observations', mode='before')
    @classmethod
    def _drop_blank_notes(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return value
        return [str(note).strip() for note in value if note is not None and str(note).strip()]

    @field_validator('selected_ids', mode='before')
    @classmethod
    def _unique_base_ids(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [part for part in value.split(',')]
        seen: list[str] = []
        for raw in value:
            base = derive_base_id(raw)
            if base and base not in seen:
                seen.append(base)
        return seen

    @property
    def is_universe(self) -> bool:
        return bool(self.universe and self.universe.is_universe)


# Flat color keys used by the report settings store.
_FLAT_COLOR_KEYS = {
    'remColor': 'remisiones',
    'facColor': 'facturas',
    'restanteColor': 'restante',
}


class ConsumptionColors(BaseModel):
    model_config = _INPUT_CONFIG

    remisiones: str = Field(default='#2563EB', validation_alias=AliasChoices('remisiones', 'remColor'))
    facturas: str = Field(default='#F59E0B', validation_alias=AliasChoices('facturas', 'facColor'))
    restante: str = Field(default='#10B981', validation_alias=AliasChoices('restante', 'restanteColor'))


class Branding(BaseModel):
    model_config = _INPUT_CONFIG

    colors: ConsumptionColors = Field(default_factory=ConsumptionColors)
    accent_color: str = Field(default='#1F2937', alias='accentColor')
    header_text: str = Field(
        default='',
        alias='headerText',
        validation_alias=AliasChoices('headerText', 'headerTitle', 'header_text'),
    )
    header_subtitle: str = Field(default='', alias='headerSubtitle')
    footer_text: str = Field(default='', alias='footerText')
    letterhead_enabled: bool = Field(default=True, alias='letterheadEnabled')
    letterhead_top: Path | None = Field(default=None, alias='letterheadTop')
    letterhead_bottom: Path | None = Field(default=None, alias='letterheadBottom')
    company_name: str = Field(default='', alias='companyName')

    @model_validator(mode='before')
    @classmethod
    def _lift_flat_colors(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not any(data.get(key) for key in _FLAT_COLOR_KEYS):
            return data
        payload = dict(data)
        colors = payload.get('colors')
        if isinstance(colors, BaseModel):
            colors = colors.model_dump(exclude_unset=True)
        colors = dict(colors or {})
        for key, target in _FLAT_COLOR_KEYS.items():
            value = payload.pop(key, None)
            if value:
                colors[target] = value
        payload['colors'] = colors
        return payload


CUSTOMIZATION_SWITCHES = (
    'includeSummary',
    'includeDetail',
    'includeCharts',
    'includeMovements',
    'includeObservations',
    'includeUniverse',
)


class Customization(BaseModel):
    model_config = _INPUT_CONFIG

    include_summary: bool = Field(default=True, alias='includeSummary')
    include_detail: bool = Field(default=True, alias='includeDetail')
    include_charts: bool = Field(default=True, alias='includeCharts')
    include_movements: bool = Field(default=True, alias='includeMovements')
    include_observations: bool = Field(default=True, alias='includeObservations')
    include_universe: bool = Field(default=True, alias='includeUniverse')

    @field_validator('*', mode='before')
    @classmethod
    def _resolve_flag(cls, value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            token = value.strip().lower()
            if token in {'false', '0', 'no', 'off'}:
                return False
            if token in {'true', '1', 'yes', 'on', ''}:
                return True
        return bool(value)

    def enabled(self, switch: str) -> bool:
        if switch not in CUSTOMIZATION_SWITCHES:
            raise KeyError(switch)
        return bool(getattr(self, _SWITCH_FIELDS[switch]))


_SWITCH_FIELDS = {
    'includeSummary': 'include_summary',
    'includeDetail': 'include_detail',
    'includeCharts': 'include_charts',
    'includeMovements': 'include_movements',
    'includeObservations': 'include_observations',
    'includeUniverse': 'include_universe',
}


@dataclass(frozen=True)
class GroupMember:
    item: Item
    totals: Totals
    percentages: Percentages
    is_base: bool

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def total(self) -> float:
        return self.totals.total


@dataclass(frozen=True)
class Group:
    base_id: str
    ids: tuple[str, ...]
    extension_ids: tuple[str, ...]
    totals: Totals
    percentages: Percentages
    items: tuple[GroupMember, ...]

    @property
    def fully_consumed(self) -> bool:
        return self.totals.total > 0 and self.totals.restante <= 0


@dataclass(frozen=True)
class MovementEntry:
    item_id: str
    movement: Movement
    percentage: float

    @property
    def monto(self) -> float:
        return self.movement.monto


@dataclass(frozen=True)
class MovementListing:
    kind: str
    movements: tuple[MovementEntry, ...] = ()
    subtotal: float = 0.0
    percentage_of_grand_total: float = 0.0
