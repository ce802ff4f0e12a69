"""
StockLedger — Catalog Import / Export

Tabular exchange of the item catalog (CSV and XLSX). The column order of
EXPORT_HEADERS is the file contract.

Import validates every row before writing anything, then applies each
valid row in its own transaction. Stated stock is never written directly:
the difference between the file and the ledger is booked as one
ADJUSTMENT movement, so imported stock stays reconcilable.

@file catalog/exchange.py
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from openpyxl import load_workbook
from rest_framework.exceptions import APIException

from core.constants import AUDIT_ACTION_IMPORT
from core.services import AuditService
from locations.models import Location
from locations.services import LocationService
from stock.models import StockBalance
from stock.services import QUANTITY_LIMIT, LedgerService

from .models import Item, StockThreshold
from .services import ItemService

logger = logging.getLogger('stockledger')

EXPORT_HEADERS = [
    'item_code',
    'name',
    'description',
    'category',
    'unit',
    'current_stock',
    'min_stock',
    'max_stock',
    'unit_cost',
    'supplier',
    'supplier_code',
    'expiry_date',
    'batch_number',
    'location',
    'active',
]

IMPORT_REFERENCE_TYPE = 'catalog_import'

NA_SET = {'', '-', 'na', 'n/a', 'null', 'none'}
ISO_DATE_REGEX = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Accept the category label as well as its stored value ("Spare part" / SPARE_PART).
CATEGORY_LOOKUP = {
    **{value.lower(): value for value in Item.CategoryChoices.values},
    **{str(label).lower(): value for value, label in Item.CategoryChoices.choices},
}

_unit_cost_field = Item._meta.get_field('unit_cost')
UNIT_COST_LIMIT = Decimal(10) ** (_unit_cost_field.max_digits - _unit_cost_field.decimal_places)


@dataclass
class ImportResult:
    success_count: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'success_count': self.success_count,
            'warnings': self.warnings,
            'errors': self.errors,
        }


@dataclass
class ParsedRow:
    line: int
    code: str
    fields: dict[str, Any]
    current_stock: Decimal | None
    min_stock: Decimal | None
    max_stock: Decimal | None
    location: Location | None
    active: bool


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------

def _norm_header(header: Any) -> str:
    text = ('' if header is None else str(header)).strip().lower()
    text = text.replace('\ufeff', '')
    return re.sub(r'\s+', '_', text)


def _text(value: Any) -> str:
    if value is None:
        return ''
    text = str(value).strip()
    return '' if text.lower() in NA_SET else text


def _parse_decimal(value: Any) -> Decimal | None:
    """Blank → None; "1,234.50" → Decimal('1234.50'); anything else raises ValueError."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decimal(str(value))
    text = _text(value).replace(',', '')
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(text)
    if not number.is_finite():
        raise ValueError(text)
    return number


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    if not text:
        return None
    if not ISO_DATE_REGEX.match(text):
        raise ValueError(text)
    return date.fromisoformat(text)


def _format_decimal(value: Decimal | None) -> str:
    if value is None:
        return ''
    return format(value.normalize(), 'f') if value != 0 else '0'


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CatalogExchangeService:
    """CSV / XLSX import and export of the item catalog."""

    # --- Readers ---

    @staticmethod
    def read_csv(text: str) -> list[dict[str, Any]]:
        if text.startswith('\ufeff'):
            text = text[1:]
        try:
            dialect = csv.Sniffer().sniff(text[:2048], delimiters=',;\t')
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ','
        reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
        return [
            {_norm_header(key): value for key, value in row.items() if key is not None}
            for row in reader
        ]

    @staticmethod
    def read_xlsx(content: bytes) -> list[dict[str, Any]]:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        try:
            rows = list(workbook.active.iter_rows(values_only=True))
        finally:
            workbook.close()
        if not rows:
            return []
        headers = [_norm_header(h) for h in rows[0]]
        out = []
        for values in rows[1:]:
            if all(v is None or str(v).strip() == '' for v in values):
                continue
            out.append({
                header: values[i] if i < len(values) else None
                for i, header in enumerate(headers) if header
            })
        return out

    @classmethod
    def read_upload(cls, filename: str, content: bytes) -> list[dict[str, Any]]:
        if filename.lower().endswith('.xlsx'):
            return cls.read_xlsx(content)
        try:
            text = content.decode('utf-8-sig')
        except UnicodeDecodeError:
            text = content.decode('latin-1')
        return cls.read_csv(text)

    # --- Export ---

    @staticmethod
    def export_catalog() -> list[list[str]]:
        """
        Header plus one row per active item per tracked location. A location
        is tracked for an item when a balance row or a threshold exists; an
        item tracked nowhere is exported once with no location and stock 0.
        """
        balances = {
            (b.item_id, b.location_id): b
            for b in StockBalance.objects
            .filter(item__is_active=True, location__is_active=True)
            .select_related('location')
        }
        thresholds = {
            (t.item_id, t.location_id): t
            for t in StockThreshold.objects
            .filter(item__is_active=True, location__is_active=True)
            .select_related('location')
        }
        locations = {}
        for key, row in list(balances.items()) + list(thresholds.items()):
            locations.setdefault(key[0], {})[key[1]] = row.location

        rows = [list(EXPORT_HEADERS)]
        for item in Item.objects.filter(is_active=True).order_by('code'):
            tracked = sorted(locations.get(item.pk, {}).values(), key=lambda loc: loc.code)
            for location in tracked or [None]:
                key = (item.pk, location.pk if location else None)
                balance = balances.get(key)
                threshold = thresholds.get(key)
                rows.append([
                    item.code,
                    item.name,
                    item.description,
                    item.category,
                    item.unit,
                    _format_decimal(balance.quantity if balance else Decimal('0')),
                    _format_decimal(threshold.min_level if threshold else None),
                    _format_decimal(threshold.max_level if threshold else None),
                    _format_decimal(item.unit_cost),
                    item.supplier_name,
                    item.supplier_code,
                    item.expiry_date.isoformat() if item.expiry_date else '',
                    item.batch_number,
                    location.code if location else '',
                    'Yes' if item.is_active else 'No',
                ])
        return rows

    @classmethod
    def export_catalog_csv(cls) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
        writer.writerows(cls.export_catalog())
        return buffer.getvalue()

    @staticmethod
    def template_rows() -> list[list[str]]:
        primary = LocationService.get_default_location()
        return [
            list(EXPORT_HEADERS),
            [
                'ITEM001', 'Sample item', 'Item description', Item.CategoryChoices.FOOD,
                'pcs', '100', '10', '500', '1500', 'Supplier ABC', 'SUP001',
                '2030-12-31', 'LOT2030001', primary.code if primary else 'MAIN', 'Yes',
            ],
        ]

    # --- Import ---

    @classmethod
    def import_catalog(cls, rows: Iterable[dict[str, Any]], *, actor=None) -> ImportResult:
        """
        Best-effort import. Invalid rows are reported as "Line N: reason, reason"
        and skipped; line numbers count the header as line 1.
        """
        result = ImportResult()
        parsed = []
        default_location = LocationService.get_default_location()
        for index, raw in enumerate(rows):
            line = index + 2
            row, reasons = cls._validate_row(raw, line, default_location)
            if reasons:
                result.errors.append(f'Line {line}: {", ".join(reasons)}')
            else:
                parsed.append(row)

        for row in parsed:
            try:
                with transaction.atomic():
                    warning = cls._apply_row(row, actor=actor)
            except APIException as exc:
                result.errors.append(f'Line {row.line}: {exc.detail}')
                logger.warning('Catalog import line %d failed: %s', row.line, exc.detail)
                continue
            except ValidationError as exc:
                result.errors.append(f'Line {row.line}: {"; ".join(exc.messages)}')
                logger.warning('Catalog import line %d failed: %s', row.line, exc.messages)
                continue
            except DatabaseError as exc:
                result.errors.append(f'Line {row.line}: could not be stored ({exc})')
                logger.warning('Catalog import line %d failed in the database: %s', row.line, exc)
                continue
            result.success_count += 1
            if warning:
                result.warnings.append(warning)

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_IMPORT,
            model_name='Item',
            object_id='catalog-import',
            new_values={
                'success_count': result.success_count,
                'warnings': len(result.warnings),
                'errors': len(result.errors),
            },
        )
        logger.info(
            'Catalog import: %d imported, %d warnings, %d errors.',
            result.success_count, len(result.warnings), len(result.errors),
        )
        return result

    @staticmethod
    def _validate_row(raw: dict[str, Any], line: int, default_location) -> tuple[ParsedRow | None, list[str]]:
        raw = {_norm_header(k): v for k, v in raw.items()}
        reasons = []

        code = _text(raw.get('item_code'))
        name = _text(raw.get('name'))
        category_text = _text(raw.get('category'))
        unit = _text(raw.get('unit'))
        if not code:
            reasons.append('missing item_code')
        if not name:
            reasons.append('missing name')
        if not category_text:
            reasons.append('missing category')
        if not unit:
            reasons.append('missing unit')
        category = CATEGORY_LOOKUP.get(category_text.lower()) if category_text else None
        if category_text and category is None:
            reasons.append(f'unknown category "{category_text}"')

        numbers = {}
        for column in ('current_stock', 'min_stock', 'max_stock', 'unit_cost'):
            try:
                numbers[column] = _parse_decimal(raw.get(column))
            except ValueError:
                reasons.append(f'{column} must be a number')
                numbers[column] = None
        for column in ('current_stock', 'min_stock', 'max_stock', 'unit_cost'):
            limit = UNIT_COST_LIMIT if column == 'unit_cost' else QUANTITY_LIMIT
            if numbers[column] is not None and abs(numbers[column]) >= limit:
                reasons.append(f'{column} is out of range')
                numbers[column] = None
        if numbers['min_stock'] is not None and numbers['min_stock'] < 0:
            reasons.append('min_stock cannot be negative')
        if numbers['unit_cost'] is not None and numbers['unit_cost'] < 0:
            reasons.append('unit_cost cannot be negative')
        if (
            numbers['min_stock'] is not None
            and numbers['max_stock'] is not None
            and numbers['min_stock'] > numbers['max_stock']
        ):
            reasons.append('min_stock cannot exceed max_stock')

        try:
            expiry_date = _parse_date(raw.get('expiry_date'))
        except ValueError:
            reasons.append('expiry_date must use the YYYY-MM-DD format')
            expiry_date = None

        active_text = _text(raw.get('active')).lower()
        if active_text in ('', 'yes'):
            active = True
        elif active_text == 'no':
            active = False
        else:
            reasons.append('active must be Yes or No')
            active = True

        location_text = _text(raw.get('location'))
        if location_text:
            location = LocationService.find(location_text)
            if location is None:
                reasons.append(f'unknown location "{location_text}"')
            elif not location.is_active:
                reasons.append(f'location "{location_text}" is inactive')
        else:
            location = default_location
        needs_location = (
            bool(numbers['current_stock'])
            or numbers['min_stock'] is not None
            or numbers['max_stock'] is not None
        )
        if location is None and needs_location and not location_text:
            reasons.append('no location given and no default location configured')

        if reasons:
            return None, reasons
        return ParsedRow(
            line=line,
            code=code,
            fields={
                'name': name,
                'description': _text(raw.get('description')),
                'category': category,
                'unit': unit,
                'unit_cost': numbers['unit_cost'],
                'supplier_name': _text(raw.get('supplier')),
                'supplier_code': _text(raw.get('supplier_code')),
                'expiry_date': expiry_date,
                'batch_number': _text(raw.get('batch_number')),
            },
            current_stock=numbers['current_stock'],
            min_stock=numbers['min_stock'],
            max_stock=numbers['max_stock'],
            location=location,
            active=active,
        ), []

    @staticmethod
    def _apply_row(row: ParsedRow, *, actor=None) -> str | None:
        warning = None
        item = Item.objects.select_for_update().filter(code__iexact=row.code).first()
        if item is None:
            item = ItemService.create_item(actor=actor, code=row.code, **row.fields)
        else:
            if not item.is_active:
                ItemService.reactivate_item(item_id=item.pk, actor=actor)
            item = ItemService.update_item(item_id=item.pk, actor=actor, **row.fields)
            warning = f'Line {row.line}: item "{item.code}" updated'

        if row.location is not None:
            if row.min_stock is not None or row.max_stock is not None:
                current = ItemService.get_threshold(item.pk, row.location.pk)
                ItemService.set_threshold(
                    item_id=item.pk,
                    location_id=row.location.pk,
                    min_level=row.min_stock if row.min_stock is not None else (current.min_level if current else 0),
                    max_level=row.max_stock,
                    actor=actor,
                )
            if row.current_stock is not None:
                LedgerService.adjust_to(
                    item_id=item.pk,
                    location_id=row.location.pk,
                    target=row.current_stock,
                    reference_type=IMPORT_REFERENCE_TYPE,
                    notes=f'Catalog import, line {row.line}',
                    actor=actor,
                )

        if not row.active:
            ItemService.deactivate_item(item_id=item.pk, actor=actor)
        return warning
