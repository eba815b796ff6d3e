"""Invoice Builder

Groups validated rows of all product workers into invoices by the billing
entity's invoicing mode, lays each invoice out, decides whether it is
final, and chunks oversized invoices.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple
from pydantic import BaseModel
from src.domain.billing_entity import BillingEntity, Bucket, InvoicingMode
from src.domain.credit_ledger import ZERO
from src.domain.exceptions import ConfigurationError
from src.domain.invoice import Invoice, InconclusiveReason
from src.domain.invoice_assembler import (
    InvoiceChunk,
    MIN_TOTAL,
    chunk_invoice,
    fold_overflow_rows,
    near_zero_correction,
    order_rows,
)
from src.domain.invoice_row import InvoiceRow, RowRank
from src.domain.product import ProductType, get_profile

logger = logging.getLogger(__name__)

BUCKET_HEADER_DESCRIPTION = "Invoice Bucket"
_MARKETPLACE_PRODUCTS = {
    ProductType.AMAZON_WEB_SERVICES.value,
    ProductType.AMAZON_WEB_SERVICES_STANDALONE.value,
}


class ProductInvoicingStats(BaseModel):
    total: Decimal = ZERO
    credits: Decimal = ZERO
    adjustments: Decimal = ZERO
    num_invoices: int = 0
    num_credits: int = 0
    num_adjustments: int = 0


class BuildResult(NamedTuple):
    """Chunks ready for persistence plus per-invoice problems"""

    chunks: List[InvoiceChunk]
    errors: List[Tuple[Optional[str], str]]
    stats: Dict[str, ProductInvoicingStats]


class _Draft:
    def __init__(self, key: str, entity: BillingEntity):
        self.key = key
        self.entity = entity
        self.rows: List[InvoiceRow] = []


class InvoiceBuilder:
    """
    Builds a customer's invoices for one month

    Usage:
        builder = InvoiceBuilder(customer_id, invoice_month, entities, buckets, now)
        builder.add_rows(ProductType.GOOGLE_CLOUD, rows)
        result = builder.build()
    """

    def __init__(
        self,
        customer_id: str,
        invoice_month: date,
        entities: Dict[str, BillingEntity],
        buckets: Dict[str, Bucket],
        now: datetime,
        rates: Optional[Dict[str, Decimal]] = None,
        max_line_items: int = 30,
        max_rows: int = 500,
        min_total: Decimal = MIN_TOTAL,
        low_cost_threshold: Decimal = Decimal("1"),
        non_final_expire_days: int = 45,
    ):
        self.customer_id = customer_id
        self.invoice_month = invoice_month
        self.entities = entities
        self.buckets = buckets
        self.now = now
        self.rates = rates or {}
        self.max_line_items = max_line_items
        self.max_rows = max_rows
        self.min_total = min_total
        self.low_cost_threshold = low_cost_threshold
        self.non_final_expire_days = non_final_expire_days
        self._drafts: Dict[str, _Draft] = {}

    def add_rows(self, product_type: ProductType, rows: Sequence[InvoiceRow]) -> None:
        """
        Raises:
            ConfigurationError: A CUSTOM entity has no default bucket
        """
        product_type = ProductType(product_type)
        profile = get_profile(product_type)

        force_custom = False
        if product_type.value in _MARKETPLACE_PRODUCTS:
            force_custom = len({row.category for row in rows}) > 1

        for row in rows:
            entity = self.entities[row.entity_id]

            mode = entity.invoicing_mode
            if force_custom:
                mode = InvoicingMode.CUSTOM
            elif mode == InvoicingMode.CUSTOM and profile.group_instead_of_custom:
                mode = InvoicingMode.GROUP

            if mode == InvoicingMode.SINGLE:
                self._draft(entity.id, entity).rows.append(row)
            elif mode == InvoicingMode.GROUP:
                self._draft(f"{entity.id}-{product_type.value}", entity).rows.append(row)
            else:
                self._add_custom_row(entity, product_type, row, forced=force_custom)

    def _add_custom_row(self, entity: BillingEntity, product_type: ProductType, row: InvoiceRow, forced: bool):
        bucket_id = row.bucket_id or entity.default_bucket_id
        if bucket_id is None and not forced:
            raise ConfigurationError(
                f"entity {entity.id} uses CUSTOM invoicing without a default bucket"
            )

        key = f"{entity.id}-{bucket_id or product_type.value}"
        if row.category:
            key = f"{key}_{row.category}"

        is_new = key not in self._drafts
        draft = self._draft(key, entity)

        bucket = self.buckets.get(bucket_id) if bucket_id else None
        if is_new and bucket is not None:
            draft.rows.append(
                InvoiceRow(
                    description=BUCKET_HEADER_DESCRIPTION,
                    details=bucket.name,
                    quantity=0,
                    ppu=ZERO,
                    currency=row.currency,
                    total=ZERO,
                    rank=RowRank.BUCKET_HEADER,
                    product_type=product_type.value,
                    entity_id=entity.id,
                    bucket_id=bucket.id,
                    category=row.category,
                    final=True,
                )
            )

        draft.rows.append(row)

    def _draft(self, key: str, entity: BillingEntity) -> _Draft:
        if key not in self._drafts:
            self._drafts[key] = _Draft(key, entity)
        return self._drafts[key]

    def build(self) -> BuildResult:
        chunks: List[InvoiceChunk] = []
        errors: List[Tuple[Optional[str], str]] = []
        stats: Dict[str, ProductInvoicingStats] = {}

        for draft in self._drafts.values():
            content = [row for row in draft.rows if row.rank != RowRank.BUCKET_HEADER]
            if not content:
                continue

            product_types = sorted({row.product_type for row in content})
            if len(product_types) > 1:
                message = f"invoice {draft.key} mixes product types {', '.join(product_types)}"
                logger.error(message)
                errors.append((None, message))
                continue
            product_type = product_types[0]

            max_line_items = max(self.max_line_items, draft.entity.max_line_items or 0)
            rows = fold_overflow_rows(order_rows(draft.rows), max_line_items)

            correction = near_zero_correction(rows, self.min_total)
            if correction is not None:
                rows.append(correction)

            invoice = self._invoice(draft, product_type, rows)
            total = invoice.total
            chunks.extend(chunk_invoice(invoice, rows, self.max_rows))

            product_stats = stats.setdefault(product_type, ProductInvoicingStats())
            product_stats.num_invoices += 1
            product_stats.total += total
            for row in rows:
                if row.rank == RowRank.CREDIT:
                    product_stats.credits += row.total
                    product_stats.num_credits += 1
                elif row.rank == RowRank.ADJUSTMENT:
                    product_stats.adjustments += row.total
                    product_stats.num_adjustments += 1

        return BuildResult(chunks=chunks, errors=errors, stats=stats)

    def _invoice(self, draft: _Draft, product_type: str, rows: List[InvoiceRow]) -> Invoice:
        content = [row for row in rows if row.rank != RowRank.BUCKET_HEADER]
        total = sum((row.total for row in content), ZERO)
        currencies = sorted({row.currency for row in content})
        currency = content[0].currency

        final = all(row.final for row in rows)
        reason = None
        if len(currencies) > 1:
            final = False
            reason = InconclusiveReason.CURRENCY_ERROR
        elif final and not get_profile(ProductType(product_type)).exempt_from_low_cost:
            total_usd = total / Decimal(self.rates.get(currency, 1))
            if total_usd <= self.low_cost_threshold:
                final = False
                reason = InconclusiveReason.LOW_COST

        return Invoice(
            customer_id=self.customer_id,
            entity_id=draft.entity.id,
            invoice_key=draft.key,
            product_type=product_type,
            invoice_month=self.invoice_month,
            details=f"Covering {self.invoice_month.strftime('%B %Y')}",
            currency=currency,
            total=total,
            final=final,
            inconclusive_reason=reason,
            expire_by=None if final else self.now + timedelta(days=self.non_final_expire_days),
            timestamp=self.now,
        )
