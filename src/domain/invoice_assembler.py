"""Invoice Row Assembler

Turns a worker's recombined allocations and manual adjustments into invoice
rows, and provides the invoice-level layout operations: ordering, overflow
folding, near-zero correction, chunking and chunk reconstruction.
"""

import logging
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple
from pydantic import BaseModel, Field
from src.domain.billing_entity import BillingEntity
from src.domain.cost_line_item import FlexsaveCostType
from src.domain.credit_ledger import ZERO
from src.domain.exceptions import ConfigurationError
from src.domain.invoice import Invoice
from src.domain.invoice_adjustment import InvoiceAdjustment, FLEXSAVE_SAVINGS
from src.domain.invoice_row import InvoiceRow, RowRank, quantity_and_value, row_sort_key
from src.domain.marketplace import (
    AccountAllocation,
    MARKETPLACE_AGGREGATE,
    MARKETPLACE_NONE,
    marketplace_invoicing_mode,
)
from src.domain.product import ProductType, get_profile
from src.domain.base import generate_uuid

logger = logging.getLogger(__name__)

MIN_TOTAL = Decimal("0.01")
# Running totals closer to zero than this count as net-zero
NET_ZERO_EPSILON = Decimal("0.000001")
USAGE_CURRENCY = "USD"
FLEXSAVE_DESCRIPTION = "Flexsave"
CORRECTION_DESCRIPTION = "Invoice Correction"
CORRECTION_DETAILS = "Rounding correction"
CREDIT_DISCOUNT_DETAILS = "{} (Adjustment for Discount)"


class AccountContext(BaseModel):
    """Where an account's rows are invoiced"""

    account_id: str
    asset_id: str
    entity_id: str
    bucket_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class InvoiceRowAssembler:
    """
    Builds one product worker's invoice rows

    Rows produced:
    - one LINE_ITEM row per account, or per marketplace constituent
    - one CREDIT row per entity/bucket/category and credit, followed by
      its contract discount adjustment when the credit covered discounted usage
    - one ADJUSTMENT row per entity/bucket and Flexsave cost type
    - one ADJUSTMENT row per manual adjustment
    """

    def __init__(self, product_type: ProductType, final: bool):
        self.product_type = ProductType(product_type)
        self.profile = get_profile(self.product_type)
        self.final = final

    def assemble(
        self,
        allocations: Dict[str, AccountAllocation],
        contexts: Dict[str, AccountContext],
        entities: Dict[str, BillingEntity],
        credit_names: Dict[str, str],
        adjustments: Sequence[InvoiceAdjustment] = (),
    ) -> List[InvoiceRow]:
        rows: List[InvoiceRow] = []
        credit_batches: Dict[Tuple[str, Optional[str], str], Dict[str, Decimal]] = {}
        discount_batches: Dict[Tuple[str, Optional[str], str], Dict[str, Decimal]] = {}
        flexsave_batches: Dict[Tuple[str, Optional[str]], Dict[FlexsaveCostType, Decimal]] = {}

        for account_id, allocation in allocations.items():
            context = contexts[account_id]
            entity = entities.get(context.entity_id)
            if entity is None:
                raise ConfigurationError(
                    f"account {account_id} is assigned to unknown entity {context.entity_id}"
                )

            mode = MARKETPLACE_NONE
            if self.profile.supports_marketplace:
                mode = marketplace_invoicing_mode(allocation, entity)

            details = self.profile.details_format.format(account_id)

            if mode == MARKETPLACE_NONE:
                spend = allocation.spend - allocation.flexsave_negation
                self._append_spend_row(rows, context, details, spend, "")
                self._batch_credits(credit_batches, context, "", allocation.credits)
            else:
                for key, constituent in allocation.constituents.items():
                    spend = constituent.spend
                    if key == MARKETPLACE_NONE:
                        spend -= allocation.flexsave_negation
                        category = ""
                    elif mode == MARKETPLACE_AGGREGATE:
                        category = MARKETPLACE_AGGREGATE
                    else:
                        category = key

                    self._append_spend_row(
                        rows, context, f"{details} : {constituent.label}", spend, category
                    )
                    self._batch_credits(credit_batches, context, category, constituent.credits)

            self._batch_credits(discount_batches, context, "", allocation.credit_discounts)

            if allocation.flexsave:
                batch = flexsave_batches.setdefault((context.entity_id, context.bucket_id), {})
                for cost_type, amount in allocation.flexsave.items():
                    batch[cost_type] = batch.get(cost_type, ZERO) + amount

        rows.extend(self._credit_rows(credit_batches, discount_batches, credit_names))
        rows.extend(self._flexsave_rows(flexsave_batches))
        rows.extend(self._adjustment_rows(rows, entities, adjustments))
        return rows

    def _append_spend_row(
        self,
        rows: List[InvoiceRow],
        context: AccountContext,
        details: str,
        spend: Decimal,
        category: str,
    ) -> None:
        if spend == 0:
            return

        quantity, value = quantity_and_value(spend)
        rows.append(
            InvoiceRow(
                description=self.profile.description,
                details=details,
                quantity=quantity,
                ppu=value,
                currency=USAGE_CURRENCY,
                total=spend,
                rank=RowRank.LINE_ITEM,
                product_type=self.product_type.value,
                entity_id=context.entity_id,
                bucket_id=context.bucket_id,
                category=category,
                tags=list(context.tags),
                final=self.final,
            )
        )

    @staticmethod
    def _batch_credits(batches, context: AccountContext, category: str, credits: Dict[str, Decimal]):
        if not credits:
            return
        batch = batches.setdefault((context.entity_id, context.bucket_id, category), {})
        for credit_id, amount in credits.items():
            batch[credit_id] = batch.get(credit_id, ZERO) + amount

    def _credit_rows(self, batches, discount_batches, credit_names: Dict[str, str]) -> List[InvoiceRow]:
        rows = []
        for batch_key, credits in batches.items():
            entity_id, bucket_id, category = batch_key
            discounts = discount_batches.get(batch_key, {})
            for credit_id, value in credits.items():
                if value == 0:
                    continue
                name = credit_names.get(credit_id, credit_id)
                rows.append(
                    InvoiceRow(
                        description=self.profile.credit_description,
                        details=name,
                        quantity=-1,
                        ppu=value,
                        currency=USAGE_CURRENCY,
                        total=-value,
                        rank=RowRank.CREDIT,
                        product_type=self.product_type.value,
                        entity_id=entity_id,
                        bucket_id=bucket_id,
                        category=category,
                        final=self.final,
                    )
                )

                discount = discounts.get(credit_id, ZERO)
                if discount > 0:
                    rows.append(
                        InvoiceRow(
                            description=self.profile.credit_description,
                            details=CREDIT_DISCOUNT_DETAILS.format(name),
                            quantity=1,
                            ppu=discount,
                            currency=USAGE_CURRENCY,
                            total=discount,
                            rank=RowRank.CREDIT,
                            product_type=self.product_type.value,
                            entity_id=entity_id,
                            bucket_id=bucket_id,
                            category=category,
                            final=self.final,
                        )
                    )
        return rows

    def _flexsave_rows(self, batches) -> List[InvoiceRow]:
        rows = []
        for (entity_id, bucket_id), amounts in batches.items():
            for cost_type in FlexsaveCostType:
                amount = amounts.get(cost_type, ZERO)
                if abs(amount) < NET_ZERO_EPSILON:
                    continue
                quantity, value = quantity_and_value(amount)
                rows.append(
                    InvoiceRow(
                        description=FLEXSAVE_DESCRIPTION,
                        details=cost_type.value,
                        quantity=quantity,
                        ppu=value,
                        currency=USAGE_CURRENCY,
                        total=amount,
                        rank=RowRank.ADJUSTMENT,
                        product_type=self.product_type.value,
                        entity_id=entity_id,
                        bucket_id=bucket_id,
                        final=self.final,
                    )
                )
        return rows

    def _adjustment_rows(
        self,
        rows: Sequence[InvoiceRow],
        entities: Dict[str, BillingEntity],
        adjustments: Sequence[InvoiceAdjustment],
    ) -> List[InvoiceRow]:
        running_totals: Dict[str, Decimal] = {}
        entities_with_credits = set()
        for row in rows:
            running_totals[row.entity_id] = running_totals.get(row.entity_id, ZERO) + row.total
            if row.rank == RowRank.CREDIT:
                entities_with_credits.add(row.entity_id)

        adjustment_rows = []
        for adjustment in adjustments:
            if adjustment.entity_id not in entities:
                raise ConfigurationError(
                    f"adjustment {adjustment.id} references unknown entity {adjustment.entity_id}"
                )

            amount = Decimal(adjustment.amount)
            if amount == 0:
                continue

            if adjustment.description == FLEXSAVE_SAVINGS and adjustment.entity_id in entities_with_credits:
                running_total = running_totals.get(adjustment.entity_id, ZERO)
                if abs(running_total) < NET_ZERO_EPSILON:
                    logger.info(
                        f"Skipping {FLEXSAVE_SAVINGS} adjustment {adjustment.id}: "
                        f"entity {adjustment.entity_id} is already net-zero"
                    )
                    continue
                if running_total > 0:
                    amount = max(-running_total, amount)

            quantity, value = quantity_and_value(amount)
            adjustment_rows.append(
                InvoiceRow(
                    description=adjustment.description,
                    details=adjustment.details,
                    quantity=quantity,
                    ppu=value,
                    currency=adjustment.currency,
                    total=amount,
                    rank=RowRank.ADJUSTMENT,
                    product_type=self.product_type.value,
                    entity_id=adjustment.entity_id,
                    final=adjustment.final,
                )
            )
            running_totals[adjustment.entity_id] = (
                running_totals.get(adjustment.entity_id, ZERO) + amount
            )

        return adjustment_rows


def order_rows(rows: Sequence[InvoiceRow]) -> List[InvoiceRow]:
    """
    Bucket headers first, then rows grouped by product type, each group
    ordered by rank ascending and total descending
    """
    headers = [row for row in rows if row.rank == RowRank.BUCKET_HEADER]
    body = [row for row in rows if row.rank != RowRank.BUCKET_HEADER]
    body.sort(key=lambda row: (row.product_type, *row_sort_key(row)))
    return headers + body


def fold_overflow_rows(rows: Sequence[InvoiceRow], max_line_items: int) -> List[InvoiceRow]:
    """
    Fold untagged line items beyond max_line_items into one extras row per
    product type. Expects rows ordered by order_rows; the invoice total is
    unchanged.
    """
    result: List[InvoiceRow] = []
    line_items: Dict[str, int] = {}
    extras: Dict[str, Decimal] = {}
    extras_template: Dict[str, InvoiceRow] = {}
    extras_position: Dict[str, int] = {}

    for row in rows:
        profile = get_profile(ProductType(row.product_type))
        if row.rank != RowRank.LINE_ITEM or row.tags or profile.overflow_label is None:
            result.append(row)
            continue

        count = line_items.get(row.product_type, 0)
        if count < max_line_items:
            line_items[row.product_type] = count + 1
            result.append(row)
            continue

        extras[row.product_type] = extras.get(row.product_type, ZERO) + row.total
        extras_template.setdefault(row.product_type, row)
        extras_position[row.product_type] = len(result)

    # Insert from the back so earlier positions stay valid
    for product_type in sorted(extras, key=lambda key: extras_position[key], reverse=True):
        total = extras[product_type]
        if total == 0:
            continue
        template = extras_template[product_type]
        quantity, value = quantity_and_value(total)
        result.insert(
            extras_position[product_type],
            InvoiceRow(
                description=template.description,
                details=get_profile(ProductType(product_type)).overflow_label,
                quantity=quantity,
                ppu=value,
                currency=template.currency,
                total=total,
                rank=RowRank.LINE_ITEM,
                product_type=product_type,
                entity_id=template.entity_id,
                bucket_id=template.bucket_id,
                category=template.category,
                final=template.final,
            ),
        )

    return result


def near_zero_correction(
    rows: Sequence[InvoiceRow],
    min_total: Decimal = MIN_TOTAL,
) -> Optional[InvoiceRow]:
    """
    Correction row moving a near-zero AWS/GCP invoice total just outside
    (-min_total, min_total); None when no correction applies
    """
    if not rows:
        return None

    template = next((row for row in rows if row.rank != RowRank.BUCKET_HEADER), rows[0])
    if not get_profile(ProductType(template.product_type)).near_zero_correction:
        return None

    total = sum((row.total for row in rows), ZERO)
    if abs(total) >= min_total:
        return None

    has_credits = any(row.rank == RowRank.CREDIT for row in rows)
    if has_credits or total < 0:
        correction = -min_total - total
    else:
        correction = min_total - total

    quantity, value = quantity_and_value(correction)
    return InvoiceRow(
        description=CORRECTION_DESCRIPTION,
        details=CORRECTION_DETAILS,
        quantity=quantity,
        ppu=value,
        currency=template.currency,
        total=correction,
        rank=RowRank.ADJUSTMENT,
        product_type=template.product_type,
        entity_id=template.entity_id,
        bucket_id=template.bucket_id,
        category=template.category,
        final=True,
    )


class InvoiceChunk(NamedTuple):
    invoice: Invoice
    rows: List[InvoiceRow]


def chunk_invoice(invoice: Invoice, rows: Sequence[InvoiceRow], max_rows: int) -> List[InvoiceChunk]:
    """
    Split an invoice whose row count exceeds max_rows into chunks sharing one
    group_id. Row order is preserved; positions restart in every chunk.

    Each chunk carries the total of its own rows, so the chunk totals of a
    group add up to the logical invoice total.
    """
    if len(rows) <= max_rows:
        _place_rows(invoice, rows)
        return [InvoiceChunk(invoice, list(rows))]

    group_id = generate_uuid()
    slices = [rows[start:start + max_rows] for start in range(0, len(rows), max_rows)]

    chunks = []
    for index, chunk_rows in enumerate(slices):
        chunk = invoice if index == 0 else Invoice(**invoice.model_dump(exclude={"id"}))
        chunk.group_id = group_id
        chunk.chunk_index = index
        chunk.chunk_count = len(slices)
        chunk.total = sum(
            (row.total for row in chunk_rows if row.rank != RowRank.BUCKET_HEADER), ZERO
        )
        _place_rows(chunk, chunk_rows)
        chunks.append(InvoiceChunk(chunk, list(chunk_rows)))

    return chunks


def reconstruct_rows(chunks: Sequence[InvoiceChunk]) -> List[InvoiceRow]:
    """Concatenate chunk rows in chunk order, reproducing the pre-split sequence"""
    ordered = sorted(chunks, key=lambda chunk: chunk.invoice.chunk_index)
    return [
        row
        for chunk in ordered
        for row in sorted(chunk.rows, key=lambda row: row.position)
    ]


def _place_rows(invoice: Invoice, rows: Sequence[InvoiceRow]) -> None:
    for position, row in enumerate(rows):
        row.invoice_id = invoice.id
        row.position = position
