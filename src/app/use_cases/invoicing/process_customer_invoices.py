"""ProcessCustomerInvoices Use Case

Fans a customer's invoicing task out to one worker per product type and
fans the results back in. A failed product is recorded and skipped; it never
blocks the customer's other products.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from libs.result import Result, Return, Error
from src.app.repositories.billing_entity_repository import BillingEntityRepository
from src.app.repositories.credit_repository import CreditRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.repositories.invoicing_error_repository import InvoicingErrorRepository
from src.app.services.notification_service import NotificationService
from src.app.services.unit_of_work import UnitOfWork
from src.domain.billing_entity import BillingEntity
from src.domain.credit_ledger import CreditMutation
from src.domain.exceptions import ConfigurationError, CreditVersionConflictError
from src.domain.invoice_assembler import MIN_TOTAL
from src.domain.invoice_builder import InvoiceBuilder
from src.domain.invoice_row import InvoiceRow
from src.domain.invoicing_error import InvoicingError
from .dtos import CustomerInvoicingTaskDTO, ProcessCustomerInvoicesResultDTO, ProductInvoiceRows
from .product_worker import ProductWorker

logger = logging.getLogger(__name__)

INVALID_ROWS = "INVALID_INVOICE_ROWS"
WORKER_CRASHED = "PRODUCT_WORKER_CRASHED"


class ProcessCustomerInvoices:
    """
    Use Case: Build and persist all invoices of a customer month

    Business Rules:
    1. One worker per product type, at most max_concurrent_workers at a time
    2. Exactly one result is read per launched worker
    3. A worker error or an invalid row (no entity, unknown entity, inactive
       entity) discards that product's rows and is recorded as an InvoicingError
    4. Invoices, error records and credit write-backs commit together
    5. A concurrent credit update fails the whole run (nothing is written)

    Flow:
    1. Load billing entities and buckets
    2. Launch product workers, drain the result channel
    3. Validate and group rows into invoices
    4. Persist invoices (chunked), errors and credit mutations
    5. Commit and send alerts
    """

    def __init__(
        self,
        uow: UnitOfWork,
        entity_repo: BillingEntityRepository,
        invoice_repo: InvoiceRepository,
        error_repo: InvoicingErrorRepository,
        credit_repo: CreditRepository,
        workers: Sequence[ProductWorker],
        notification_service: Optional[NotificationService] = None,
        max_concurrent_workers: int = 4,
        max_line_items: int = 30,
        max_rows: int = 500,
        min_total: Decimal = MIN_TOTAL,
        low_cost_threshold: Decimal = Decimal("1"),
        non_final_expire_days: int = 45,
    ):
        self.uow = uow
        self.entity_repo = entity_repo
        self.invoice_repo = invoice_repo
        self.error_repo = error_repo
        self.credit_repo = credit_repo
        self.workers = list(workers)
        self.notification_service = notification_service
        self.max_concurrent_workers = max_concurrent_workers
        self.max_line_items = max_line_items
        self.max_rows = max_rows
        self.min_total = Decimal(min_total)
        self.low_cost_threshold = Decimal(low_cost_threshold)
        self.non_final_expire_days = non_final_expire_days

    async def execute(
        self, task: CustomerInvoicingTaskDTO
    ) -> Result[ProcessCustomerInvoicesResultDTO]:
        """
        Execute the customer invoicing run

        Args:
            task: CustomerInvoicingTaskDTO with customer, month and run time

        Returns:
            Result[ProcessCustomerInvoicesResultDTO]: run summary or error
        """
        start_time = time.time()
        errors: List[InvoicingError] = []
        mutations: List[CreditMutation] = []

        try:
            entities = {
                entity.id: entity
                for entity in await self.entity_repo.get_by_customer(task.customer_id)
            }
            buckets = {
                bucket.id: bucket
                for bucket in await self.entity_repo.get_buckets(list(entities))
            }

            results = await self._fan_out(task, entities)

            builder = InvoiceBuilder(
                customer_id=task.customer_id,
                invoice_month=task.invoice_month,
                entities=entities,
                buckets=buckets,
                now=task.now,
                rates=task.rates,
                max_line_items=self.max_line_items,
                max_rows=self.max_rows,
                min_total=self.min_total,
                low_cost_threshold=self.low_cost_threshold,
                non_final_expire_days=self.non_final_expire_days,
            )

            failed_products = []
            for product_rows in results:
                product = product_rows.product_type.value

                if product_rows.is_err():
                    error = product_rows.error
                    errors.append(self._error_record(task, product, error.code, error.reason or error.message))
                    failed_products.append(product)
                    continue

                problem = _validate_rows(product_rows.rows, entities)
                if problem is not None:
                    logger.warning(f"Discarding {product} rows of customer {task.customer_id}: {problem}")
                    errors.append(self._error_record(task, product, INVALID_ROWS, problem))
                    failed_products.append(product)
                    continue

                try:
                    builder.add_rows(product_rows.product_type, product_rows.rows)
                except ConfigurationError as e:
                    return await self._abort(task, product, e, errors)

                mutations.extend(product_rows.credit_mutations)

            build = builder.build()
            for product, message in build.errors:
                errors.append(self._error_record(task, product, INVALID_ROWS, message))

            for error in errors:
                await self.error_repo.create(error)
            invoices = await self.invoice_repo.create_chunks(build.chunks)
            credits_updated = await self.credit_repo.apply_mutations(mutations)

            await self.uow.commit()

        except CreditVersionConflictError as e:
            await self.uow.rollback()
            logger.error(f"Invoicing run for customer {task.customer_id} aborted: {e}")
            return Return.err(
                Error(
                    code=e.code,
                    message="Credit was updated concurrently",
                    reason=str(e),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to process invoices for customer {task.customer_id}: {e}")
            return Return.err(
                Error(
                    code="PROCESS_CUSTOMER_INVOICES_FAILED",
                    message="Failed to process customer invoices",
                    reason=str(e),
                )
            )

        await self._notify(task, errors, mutations)

        for product, stats in build.stats.items():
            logger.info(
                f"Customer {task.customer_id} {product}: {stats.num_invoices} invoices, "
                f"total {stats.total}, credits {stats.credits} ({stats.num_credits}), "
                f"adjustments {stats.adjustments} ({stats.num_adjustments})"
            )

        return Return.ok(
            ProcessCustomerInvoicesResultDTO(
                customer_id=task.customer_id,
                invoice_month=task.invoice_month,
                invoices_created=len(invoices),
                credits_updated=credits_updated,
                failed_products=failed_products,
                errors_recorded=len(errors),
                stats=build.stats,
                execution_time_ms=int((time.time() - start_time) * 1000),
            )
        )

    async def _fan_out(
        self, task: CustomerInvoicingTaskDTO, entities: Dict[str, BillingEntity]
    ) -> List[ProductInvoiceRows]:
        channel: asyncio.Queue = asyncio.Queue()
        semaphore = asyncio.Semaphore(self.max_concurrent_workers)

        launched = [
            asyncio.create_task(self._run_worker(worker, task, entities, channel, semaphore))
            for worker in self.workers
        ]
        results = [await channel.get() for _ in launched]
        await asyncio.gather(*launched)

        # Completion order is arbitrary; merge in worker order
        order = {worker.product_type: index for index, worker in enumerate(self.workers)}
        results.sort(key=lambda result: order.get(result.product_type, len(order)))
        return results

    async def _run_worker(
        self,
        worker: ProductWorker,
        task: CustomerInvoicingTaskDTO,
        entities: Dict[str, BillingEntity],
        channel: asyncio.Queue,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            try:
                result = await worker.run(task, entities)
            except Exception as e:
                logger.exception(
                    f"{worker.product_type.value} worker crashed for customer {task.customer_id}"
                )
                result = ProductInvoiceRows(
                    worker.product_type,
                    error=Error(
                        code=WORKER_CRASHED,
                        message=f"{worker.product_type.value} worker crashed",
                        reason=str(e),
                    ),
                )
        await channel.put(result)

    async def _abort(
        self,
        task: CustomerInvoicingTaskDTO,
        product: str,
        error: ConfigurationError,
        errors: List[InvoicingError],
    ) -> Result[ProcessCustomerInvoicesResultDTO]:
        logger.error(f"Invoicing run for customer {task.customer_id} aborted: {error}")
        await self.uow.rollback()
        records = [*errors, self._error_record(task, None, error.code, str(error))]
        for record in records:
            await self.error_repo.create(record)
        await self.uow.commit()
        await self._notify(task, records, [])
        return Return.err(
            Error(
                code=error.code,
                message=f"Customer invoicing aborted while grouping {product} rows",
                reason=str(error),
            )
        )

    async def _notify(
        self,
        task: CustomerInvoicingTaskDTO,
        errors: Sequence[InvoicingError],
        mutations: Sequence[CreditMutation],
    ) -> None:
        if self.notification_service is None:
            return

        for error in errors:
            await self.notification_service.send_invoicing_error_alert(error)
        for mutation in mutations:
            if mutation.newly_depleted:
                await self.notification_service.send_credit_depleted_alert(task.customer_id, mutation)

    @staticmethod
    def _error_record(
        task: CustomerInvoicingTaskDTO, product: Optional[str], code: str, message: str
    ) -> InvoicingError:
        return InvoicingError(
            customer_id=task.customer_id,
            invoice_month=task.invoice_month,
            product_type=product,
            code=code,
            error=message,
            timestamp=task.now,
        )


def _validate_rows(rows: Sequence[InvoiceRow], entities: Dict[str, BillingEntity]) -> Optional[str]:
    for row in rows:
        if not row.entity_id:
            return f"row '{row.details}' has no billing entity"
        entity = entities.get(row.entity_id)
        if entity is None:
            return f"row '{row.details}' references unknown billing entity {row.entity_id}"
        if not entity.active:
            return f"row '{row.details}' references inactive billing entity {row.entity_id}"
    return None
