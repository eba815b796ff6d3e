"""Customer Invoicing Background Worker

Runs the monthly invoicing pass for customers: one ProcessCustomerInvoices
run per customer, with one session per customer run and one per product
worker. Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Result
from src.adapter.repositories.asset_settings_repository import SqlAlchemyAssetSettingsRepository
from src.adapter.repositories.billing_entity_repository import SqlAlchemyBillingEntityRepository
from src.adapter.repositories.contract_charge_repository import SqlAlchemyContractChargeRepository
from src.adapter.repositories.contract_discount_repository import SqlAlchemyContractDiscountRepository
from src.adapter.repositories.cost_line_item_repository import SqlAlchemyCostLineItemRepository
from src.adapter.repositories.credit_repository import SqlAlchemyCreditRepository
from src.adapter.repositories.invoice_adjustment_repository import SqlAlchemyInvoiceAdjustmentRepository
from src.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from src.adapter.repositories.invoicing_error_repository import SqlAlchemyInvoicingErrorRepository
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.notification_service import NotificationService
from src.app.use_cases.invoicing import (
    CustomerInvoicingTaskDTO,
    GenerateProductInvoiceRows,
    InvoicingRunResultDTO,
    ProcessCustomerInvoices,
    ProcessCustomerInvoicesResultDTO,
    ProductInvoiceRows,
    ProductWorker,
)
from src.domain.billing_entity import BillingEntity
from src.domain.billing_period import invoice_month_for, is_final_run
from src.domain.product import ProductType

logger = logging.getLogger(__name__)


class SqlAlchemyProductWorker(ProductWorker):
    """Product worker with its own session and repositories"""

    def __init__(self, product_type: ProductType, session_factory):
        self.product_type = ProductType(product_type)
        self.session_factory = session_factory

    async def run(
        self, task: CustomerInvoicingTaskDTO, entities: Dict[str, BillingEntity]
    ) -> ProductInvoiceRows:
        async with self.session_factory() as session:
            use_case = GenerateProductInvoiceRows(
                product_type=self.product_type,
                cost_repo=SqlAlchemyCostLineItemRepository(session),
                credit_repo=SqlAlchemyCreditRepository(session),
                adjustment_repo=SqlAlchemyInvoiceAdjustmentRepository(session),
                asset_settings_repo=SqlAlchemyAssetSettingsRepository(session),
                contract_charge_repo=SqlAlchemyContractChargeRepository(session),
                contract_discount_repo=SqlAlchemyContractDiscountRepository(session),
                plps_sku_id=ApplicationConfig.PLPS_SKU_ID,
                plps_default_percent=Decimal(str(ApplicationConfig.PLPS_DEFAULT_CHARGE_PERCENT)),
            )
            result = await use_case.execute(task, entities)

        return ProductInvoiceRows.from_result(self.product_type, result)


class CustomerInvoicingWorker:
    """
    Background worker for monthly customer invoicing

    Features:
    - Invoices the previous month by default
    - One product worker per product type, run concurrently
    - Re-runnable: credits are re-derived and invoices superseded each run
    - Can run once or continuously

    Usage:
        # Run once for the previous month
        worker = CustomerInvoicingWorker()
        result = await worker.run_once()

        # Run once for specific customers and month
        result = await worker.run_once(customer_ids=["customer_123"], year=2024, month=1)

        # Run continuously
        await worker.run_forever()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        product_types: Optional[Sequence[ProductType]] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            product_types: Product types to invoice (defaults to all)
            notification_service: Alert sink (defaults to logging + optional webhook)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.product_types = list(product_types or ProductType)
        self.notification_service = notification_service or create_notification_service(
            ApplicationConfig.INVOICING_NOTIFICATION_WEBHOOK
        )

        # Create engine and session factory
        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("CustomerInvoicingWorker initialized")

    def _product_workers(self) -> List[ProductWorker]:
        return [
            SqlAlchemyProductWorker(product_type, self.async_session_factory)
            for product_type in self.product_types
        ]

    async def process_customer(
        self, task: CustomerInvoicingTaskDTO
    ) -> Result[ProcessCustomerInvoicesResultDTO]:
        async with self.async_session_factory() as session:
            use_case = ProcessCustomerInvoices(
                uow=SqlAlchemyUnitOfWork(session),
                entity_repo=SqlAlchemyBillingEntityRepository(session),
                invoice_repo=SqlAlchemyInvoiceRepository(session),
                error_repo=SqlAlchemyInvoicingErrorRepository(session),
                credit_repo=SqlAlchemyCreditRepository(session),
                workers=self._product_workers(),
                notification_service=self.notification_service,
                max_concurrent_workers=ApplicationConfig.INVOICING_MAX_CONCURRENT_WORKERS,
                max_line_items=ApplicationConfig.INVOICE_MAX_LINE_ITEMS,
                max_rows=ApplicationConfig.INVOICE_MAX_ROWS,
                min_total=Decimal(str(ApplicationConfig.INVOICE_MIN_TOTAL)),
                low_cost_threshold=Decimal(str(ApplicationConfig.LOW_COST_THRESHOLD)),
                non_final_expire_days=ApplicationConfig.NON_FINAL_EXPIRE_DAYS,
            )
            return await use_case.execute(task)

    async def run_once(
        self,
        customer_ids: Optional[Sequence[str]] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
        rates: Optional[Dict[str, Decimal]] = None,
    ) -> InvoicingRunResultDTO:
        """
        Run invoicing once for the specified month

        Args:
            customer_ids: Customers to invoice (defaults to all with an active entity)
            year: Year (optional, defaults to previous month)
            month: Month (optional, defaults to previous month)
            rates: Currency rates per USD for low-cost checks

        Returns:
            InvoicingRunResultDTO with summary
        """
        start_time = time.time()
        now = datetime.utcnow()
        invoice_month = invoice_month_for(now, year, month)
        final = is_final_run(invoice_month, now, ApplicationConfig.FINAL_INVOICE_DAY)

        if customer_ids is None:
            async with self.async_session_factory() as session:
                customer_ids = await SqlAlchemyBillingEntityRepository(session).get_customer_ids()

        logger.info(
            f"Starting invoicing for {invoice_month.strftime('%Y-%m')}: "
            f"{len(customer_ids)} customers, final={final}"
        )

        successful = 0
        failed = 0
        invoices_created = 0

        for customer_id in customer_ids:
            task = CustomerInvoicingTaskDTO(
                customer_id=customer_id,
                invoice_month=invoice_month,
                now=now,
                final=final,
                rates=rates or {},
            )
            try:
                result = await self.process_customer(task)
            except Exception as e:
                logger.error(f"Unexpected error invoicing customer {customer_id}: {e}")
                failed += 1
                continue

            if result.is_err():
                logger.error(
                    f"Failed to invoice customer {customer_id}: "
                    f"{result.error.message} ({result.error.reason})"
                )
                failed += 1
                continue

            successful += 1
            invoices_created += result.value.invoices_created
            if result.value.failed_products:
                logger.warning(
                    f"Customer {customer_id} invoiced without "
                    f"{', '.join(result.value.failed_products)}"
                )

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Invoicing complete: {successful}/{len(customer_ids)} customers, "
            f"{invoices_created} invoices, {execution_time_ms}ms"
        )

        return InvoicingRunResultDTO(
            invoice_month=invoice_month,
            total_customers=len(customer_ids),
            successful_customers=successful,
            failed_customers=failed,
            invoices_created=invoices_created,
            execution_time_ms=execution_time_ms,
        )

    async def run_forever(
        self,
        customer_ids: Optional[Sequence[str]] = None,
        check_interval_seconds: Optional[int] = None,
    ):
        """
        Run invoicing continuously for the previous month

        Args:
            customer_ids: Customers to invoice (defaults to all)
            check_interval_seconds: Seconds between runs (default: INVOICING_INTERVAL_SECONDS)
        """
        interval = check_interval_seconds or ApplicationConfig.INVOICING_INTERVAL_SECONDS
        logger.info(f"Starting continuous invoicing with {interval}s interval")

        while True:
            if ApplicationConfig.INVOICING_ENABLED:
                try:
                    await self.run_once(customer_ids=customer_ids)
                except Exception as e:
                    logger.error(f"Invoicing cycle failed: {e}")
            else:
                logger.debug("Invoicing disabled, skipping cycle")

            await asyncio.sleep(interval)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("CustomerInvoicingWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Invoice all customers for the previous month
        python -m src.worker.customer_invoicing

        # Invoice one customer for a specific month
        python -m src.worker.customer_invoicing --customer customer_123 --year 2024 --month 1

        # Run continuously
        python -m src.worker.customer_invoicing --continuous
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Customer Invoicing Worker")
    parser.add_argument(
        "--customer", action="append", dest="customers", help="Customer to invoice (repeatable)"
    )
    parser.add_argument("--year", type=int, help="Year to invoice")
    parser.add_argument("--month", type=int, help="Month to invoice")
    parser.add_argument(
        "--continuous", action="store_true", help="Run continuously"
    )
    args = parser.parse_args()

    worker = CustomerInvoicingWorker()

    try:
        if args.continuous:
            await worker.run_forever(customer_ids=args.customers)
        else:
            result = await worker.run_once(
                customer_ids=args.customers, year=args.year, month=args.month
            )
            print(f"Invoicing complete:")
            print(f"  Month: {result.invoice_month.strftime('%Y-%m')}")
            print(f"  Total customers: {result.total_customers}")
            print(f"  Successful customers: {result.successful_customers}")
            print(f"  Failed customers: {result.failed_customers}")
            print(f"  Invoices created: {result.invoices_created}")
            print(f"  Execution time: {result.execution_time_ms}ms")
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


def run():
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
