"""Invoicing use cases"""
from .generate_product_invoice_rows import GenerateProductInvoiceRows
from .process_customer_invoices import ProcessCustomerInvoices
from .product_worker import ProductWorker
from .dtos import (
    CustomerInvoicingTaskDTO,
    ProductInvoiceRows,
    ProcessCustomerInvoicesResultDTO,
    InvoicingRunResultDTO,
)

__all__ = [
    "GenerateProductInvoiceRows",
    "ProcessCustomerInvoices",
    "ProductWorker",
    "CustomerInvoicingTaskDTO",
    "ProductInvoiceRows",
    "ProcessCustomerInvoicesResultDTO",
    "InvoicingRunResultDTO",
]
