"""Background workers for the invoicing service"""
from .customer_invoicing import CustomerInvoicingWorker, SqlAlchemyProductWorker

__all__ = ["CustomerInvoicingWorker", "SqlAlchemyProductWorker"]
