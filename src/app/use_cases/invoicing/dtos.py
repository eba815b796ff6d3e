"""Data Transfer Objects for Invoicing Use Cases

Pydantic models for command inputs and response outputs, plus the
ProductInvoiceRows message product workers put on the result channel.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel, Field
from libs.result import Error, Result
from src.domain.credit_ledger import CreditMutation
from src.domain.invoice_builder import ProductInvoicingStats
from src.domain.invoice_row import InvoiceRow
from src.domain.product import ProductType


class CustomerInvoicingTaskDTO(BaseModel):
    """
    Command DTO for one customer's invoicing run

    Used as input to ProcessCustomerInvoices and every product worker.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    invoice_month: date = Field(
        ...,
        description="First day of the invoiced month"
    )

    now: datetime = Field(
        default_factory=datetime.utcnow,
        description="Run timestamp; stamped on every invoice of the run"
    )

    final: bool = Field(
        default=False,
        description="Whether usage rows of this run are final"
    )

    rates: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Currency -> units per USD, used for low-cost checks"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "customer_123",
                "invoice_month": "2024-01-01",
                "now": "2024-02-03T06:00:00Z",
                "final": True,
                "rates": {"EUR": "0.92"}
            }
        }


class ProductInvoiceRows:
    """
    Single result of a product worker: rows and credit mutations, or an error
    """

    def __init__(
        self,
        product_type: ProductType,
        rows: Optional[Sequence[InvoiceRow]] = None,
        credit_mutations: Optional[Sequence[CreditMutation]] = None,
        error: Optional[Error] = None,
    ):
        self.product_type = ProductType(product_type)
        self.rows = list(rows or [])
        self.credit_mutations = list(credit_mutations or [])
        self.error = error

    @classmethod
    def from_result(cls, product_type: ProductType, result: Result) -> "ProductInvoiceRows":
        if result.is_err():
            return cls(product_type, error=result.error)
        return result.value

    def is_err(self) -> bool:
        return self.error is not None


class ProcessCustomerInvoicesResultDTO(BaseModel):
    """
    Response DTO for one customer's invoicing run
    """

    customer_id: str = Field(..., description="Customer identifier")
    invoice_month: date = Field(..., description="First day of the invoiced month")
    invoices_created: int = Field(..., description="Invoice documents written (chunks included)")
    credits_updated: int = Field(..., description="Credits written back")
    failed_products: List[str] = Field(
        default_factory=list,
        description="Product types whose rows were discarded"
    )
    errors_recorded: int = Field(..., description="Invoicing error records written")
    stats: Dict[str, ProductInvoicingStats] = Field(
        default_factory=dict,
        description="Per product totals and counts"
    )
    execution_time_ms: int = Field(..., description="Run duration in milliseconds")


class InvoicingRunResultDTO(BaseModel):
    """
    Result DTO for a background invoicing run over several customers
    """

    invoice_month: date = Field(..., description="First day of the invoiced month")
    total_customers: int = Field(..., description="Customers processed")
    successful_customers: int = Field(..., description="Customers invoiced without a run failure")
    failed_customers: int = Field(..., description="Customers whose run failed")
    invoices_created: int = Field(..., description="Invoice documents written")
    execution_time_ms: int = Field(..., description="Run duration in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "invoice_month": "2024-01-01",
                "total_customers": 120,
                "successful_customers": 119,
                "failed_customers": 1,
                "invoices_created": 311,
                "execution_time_ms": 48211
            }
        }
