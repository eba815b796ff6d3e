"""Product types and their invoice presentation profiles"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class ProductType(str, Enum):
    """Usage providers invoiced by one worker each"""
    AMAZON_WEB_SERVICES = "amazon-web-services"
    AMAZON_WEB_SERVICES_STANDALONE = "amazon-web-services-standalone"
    GOOGLE_CLOUD = "google-cloud"
    GOOGLE_CLOUD_STANDALONE = "google-cloud-standalone"
    MICROSOFT_AZURE = "microsoft-azure"
    G_SUITE = "g-suite"
    OFFICE_365 = "office-365"
    LOOKER = "looker"
    DOIT_NAVIGATOR = "doit-navigator"
    DOIT_SOLVE = "doit-solve"
    DOIT_SOLVE_ACCELERATOR = "doit-solve-accelerator"


class ProductProfile(BaseModel):
    """How rows of one product type are labelled and post-processed"""

    description: str
    credit_description: str
    details_format: str
    overflow_label: Optional[str] = None
    supports_marketplace: bool = False
    supports_contract_charges: bool = False
    supports_contract_discounts: bool = False
    near_zero_correction: bool = False
    exempt_from_low_cost: bool = False
    group_instead_of_custom: bool = False


_AWS = ProductProfile(
    description="Amazon Web Services",
    credit_description="Amazon Web Services Credit",
    details_format="Account #{}",
    overflow_label="Additional accounts",
    supports_marketplace=True,
    near_zero_correction=True,
    exempt_from_low_cost=True,
)

_GCP = ProductProfile(
    description="Google Cloud",
    credit_description="Google Cloud Credit",
    details_format="Project {}",
    overflow_label="Additional projects",
    supports_contract_charges=True,
    supports_contract_discounts=True,
    near_zero_correction=True,
    exempt_from_low_cost=True,
)

# Near-zero correction only runs for the resold AWS and GCP invoices
_AWS_STANDALONE = _AWS.model_copy(update={"near_zero_correction": False})
_GCP_STANDALONE = _GCP.model_copy(update={"near_zero_correction": False})

PRODUCT_PROFILES = {
    ProductType.AMAZON_WEB_SERVICES: _AWS,
    ProductType.AMAZON_WEB_SERVICES_STANDALONE: _AWS_STANDALONE,
    ProductType.GOOGLE_CLOUD: _GCP,
    ProductType.GOOGLE_CLOUD_STANDALONE: _GCP_STANDALONE,
    ProductType.MICROSOFT_AZURE: ProductProfile(
        description="Microsoft Azure",
        credit_description="Microsoft Azure Credit",
        details_format="Subscription {}",
        overflow_label="Additional Subscriptions",
    ),
    ProductType.G_SUITE: ProductProfile(
        description="Google Workspace",
        credit_description="Google Workspace Credit",
        details_format="Domain {}",
    ),
    ProductType.OFFICE_365: ProductProfile(
        description="Office 365",
        credit_description="Office 365 Credit",
        details_format="Tenant {}",
    ),
    ProductType.LOOKER: ProductProfile(
        description="Looker",
        credit_description="Looker Credit",
        details_format="Instance {}",
    ),
    ProductType.DOIT_NAVIGATOR: ProductProfile(
        description="DoiT Navigator",
        credit_description="DoiT Navigator Credit",
        details_format="Subscription {}",
        group_instead_of_custom=True,
    ),
    ProductType.DOIT_SOLVE: ProductProfile(
        description="DoiT Solve",
        credit_description="DoiT Solve Credit",
        details_format="Subscription {}",
        group_instead_of_custom=True,
    ),
    ProductType.DOIT_SOLVE_ACCELERATOR: ProductProfile(
        description="DoiT Solve Accelerator",
        credit_description="DoiT Solve Accelerator Credit",
        details_format="Subscription {}",
        group_instead_of_custom=True,
    ),
}


def get_profile(product_type: ProductType) -> ProductProfile:
    return PRODUCT_PROFILES[ProductType(product_type)]


def asset_id_for(product_type: ProductType, account_id: str) -> str:
    """Asset identifier of a cloud account, e.g. amazon-web-services-123456789012"""
    return f"{ProductType(product_type).value}-{account_id}"
