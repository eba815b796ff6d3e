"""Asset Settings

Assignment of a cloud account (asset) to a billing entity and bucket.
"""

from typing import List, Optional
from sqlmodel import Field, Column
from sqlalchemy import JSON, String
from src.domain.base import BaseModel


class AssetSettings(BaseModel, table=True):
    """
    Asset Settings - where an asset's spend is invoiced

    Domain Rules:
    - asset id format is "<product_type>-<account_id>"
    - An asset without entity_id cannot be invoiced
    - Tagged assets are never folded into overflow rows
    """

    __tablename__ = "asset_settings"

    id: str = Field(
        sa_column=Column(String(128), primary_key=True),
        description="Asset identifier"
    )

    customer_id: str = Field(index=True)

    entity_id: Optional[str] = Field(
        default=None,
        description="Assigned billing entity"
    )

    bucket_id: Optional[str] = Field(
        default=None,
        description="Assigned invoice bucket"
    )

    tags: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Labels shown next to the asset's invoice row"
    )
