"""SQLAlchemy implementation of AssetSettingsRepository"""

from typing import Dict, Sequence
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.asset_settings_repository import AssetSettingsRepository
from src.domain.asset_settings import AssetSettings


class SqlAlchemyAssetSettingsRepository(AssetSettingsRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ids(self, asset_ids: Sequence[str]) -> Dict[str, AssetSettings]:
        if not asset_ids:
            return {}

        stmt = select(AssetSettings).where(AssetSettings.id.in_(list(asset_ids)))
        result = await self.session.execute(stmt)
        return {settings.id: settings for settings in result.scalars().all()}
