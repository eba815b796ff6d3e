from abc import ABC, abstractmethod
from typing import Dict, Sequence
from src.domain.asset_settings import AssetSettings


class AssetSettingsRepository(ABC):
    """Repository interface for asset to entity/bucket assignments"""

    @abstractmethod
    async def get_by_ids(self, asset_ids: Sequence[str]) -> Dict[str, AssetSettings]:
        """
        Retrieve settings of several assets

        Args:
            asset_ids: Asset identifiers

        Returns:
            Mapping of asset id to settings; unknown assets are absent
        """
        pass
