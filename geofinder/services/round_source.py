from typing import Optional, Protocol

from geofinder.converter import DataConverter
from geofinder.models.schema_models import RoundPayload
from geofinder.services.http_client import HttpClient

data_converter = DataConverter()


class RoundSource(Protocol):
    async def fetch_round(self) -> Optional[RoundPayload]:
        """Fetch one round. May raise; callers treat None and failure the same."""
        ...


class HttpRoundSource:
    """Rounds served by the geo API: /image for classic rounds, /pano for panoramas."""

    def __init__(self, client: HttpClient, path: str = "/image") -> None:
        self.client = client
        self.path = path

    async def fetch_round(self) -> Optional[RoundPayload]:
        data = await self.client.get_json(self.path)
        return data_converter.convert_geo_response_to_round(data)
