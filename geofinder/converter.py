from typing import Any, Dict, Optional

from pydantic import ValidationError

from geofinder.domain.guess_rules import normalize_country
from geofinder.models.schema_models import (
    AiDuelGuessResult,
    AiDuelMatch,
    Coordinates,
    CountryInfo,
    RoundImage,
    RoundPayload,
)


class DataConverter:
    """This class is used to convert data between different formats."""

    def convert_geo_response_to_round(self, data: Dict[str, Any]) -> RoundPayload:
        """Convert a geo API response to the RoundPayload used by the controllers

        Args:
            data (Dict[str, Any]): imageUrl, coordinates, contributor, countryName, countryCode

        Raises:
            ValueError: The response has no image or no coordinates

        Returns:
            RoundPayload: The round with its normalized answer, countryInfo is None when unknown
        """
        if not isinstance(data, dict) or not data.get("imageUrl") or not data.get("coordinates"):
            raise ValueError("Invalid API response")
        try:
            coord = Coordinates.model_validate(data["coordinates"])
        except ValidationError as e:
            raise ValueError(f"Invalid coordinates in API response: {e}") from e

        image = RoundImage(
            url=data["imageUrl"],
            coord=coord,
            contributor=data.get("contributor"),
        )
        return RoundPayload(image=image, country_info=self.convert_country_info(data))

    def convert_country_info(self, data: Dict[str, Any]) -> Optional[CountryInfo]:
        country_name = data.get("countryName") or ""
        country_code = data.get("countryCode") or ""
        normalized_name = normalize_country(country_name) if country_name else ""
        normalized_code = country_code.strip().upper()
        if not normalized_name and not normalized_code:
            return None

        display_name = country_name.strip() or normalized_code or "Unknown"
        return CountryInfo(
            country=normalized_name or normalized_code.lower(),
            country_code=normalized_code,
            display_name=display_name,
        )

    def convert_ai_match(self, data: Dict[str, Any]) -> AiDuelMatch:
        """Convert the AI duel start response, it must carry a match id and a round"""
        try:
            return AiDuelMatch.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Match could not be created: {e}") from e

    def convert_ai_guess(self, data: Dict[str, Any]) -> AiDuelGuessResult:
        try:
            return AiDuelGuessResult.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid guess response: {e}") from e
