"""Guess matching and round scoring rules, independent from storage and HTTP.

Rule of thumb:
- OK: string normalization, scoring, feedback text.
- Not OK: touching storage, the network, datetime.now(), etc.
"""

import re
import unicodedata
from typing import Optional

from geofinder.models.schema_models import Coordinates

MAX_GUESSES = 3
TOTAL_ROUNDS = 10

# Points by attempt number; any later attempt scores nothing.
POINTS_BY_ATTEMPT = {1: 3, 2: 2, 3: 1}
CONTINUED_MISS_PENALTY = 1

_NON_WORD = re.compile(r"[^a-z0-9 ]+")
_SPACES = re.compile(r"\s+")


def normalize_country(value: str) -> str:
    """Fold case, strip diacritics and punctuation, collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    lowered = ascii_only.lower().replace("&", " and ").replace("-", " ")
    cleaned = _NON_WORD.sub("", lowered)
    cleaned = _SPACES.sub(" ", cleaned).strip()
    if cleaned.startswith("the "):
        cleaned = cleaned[4:]
    return cleaned


def match_guess(
    normalized_guess: str, country: Optional[str], country_code: Optional[str]
) -> bool:
    """Accept either the country name or its code."""
    if not normalized_guess:
        return False
    if country and normalized_guess == normalize_country(country):
        return True
    if country_code and normalized_guess.upper() == country_code.strip().upper():
        return True
    return False


def points_for_attempt(attempt: int) -> int:
    """Points awarded for a correct guess on the given attempt (1-based)."""
    return POINTS_BY_ATTEMPT.get(attempt, 0)


def format_coordinates(coord: Optional[Coordinates]) -> Optional[str]:
    if coord is None:
        return None
    return f"{coord.lat:.4f}, {coord.lon:.4f}"


def correct_feedback(display_name: Optional[str]) -> str:
    return f"✅ Correct! It was {display_name}"


def retry_feedback(guess_count: int) -> str:
    return f"❌ Not quite. Try again! (Guess {guess_count}/{MAX_GUESSES})"


def reveal_feedback(display_name: Optional[str], coord: Optional[Coordinates]) -> str:
    coord_text = format_coordinates(coord)
    if coord_text:
        return f"❌ Game over! It was {display_name} ({coord_text})"
    return f"❌ Game over! It was {display_name}"


def format_country(value: Optional[str]) -> str:
    """Title-case a normalized country name for display."""
    if not value:
        return "Unknown"
    if not normalize_country(value):
        return value
    return " ".join(part[:1].upper() + part[1:] for part in value.split(" ") if part)
