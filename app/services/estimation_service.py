"""
app/services/estimation_service.py

Purpose: Quick property price estimate

- Base price per m² for Gironde cities
- Multipliers for type, rooms, age and amenities
"""

import math
import random
import re
import unicodedata
from typing import Dict, Any, Optional

from utils.time_utils import utcnow

# Price per m² (EUR), keys normalised by normalize_city
BASE_PRICE_PER_M2 = {
    "bordeaux": 4200,
    "merignac": 3800,
    "pessac": 3600,
    "talence": 3900,
    "begles": 3400,
    "villenavedornon": 3200,
    "gradignan": 3500,
    "cenon": 2800,
    "floirac": 3000,
}
DEFAULT_PRICE_PER_M2 = 3200


def normalize_city(city: Optional[str]) -> str:
    """
    "Villenave-d'Ornon" -> "villenavedornon", "Bègles" -> "begles"
    """
    if not city:
        return ""
    decomposed = unicodedata.normalize("NFKD", city)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^a-z]", "", ascii_only.lower())


def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def round_half_up(value: float) -> int:
    """Rounds .5 up, unlike round() which rounds half to even."""
    return math.floor(value + 0.5)


def calculate_estimation(property_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Estimates a property's market value.

    Args:
        property_data: dict with city, surface, property_type, rooms,
            construction_year, has_garden, has_parking, has_balcony

    Returns:
        {"estimated_value": int, "price_per_m2": int, "confidence": int}
    """
    price_per_m2 = BASE_PRICE_PER_M2.get(
        normalize_city(property_data.get("city")),
        DEFAULT_PRICE_PER_M2
    )
    surface = _to_number(property_data.get("surface")) or 0
    multiplier = 1.0

    if property_data.get("property_type") == "house":
        multiplier *= 0.95

    rooms = _to_number(property_data.get("rooms"))
    if rooms:
        if rooms >= 5:
            multiplier *= 1.1
        elif rooms <= 2:
            multiplier *= 0.95

    construction_year = _to_number(property_data.get("construction_year"))
    if construction_year:
        age = utcnow().year - construction_year
        if age < 10:
            multiplier *= 1.15
        elif age < 20:
            multiplier *= 1.05
        elif age > 50:
            multiplier *= 0.9

    if property_data.get("has_garden"):
        multiplier *= 1.08
    if property_data.get("has_parking"):
        multiplier *= 1.05
    if property_data.get("has_balcony"):
        multiplier *= 1.03

    adjusted_price_per_m2 = price_per_m2 * multiplier

    return {
        "estimated_value": round_half_up(surface * adjusted_price_per_m2),
        "price_per_m2": round_half_up(adjusted_price_per_m2),
        "confidence": min(95, 85 + random.randint(0, 10))
    }
