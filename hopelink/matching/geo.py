# hopelink/matching/geo.py
import re
from math import radians, sin, cos, atan2, sqrt
from typing import Optional

EARTH_RADIUS_KM = 6371.0

def calculate_distance(lat1: Optional[float], lon1: Optional[float],
                       lat2: Optional[float], lon2: Optional[float]) -> Optional[float]:
    """
    Haversine distance in km. Returns None when any coordinate is missing,
    which normalize_distance() scores as neutral.
    """
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat/2)**2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon/2)**2
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(a), sqrt(1 - a))

# --------------------------------------------------
# Address fallback (no coordinates on file)
# --------------------------------------------------
_CITY_ALIASES = (
    ("cagayan de oro", "cagayan de oro city"),
    ("opol", "opol"),
)
_ADJACENT_CITIES = {frozenset({"cagayan de oro city", "opol"}): 18.0}

_CITY_RE = re.compile(r"([^,]+),\s*(?:misamis oriental|philippines)")
_BARANGAY_RE = re.compile(r"barangay\s+([^,\s]+)")

def _extract_city(addr: str) -> Optional[str]:
    for needle, city in _CITY_ALIASES:
        if needle in addr:
            return city
    m = _CITY_RE.search(addr)
    return m.group(1).strip() if m else None

def _extract_barangay(addr: str) -> Optional[str]:
    m = _BARANGAY_RE.search(addr)
    return m.group(1).strip() if m else None

def address_proximity(address1: Optional[str], address2: Optional[str]) -> Optional[float]:
    """Rough km estimate from city / barangay names."""
    if not address1 or not address2:
        return None
    a1 = address1.lower()
    a2 = address2.lower()
    city1, city2 = _extract_city(a1), _extract_city(a2)

    if city1 and city2:
        if city1 == city2:
            b1, b2 = _extract_barangay(a1), _extract_barangay(a2)
            if b1 and b2 and b1 == b2:
                return 1.0
            return 5.0
        return _ADJACENT_CITIES.get(frozenset({city1, city2}), 30.0)

    return 25.0
