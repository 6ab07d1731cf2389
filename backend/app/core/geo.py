"""Static city coordinates and distance helpers."""

import logging
import math

logger = logging.getLogger(__name__)

# Used for any city missing from CITY_COORDINATES (Dhaka city centre)
DEFAULT_COORDINATES: tuple[float, float] = (23.8103, 90.4125)

CITY_COORDINATES: dict[str, tuple[float, float]] = {
    "dhaka": (23.8103, 90.4125),
    "comilla": (23.4607, 91.1809),
    "feni": (23.0159, 91.3976),
    "chittagong": (22.3569, 91.7832),
    "cox's bazar": (21.4272, 92.0058),
    "mymensingh": (24.7471, 90.4203),
    "sherpur": (25.0205, 90.0153),
    "sylhet": (24.8949, 91.8687),
    "jashore": (23.1664, 89.2081),
    "khulna": (22.8456, 89.5403),
    "naogaon": (24.7936, 88.9318),
    "rajshahi": (24.3745, 88.6042),
    "barisal": (22.7010, 90.3535),
    "rangpur": (25.7439, 89.2752),
    "bogura": (24.8465, 89.3773),
    "srimangal": (24.3065, 91.7296),
}

_ALIASES = {
    "chattogram": "chittagong",
    "cumilla": "comilla",
    "coxs bazar": "cox's bazar",
    "cox’s bazar": "cox's bazar",
    "jessore": "jashore",
    "barishal": "barisal",
    "bogra": "bogura",
}

# Known corridors: "source-destination" -> ordered cities
KNOWN_ROUTES: dict[str, list[str]] = {
    "Dhaka-Cox's Bazar": ["Dhaka", "Comilla", "Feni", "Chittagong", "Cox's Bazar"],
    "Dhaka-Sylhet": ["Dhaka", "Mymensingh", "Sherpur", "Sylhet"],
    "Dhaka-Khulna": ["Dhaka", "Jashore", "Khulna"],
    "Dhaka-Rajshahi": ["Dhaka", "Naogaon", "Rajshahi"],
    "Dhaka-Chittagong": ["Dhaka", "Comilla", "Feni", "Chittagong"],
}

EARTH_RADIUS_M = 6_371_000.0


def normalize_city(name: str) -> str:
    """Canonical lookup key for a city label such as 'Dhaka - Start'."""
    key = " ".join(str(name).split(" - ")[0].split()).lower()
    return _ALIASES.get(key, key)


def lookup_coordinates(city: str) -> tuple[float, float]:
    """(lat, lon) for a city, or DEFAULT_COORDINATES when unknown."""
    coords = CITY_COORDINATES.get(normalize_city(city))
    if coords is None:
        logger.debug("Unknown city %r, using default coordinates", city)
        return DEFAULT_COORDINATES
    return coords


def default_route(source: str, destination: str) -> list[str]:
    """Ordered cities for a known corridor, else just the two endpoints."""
    return list(KNOWN_ROUTES.get(f"{source}-{destination}", [source, destination]))


def valid_coordinates(lat, lon) -> bool:
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    if lat == 0 and lon == 0:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two lat/lon points."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.asin(math.sqrt(a))
