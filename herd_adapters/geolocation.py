"""Coordinate validation without an external geocoding service."""

from herd_health.domain.models import Location
from herd_health.services.validation import coordinates_in_range


class BoundsGeolocationValidator:
    """
    Accepts any coordinate on the globe, optionally restricted to a bounding
    box (min_lat, min_lng, max_lat, max_lng) around the ranch.
    """

    def __init__(self, bounding_box: tuple[float, float, float, float] | None = None) -> None:
        self.bounding_box = bounding_box

    async def is_valid_coordinate(self, location: Location) -> bool:
        if not coordinates_in_range(location):
            return False
        if self.bounding_box is None:
            return True
        min_lat, min_lng, max_lat, max_lng = self.bounding_box
        return min_lat <= location.latitude <= max_lat and min_lng <= location.longitude <= max_lng

    async def describe(self, location: Location) -> str:
        return f"{location.latitude:.4f}, {location.longitude:.4f}"
