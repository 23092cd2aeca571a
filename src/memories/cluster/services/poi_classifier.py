from typing import List, Optional

from memories.common.models import Location

TOURISM_KEYWORDS = (
    "tourism",
    "attraction",
    "beach",
    "museum",
    "national_park",
    "viewpoint",
    "hotel",
    "camp_site",
    "ski",
    "marina",
)

TRANSPORT_KEYWORDS = (
    "airport",
    "aerodrome",
    "railway_station",
    "train_station",
    "bus_station",
)


class PoiClassifier:
    """Keyword matching over a location's category, type and POI tags."""

    def __init__(self, tourism_keywords=TOURISM_KEYWORDS, transport_keywords=TRANSPORT_KEYWORDS):
        self.tourism_keywords = tuple(tourism_keywords)
        self.transport_keywords = tuple(transport_keywords)

    @staticmethod
    def tokens(location: Optional[Location]) -> List[str]:
        if location is None:
            return []
        tokens = [location.category, location.type]
        for poi in location.pois:
            tokens.extend([poi.category_key, poi.category_value])
            for key, value in poi.tags.items():
                tokens.extend([key, value])
        return [str(t).lower() for t in tokens if t]

    def categories(self, location: Optional[Location]) -> List[str]:
        if location is None:
            return []
        values = [location.category] + [poi.category_value for poi in location.pois]
        return sorted({v.lower() for v in values if v})

    def is_poi_sample(self, location: Optional[Location]) -> bool:
        return bool(self.tokens(location))

    def is_tourism(self, location: Optional[Location]) -> bool:
        return self._matches(location, self.tourism_keywords)

    def is_transport(self, location: Optional[Location]) -> bool:
        return self._matches(location, self.transport_keywords)

    def _matches(self, location: Optional[Location], keywords) -> bool:
        return any(keyword in token for token in self.tokens(location) for keyword in keywords)
