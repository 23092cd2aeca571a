from datetime import datetime, timedelta
from itertools import count
from zoneinfo import ZoneInfo

import pytest

from memories.common.models import Location, MediaItem, Poi

BERLIN = ZoneInfo("Europe/Berlin")
EPOCH = datetime(2024, 6, 1, tzinfo=BERLIN)


@pytest.fixture
def make_item():
    ids = count(1)

    def factory(when=None, lat=None, lon=None, **kwargs) -> MediaItem:
        if isinstance(when, (int, float)):
            when = EPOCH + timedelta(seconds=when)
        return MediaItem(id=kwargs.pop("id", next(ids)), taken_at=when, lat=lat, lon=lon, **kwargs)

    return factory


@pytest.fixture
def tourism_location():
    return Location(
        country_code="IT",
        category="tourism",
        pois=[Poi(name="Musei Vaticani", category_key="tourism", category_value="museum")],
    )
