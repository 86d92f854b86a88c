from unittest.mock import AsyncMock, MagicMock

import pytest

from bulkadd.errors import PermanentAPIError


def prediction(place_id, main_text, secondary_text):
    return {
        "place_id": place_id,
        "description": f"{main_text}, {secondary_text}",
        "structured_formatting": {"main_text": main_text, "secondary_text": secondary_text},
    }


def details(place_id, name, address, lat, lng, zipcode=None):
    components = []
    if zipcode:
        components.append({"long_name": zipcode, "short_name": zipcode, "types": ["postal_code"]})
    return {
        "success": True,
        "result": {
            "place_id": place_id,
            "name": name,
            "formatted_address": address,
            "geometry": {"location": {"lat": lat, "lng": lng}},
            "address_components": components,
        },
    }


PREDICTIONS = {
    "Katz's Delicatessen, New York": [
        prediction("ChIJkatz", "Katz's Delicatessen", "East Houston Street, New York, NY, USA"),
    ],
    "Peter Luger Steak House, Brooklyn": [
        prediction("ChIJluger_bk", "Peter Luger Steak House", "Broadway, Brooklyn, NY, USA"),
        prediction("ChIJluger_gn", "Peter Luger Steak House", "Northern Boulevard, Great Neck, NY, USA"),
    ],
    "Lucali, Brooklyn": [
        prediction("ChIJlucali", "Lucali", "Henry Street, Brooklyn, NY, USA"),
    ],
    "Nowhere Diner, Atlantis": [],
}

DETAILS = {
    "ChIJkatz": details("ChIJkatz", "Katz's Delicatessen", "205 E Houston St, New York, NY 10002, USA",
                        40.7223, -73.9874, zipcode="10002"),
    "ChIJluger_bk": details("ChIJluger_bk", "Peter Luger Steak House", "178 Broadway, Brooklyn, NY 11211, USA",
                            40.7099, -73.9623),
    "ChIJluger_gn": details("ChIJluger_gn", "Peter Luger Steak House", "255 Northern Blvd, Great Neck, NY 11021, USA",
                            40.7872, -73.7265),
    "ChIJlucali": details("ChIJlucali", "Lucali", "575 Henry St, Brooklyn, NY 11231, USA", 40.6803, -73.9998),
}

NEIGHBORHOODS = {
    "10002": [{"id": 4, "name": "Lower East Side", "city_id": 1, "city_name": "New York",
               "zipcode_ranges": ["10002"]}],
    "11211": [{"id": 5, "name": "Williamsburg", "city_id": 1, "city_name": "New York",
               "zipcode_ranges": ["11211", "11249"]}],
    "11231": [],
}


@pytest.fixture
def fake_client():
    """
    A DoofApiClient stand-in answering the places, details and neighborhood endpoints
    from the tables above.
    """
    client = MagicMock()
    client.ensure_configured = MagicMock()

    async def get_json(path, params=None, **kwargs):
        if path == "/places/autocomplete":
            return {"success": True, "predictions": PREDICTIONS.get(params["input"], [])}
        if path.startswith("/places/details/"):
            place_id = path.rsplit("/", 1)[-1]
            if place_id not in DETAILS:
                raise PermanentAPIError(f"GET {path} returned 404", status=404)
            return DETAILS[place_id]
        if path.startswith("/neighborhoods/zip/"):
            zipcode = path.rsplit("/", 1)[-1]
            return NEIGHBORHOODS.get(zipcode)
        raise AssertionError(f"unexpected GET {path}")

    client.get_json = AsyncMock(side_effect=get_json)
    client.post_json = AsyncMock(
        return_value={"success": True, "data": {"added": 0, "failed": 0, "restaurants": []}}
    )
    return client


