import pytest
from unittest.mock import AsyncMock, MagicMock

from bulkadd.errors import TransientAPIError
from bulkadd.services.neighborhood_service import NeighborhoodResolver

LOWER_EAST_SIDE = {"id": 4, "name": "Lower East Side", "city_id": 1, "city_name": "New York", "zipcode_ranges": ["10002"]}


def resolver_with(**kwargs):
    client = MagicMock()
    client.get_json = AsyncMock(**kwargs)
    return NeighborhoodResolver(client, max_retries=2, base_delay_ms=0), client


@pytest.mark.asyncio
async def test_finds_neighborhood_by_zipcode():
    resolver, client = resolver_with(return_value=[LOWER_EAST_SIDE])

    record = await resolver.find_neighborhood_by_zipcode("10002")

    assert record.id == 4
    assert record.name == "Lower East Side"
    assert record.city_id == 1
    client.get_json.assert_awaited_once_with("/neighborhoods/zip/10002", allow_404=True)


@pytest.mark.asyncio
async def test_second_lookup_hits_cache():
    resolver, client = resolver_with(return_value={"success": True, "data": [LOWER_EAST_SIDE]})

    first = await resolver.find_neighborhood_by_zipcode("10002")
    second = await resolver.find_neighborhood_by_zipcode("10002")

    assert first is second
    assert client.get_json.await_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [[], None, {"success": True, "data": []}])
async def test_unmapped_zipcode_returns_none_and_is_cached(response):
    resolver, client = resolver_with(return_value=response)

    assert await resolver.find_neighborhood_by_zipcode("99999") is None
    assert await resolver.find_neighborhood_by_zipcode("99999") is None
    assert client.get_json.await_count == 1


@pytest.mark.asyncio
async def test_failures_are_retried_and_not_cached():
    resolver, client = resolver_with(side_effect=[TransientAPIError("503")] * 3 + [[LOWER_EAST_SIDE]])

    with pytest.raises(TransientAPIError):
        await resolver.find_neighborhood_by_zipcode("10002")
    assert client.get_json.await_count == 3

    record = await resolver.find_neighborhood_by_zipcode("10002")
    assert record.name == "Lower East Side"


@pytest.mark.asyncio
async def test_clear_drops_cached_lookups():
    resolver, client = resolver_with(return_value=[LOWER_EAST_SIDE])

    await resolver.find_neighborhood_by_zipcode("10002")
    resolver.clear()
    await resolver.find_neighborhood_by_zipcode("10002")

    assert client.get_json.await_count == 2


@pytest.mark.asyncio
async def test_blank_zipcode_skips_lookup():
    resolver, client = resolver_with(return_value=[LOWER_EAST_SIDE])

    assert await resolver.find_neighborhood_by_zipcode("") is None
    client.get_json.assert_not_called()
