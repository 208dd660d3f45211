"""
tests/unit/test_cloudflare_client.py

Unit tests for providers/cloudflare_client.py.
All Cloudflare API calls are intercepted by respx: no real network traffic.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace

import pytest
import httpx

from exceptions import DnsProviderError, ProviderErrorKind
from providers.cloudflare_client import CLOUDFLARE_BASE, CloudflareClient, zone_name_for
from providers.dns_provider import DnsRecord, UpdateOutcome
from providers.zone_cache import ZoneCache

_ZONE = "zone123"
_BASE = CLOUDFLARE_BASE
_RECORDS_URL = f"{_BASE}/zones/{_ZONE}/dns_records"


def _cf_response(result, success=True):
    """Helper: build a Cloudflare-shaped JSON response dict."""
    return {"success": success, "result": result, "errors": []}


def _record_dict(**kwargs):
    return {
        "id": kwargs.get("id", "rec1"),
        "name": kwargs.get("name", "www.example.com"),
        "content": kwargs.get("content", "1.2.3.4"),
        "type": "A",
        "ttl": 1,
        "proxied": False,
        "zone_id": _ZONE,
    }


def _mock_zone(mock_http, zone_id=_ZONE, name="example.com"):
    return mock_http.get(f"{_BASE}/zones").mock(
        return_value=httpx.Response(200, json=_cf_response([{"id": zone_id, "name": name}]))
    )


# ---------------------------------------------------------------------------
# zone_name_for
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("domain", "zone"),
    [
        ("www.example.com", "example.com"),
        ("example.com", "example.com"),
        ("auth.service.k8s.example.com", "example.com"),
        # known limitation: multi-label public suffixes are not understood
        ("cdn.prod.example.co.uk", "co.uk"),
    ],
)
def test_zone_name_for_takes_last_two_labels(domain, zone):
    assert zone_name_for(domain) == zone


def test_zone_name_for_is_idempotent():
    once = zone_name_for("a.b.example.org")
    assert zone_name_for("a.b.example.org") == once
    assert zone_name_for(once) == once


# ---------------------------------------------------------------------------
# Zone discovery and caching
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_zone_id_queries_by_name_and_caches(mock_http, cloudflare_target):
    """A cache hit must never issue a second zones-list call."""
    zones_route = _mock_zone(mock_http)
    async with httpx.AsyncClient() as client:
        cf = CloudflareClient(client)
        first = await cf.get_zone_id(cloudflare_target)
        second = await cf.get_zone_id(cloudflare_target)

    assert first == second == _ZONE
    assert zones_route.call_count == 1
    request = zones_route.calls.last.request
    assert request.url.params["name"] == "example.com"
    assert "account.id" not in request.url.params
    assert request.headers["Authorization"] == "Bearer cf-token"


@pytest.mark.asyncio
async def test_get_zone_id_sends_account_id_when_configured(mock_http, cloudflare_target):
    zones_route = _mock_zone(mock_http)
    target = replace(cloudflare_target, account_id="acct-9")
    async with httpx.AsyncClient() as client:
        await CloudflareClient(client).get_zone_id(target)

    assert zones_route.calls.last.request.url.params["account.id"] == "acct-9"


@pytest.mark.asyncio
async def test_zone_cache_is_shared_between_targets_of_one_zone(mock_http, cloudflare_target):
    zones_route = _mock_zone(mock_http)
    cache = ZoneCache()
    async with httpx.AsyncClient() as client:
        cf = CloudflareClient(client, cache)
        await cf.get_zone_id(cloudflare_target)
        await cf.get_zone_id(replace(cloudflare_target, domain="api.example.com"))

    assert zones_route.call_count == 1
    assert cache._zones.get("example.com") == _ZONE


@pytest.mark.asyncio
async def test_concurrent_zone_lookups_issue_one_call(mock_http, cloudflare_target):
    zones_route = _mock_zone(mock_http)
    async with httpx.AsyncClient() as client:
        cf = CloudflareClient(client)
        ids = await asyncio.gather(*(cf.get_zone_id(cloudflare_target) for _ in range(5)))

    assert set(ids) == {_ZONE}
    assert zones_route.call_count == 1


@pytest.mark.asyncio
async def test_get_zone_id_raises_not_found_for_unknown_zone(mock_http, cloudflare_target):
    mock_http.get(f"{_BASE}/zones").mock(return_value=httpx.Response(200, json=_cf_response([])))
    cache = ZoneCache()
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client, cache).get_zone_id(cloudflare_target)

    assert exc_info.value.kind is ProviderErrorKind.NOT_FOUND
    assert "example.com" not in cache._zones


@pytest.mark.asyncio
async def test_get_zone_id_uses_first_of_several_zones(mock_http, cloudflare_target):
    mock_http.get(f"{_BASE}/zones").mock(
        return_value=httpx.Response(
            200,
            json=_cf_response([{"id": "first", "name": "example.com"}, {"id": "second", "name": "example.com"}]),
        )
    )
    async with httpx.AsyncClient() as client:
        zone_id = await CloudflareClient(client).get_zone_id(cloudflare_target)

    assert zone_id == "first"


# ---------------------------------------------------------------------------
# get_record
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_record_returns_record(mock_http, cloudflare_target):
    """get_record returns a DnsRecord when the API returns one result."""
    _mock_zone(mock_http)
    route = mock_http.get(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json=_cf_response([_record_dict()]))
    )
    async with httpx.AsyncClient() as client:
        record = await CloudflareClient(client).get_record(cloudflare_target)

    assert isinstance(record, DnsRecord)
    assert record.content == "1.2.3.4"
    assert record.id == "rec1"
    params = route.calls.last.request.url.params
    assert params["name"] == "www.example.com"
    assert params["type"] == "A"


@pytest.mark.asyncio
async def test_get_record_returns_none_when_not_found(mock_http, cloudflare_target):
    """get_record returns None when the API result list is empty."""
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(return_value=httpx.Response(200, json=_cf_response([])))
    async with httpx.AsyncClient() as client:
        record = await CloudflareClient(client).get_record(cloudflare_target)

    assert record is None


@pytest.mark.asyncio
async def test_get_record_raises_on_api_failure(mock_http, cloudflare_target):
    """get_record raises DnsProviderError when success=false."""
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json={"success": False, "errors": [{"code": 1003, "message": "bad"}], "result": []})
    )
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).get_record(cloudflare_target)

    assert exc_info.value.kind is ProviderErrorKind.NETWORK


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (401, ProviderErrorKind.AUTH),
        (403, ProviderErrorKind.AUTH),
        (429, ProviderErrorKind.RATE_LIMITED),
        (500, ProviderErrorKind.NETWORK),
    ],
)
async def test_get_record_maps_http_status_to_kind(mock_http, cloudflare_target, status, kind):
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(return_value=httpx.Response(status, json={"errors": ["nope"]}))
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).get_record(cloudflare_target)

    assert exc_info.value.kind is kind


@pytest.mark.asyncio
async def test_auth_error_code_in_body_maps_to_auth(mock_http, cloudflare_target):
    mock_http.get(f"{_BASE}/zones").mock(
        return_value=httpx.Response(
            200, json={"success": False, "errors": [{"code": 9109, "message": "Invalid access token"}], "result": None}
        )
    )
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).get_record(cloudflare_target)

    assert exc_info.value.kind is ProviderErrorKind.AUTH


@pytest.mark.asyncio
async def test_transport_failure_maps_to_network(mock_http, cloudflare_target):
    mock_http.get(f"{_BASE}/zones").mock(side_effect=httpx.ConnectError("refused"))
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).get_record(cloudflare_target)

    assert exc_info.value.kind is ProviderErrorKind.NETWORK


@pytest.mark.asyncio
async def test_unparseable_body_maps_to_malformed_response(mock_http, cloudflare_target):
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(return_value=httpx.Response(200, text="<html>oops</html>"))
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).get_record(cloudflare_target)

    assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE


# ---------------------------------------------------------------------------
# upsert_record
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upsert_creates_missing_record(mock_http, cloudflare_target):
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(return_value=httpx.Response(200, json=_cf_response([])))
    post_route = mock_http.post(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json=_cf_response(_record_dict(id="new1", content="9.9.9.9")))
    )
    async with httpx.AsyncClient() as client:
        result = await CloudflareClient(client).upsert_record(cloudflare_target, "9.9.9.9")

    assert result.outcome is UpdateOutcome.CREATED
    assert result.old_ip == ""
    assert result.record.id == "new1"
    body = json.loads(post_route.calls.last.request.content)
    assert body == {"type": "A", "name": "www.example.com", "content": "9.9.9.9", "ttl": 1, "proxied": False}


@pytest.mark.asyncio
async def test_upsert_patches_changed_record(mock_http, cloudflare_target):
    """upsert_record PATCHes the existing record with the new content."""
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json=_cf_response([_record_dict(content="1.1.1.1")]))
    )
    patch_route = mock_http.patch(f"{_RECORDS_URL}/rec1").mock(
        return_value=httpx.Response(200, json=_cf_response(_record_dict(content="9.9.9.9")))
    )
    async with httpx.AsyncClient() as client:
        result = await CloudflareClient(client).upsert_record(cloudflare_target, "9.9.9.9")

    assert result.outcome is UpdateOutcome.CHANGED
    assert result.old_ip == "1.1.1.1"
    assert result.record.content == "9.9.9.9"
    assert json.loads(patch_route.calls.last.request.content) == {"content": "9.9.9.9"}


@pytest.mark.asyncio
async def test_upsert_is_idempotent(mock_http, cloudflare_target):
    """Upserting the value the record already holds issues no mutating call."""
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json=_cf_response([_record_dict(content="9.9.9.9")]))
    )
    post_route = mock_http.post(_RECORDS_URL)
    patch_route = mock_http.patch(f"{_RECORDS_URL}/rec1")
    async with httpx.AsyncClient() as client:
        cf = CloudflareClient(client)
        first = await cf.upsert_record(cloudflare_target, "9.9.9.9")
        second = await cf.upsert_record(cloudflare_target, "9.9.9.9")

    assert first.outcome is UpdateOutcome.UNCHANGED
    assert second.outcome is UpdateOutcome.UNCHANGED
    assert not second.changed
    assert post_route.call_count == 0
    assert patch_route.call_count == 0


@pytest.mark.asyncio
async def test_patch_404_maps_to_not_found(mock_http, cloudflare_target):
    _mock_zone(mock_http)
    mock_http.get(_RECORDS_URL).mock(
        return_value=httpx.Response(200, json=_cf_response([_record_dict(content="1.1.1.1")]))
    )
    mock_http.patch(f"{_RECORDS_URL}/rec1").mock(return_value=httpx.Response(404, json={"errors": []}))
    async with httpx.AsyncClient() as client:
        with pytest.raises(DnsProviderError) as exc_info:
            await CloudflareClient(client).upsert_record(cloudflare_target, "9.9.9.9")

    assert exc_info.value.kind is ProviderErrorKind.NOT_FOUND
