import asyncio
import json

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from jsmon_cli.services.api_client import (
    JsmonClient,
    extract_error_message,
    map_field_to_options,
    status_for_field,
)
from jsmon_cli.utils.exceptions import ApiError


def mock_response(status, body):
    resp = AsyncMock()
    resp.status = status
    resp.text.return_value = body if isinstance(body, str) else json.dumps(body)
    return resp


def connect_error():
    key = MagicMock(host="api.example.test", port=443, ssl=True)
    return aiohttp.ClientConnectorError(key, OSError(111, "Connection refused"))


@pytest.fixture
def client():
    return JsmonClient(
        "  test-key  ",
        headers={"Cookie": "session=1"},
        base_url="https://api.example.test/api/v2/",
        retry_wait=0,
    )


@pytest.mark.asyncio
async def test_upload_url_success(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(200, {"ok": True})

        result = await client.upload_url("https://a.test/app.js", "w1")
        await client.close()

    assert result.success is True
    args, kwargs = mock_post.call_args
    assert args[0] == "https://api.example.test/api/v2/uploadUrl"
    assert kwargs["params"] == {"wkspId": "w1", "source": "cliScan"}
    assert kwargs["json"] == {
        "url": "https://a.test/app.js",
        "headers": {"Cookie": "session=1"},
    }
    # custom headers are for the scanned target, not the API
    assert kwargs["headers"] == {"X-Jsmon-Key": "test-key"}


@pytest.mark.asyncio
async def test_upload_url_failure_uses_json_message(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(
            400, {"message": "URL Scan failed - Not JS."}
        )

        result = await client.upload_url("https://a.test/x", "w1")
        await client.close()

    assert result.success is False
    assert result.status_code == 400
    assert result.message == "URL Scan failed - Not JS."


@pytest.mark.asyncio
async def test_upload_url_failure_raw_body(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(
            429, "Too Many Requests"
        )

        result = await client.upload_url("https://a.test/x", "w1")
        await client.close()

    assert result.status_code == 429
    assert result.message == "Too Many Requests"


@pytest.mark.asyncio
async def test_upload_url_connect_error_is_retried(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.side_effect = connect_error()

        result = await client.upload_url("https://a.test/x", "w1")
        await client.close()

    assert mock_post.call_count == 3
    assert result.success is False
    assert result.status_code is None
    assert "refused" in result.message


@pytest.mark.asyncio
async def test_upload_url_timeout_is_not_resent(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.side_effect = asyncio.TimeoutError()

        result = await client.upload_url("https://a.test/x", "w1")
        await client.close()

    assert mock_post.call_count == 1
    assert result.success is False
    assert result.status_code is None
    assert result.message == "Request timed out"


@pytest.mark.asyncio
async def test_scan_domain_dropped_connection_is_not_resent(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.side_effect = aiohttp.ServerDisconnectedError()

        result = await client.scan_domain("example.com", "w1")
        await client.close()

    assert mock_post.call_count == 1
    assert result.success is False


@pytest.mark.asyncio
async def test_read_timeout_is_retried(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.side_effect = asyncio.TimeoutError()

        with pytest.raises(ApiError, match="timed out"):
            await client.get_workspaces()
        await client.close()

    assert mock_get.call_count == 3


@pytest.mark.asyncio
async def test_scan_domain_payload(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(200, "{}")

        result = await client.scan_domain("example.com", "w1")
        await client.close()

    assert result.success is True
    args, kwargs = mock_post.call_args
    assert args[0].endswith("/automateScanDomain")
    assert kwargs["json"]["domain"] == "example.com"


@pytest.mark.asyncio
async def test_create_workspace(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(
            201, {"workspaceId": "abc"}
        )

        workspace_id = await client.create_workspace("recon")
        await client.close()

    assert workspace_id == "abc"
    assert mock_post.call_args.kwargs["json"] == {"name": "recon"}


@pytest.mark.asyncio
async def test_create_workspace_without_id(client):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(200, {})

        with pytest.raises(ApiError):
            await client.create_workspace("recon")
        await client.close()


@pytest.mark.asyncio
async def test_get_workspaces_forwards_custom_headers(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.return_value = mock_response(
            200, {"workspaces": [{"wkspId": "1", "name": "main"}]}
        )

        workspaces = await client.get_workspaces()
        await client.close()

    assert workspaces == [{"wkspId": "1", "name": "main"}]
    headers = mock_get.call_args.kwargs["headers"]
    assert headers == {"X-Jsmon-Key": "test-key", "Cookie": "session=1"}


@pytest.mark.asyncio
async def test_read_error_raises_api_error(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.return_value = mock_response(
            401, {"message": "Invalid API key"}
        )

        with pytest.raises(ApiError) as exc_info:
            await client.get_workspaces()
        await client.close()

    assert exc_info.value.status == 401
    assert "Invalid API key" in exc_info.value.message
    assert str(exc_info.value).startswith("[HTTP 401]")


@pytest.mark.asyncio
async def test_read_invalid_json(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.return_value = mock_response(200, "<html>")

        with pytest.raises(ApiError):
            await client.get_secrets("w1")
        await client.close()


@pytest.mark.asyncio
async def test_read_connection_error(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.side_effect = aiohttp.ClientConnectionError("dns failure")

        with pytest.raises(ApiError) as exc_info:
            await client.get_scans("w1", "fileScan")
        await client.close()

    assert exc_info.value.status is None
    assert mock_get.call_count == 3


@pytest.mark.asyncio
async def test_get_intelligence_params(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.return_value = mock_response(200, {"data": []})

        await client.get_intelligence("w1", "inactivedomains", page=2)
        await client.close()

    assert mock_get.call_args.kwargs["params"] == {
        "wkspId": "w1",
        "options": "domainsstatus",
        "page": 2,
        "status": "inactive",
    }


@pytest.mark.asyncio
async def test_total_count_analysis_omits_empty_run_id(client):
    with patch("aiohttp.ClientSession.get") as mock_get:
        mock_get.return_value.__aenter__.return_value = mock_response(
            200, {"totalUrls": 4}
        )

        data = await client.get_total_count_analysis("w1")
        await client.close()

    assert data == {"totalUrls": 4}
    assert mock_get.call_args.kwargs["params"] == {"wkspId": "w1"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,expected",
    [
        ({"data": [{"value": "x"}]}, [{"value": "x"}]),
        ([{"value": "y"}], [{"value": "y"}]),
        ({"data": None}, []),
        ({"fileName": "a.js"}, [{"fileName": "a.js"}]),
        ({}, []),
    ],
)
async def test_reverse_search_response_shapes(client, body, expected):
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = mock_response(200, body)

        results = await client.reverse_search("w1", "emails", "a@b.c")
        await client.close()

    assert results == expected
    assert mock_post.call_args.kwargs["json"] == {"value": "a@b.c"}


def test_map_field_to_options():
    assert map_field_to_options("ip") == "ipaddresses"
    assert map_field_to_options("S3Takeovers") == "s3invalid"
    assert map_field_to_options("gqlmutaions") == "gqlmutations"
    assert map_field_to_options("jsurls") == "jsurls"
    assert status_for_field("activedomains") == "active"
    assert status_for_field("emails") is None


def test_extract_error_message():
    assert extract_error_message('{"error": "bad"}') == "bad"
    assert extract_error_message('{"code": 1}') == '{"code": 1}'
    assert extract_error_message(" plain ") == "plain"
