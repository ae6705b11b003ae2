import asyncio
import time

import httpx
import pytest
import respx
from samaya_client.errors import (
    NetworkError,
    RemoteError,
    RequestTimeoutError,
    StaleSessionError,
)
from samaya_client.config import ApiPaths, Settings
from samaya_client.gateway import RequestGateway, is_public_endpoint

BASE_URL = "https://api.samaya.test"


@pytest.mark.asyncio
@respx.mock
async def test_execute_success_with_default_headers(gateway):
    route = respx.get(f"{BASE_URL}/user/profile").respond(200, json={"data": {"id": 1}})

    result = await gateway.execute("user_profile")

    assert result == {"data": {"id": 1}}
    request = route.calls[0].request
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["X-Request-Id"]
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_injects_bearer_token_on_private_paths(gateway, session):
    await session.establish("tok-123")
    route = respx.get(f"{BASE_URL}/bookings/b1").respond(200, json={"id": "b1"})

    await gateway.execute("booking_detail", path_params={"booking_id": "b1"})

    assert route.calls[0].request.headers["Authorization"] == "Bearer tok-123"
    await gateway.aclose()


@pytest.mark.parametrize("endpoint,url", [
    ("send_otp", "/otp/send"),
    ("verify_otp", "/otp/verify"),
    ("signup", "/signup"),
    ("login", "/login"),
])
@pytest.mark.asyncio
@respx.mock
async def test_never_injects_bearer_on_auth_paths(gateway, session, endpoint, url):
    await session.establish("tok-123")
    route = respx.post(f"{BASE_URL}{url}").respond(200, json={"msg": "ok"})

    await gateway.execute(endpoint, "POST", {"phone": "9876543210"}, headers={"Authorization": "Bearer x"})

    assert "Authorization" not in route.calls[0].request.headers
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_caller_headers_merge_over_defaults(gateway):
    route = respx.get(f"{BASE_URL}/health").respond(200, json={})

    await gateway.execute("health", headers={"X-Custom": "yes", "Accept": "text/plain"})

    headers = route.calls[0].request.headers
    assert headers["X-Custom"] == "yes"
    assert headers["Accept"] == "text/plain"
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_applied_and_normalized(settings, session):
    settings.request_timeout_seconds = 0.5
    gateway = RequestGateway(settings, session)
    route = respx.get(f"{BASE_URL}/user/profile").mock(side_effect=httpx.ReadTimeout("slow"))

    with pytest.raises(RequestTimeoutError) as exc_info:
        await gateway.execute("user_profile")

    assert exc_info.value.code == "backend_timeout"
    assert "0.5s" in exc_info.value.message
    assert route.calls[0].request.extensions["timeout"]["read"] == 0.5
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_transport_failure_becomes_network_error(gateway):
    respx.get(f"{BASE_URL}/user/profile").mock(side_effect=httpx.ConnectError("connection reset"))

    with pytest.raises(NetworkError) as exc_info:
        await gateway.execute("user_profile")

    assert not isinstance(exc_info.value, RequestTimeoutError)
    assert "connection reset" in exc_info.value.message
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_error_body_message_is_surfaced(gateway):
    respx.post(f"{BASE_URL}/otp/verify").respond(400, json={"msg": "Invalid or expired OTP"})

    with pytest.raises(RemoteError) as exc_info:
        await gateway.execute("verify_otp", "POST", {"phone": "9876543210", "code": "000000"})

    assert exc_info.value.message == "Invalid or expired OTP"
    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "backend_error_400"
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_structured_error_code_is_kept(gateway):
    respx.post(f"{BASE_URL}/otp/verify").respond(
        422, json={"message": "Code expired", "code": "otp_expired"}
    )

    with pytest.raises(RemoteError) as exc_info:
        await gateway.execute("verify_otp", "POST", {})

    assert exc_info.value.code == "otp_expired"
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_unparseable_error_falls_back_to_text_then_status_line(gateway):
    respx.get(f"{BASE_URL}/a").respond(502, text="Bad gateway from proxy")
    respx.get(f"{BASE_URL}/b").respond(503, text="")

    with pytest.raises(RemoteError) as first:
        await gateway.execute("/a")
    with pytest.raises(RemoteError) as second:
        await gateway.execute("/b")

    assert first.value.message == "Bad gateway from proxy"
    assert second.value.message == "HTTP 503: Service Unavailable"
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_401_with_token_is_stale_session(gateway, session):
    await session.establish("dead")
    respx.get(f"{BASE_URL}/user/profile").respond(401, json={"detail": "Token expired"})

    with pytest.raises(StaleSessionError):
        await gateway.execute("user_profile")

    # The gateway never clears the session itself.
    assert await session.token() == "dead"
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_non_json_success_and_list_bodies(gateway):
    respx.get(f"{BASE_URL}/text").respond(200, text="pong")
    respx.get(f"{BASE_URL}/list").respond(200, json=[1, 2])

    assert await gateway.execute("/text") == {"status_code": 200, "text": "pong"}
    assert await gateway.execute("/list") == {"data": [1, 2]}
    await gateway.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_ping_reports_reachability(gateway):
    route = respx.get(f"{BASE_URL}/health")
    route.side_effect = [httpx.Response(200, json={"ok": True}), httpx.ConnectError("down")]

    assert await gateway.ping() is True
    assert await gateway.ping() is False
    await gateway.aclose()


def test_resolve_encodes_path_params(gateway):
    assert gateway.resolve("booking_detail", booking_id="a/b") == "/bookings/a%2Fb"
    assert gateway.resolve("/custom/path") == "/custom/path"


def test_public_endpoint_detection():
    paths = ApiPaths()
    assert is_public_endpoint("send_otp", paths)
    assert is_public_endpoint("login", paths)
    assert is_public_endpoint("/otp/verify", paths)
    assert is_public_endpoint("/signup/", paths)
    assert not is_public_endpoint("bookings", paths)
    assert not is_public_endpoint("/bookings/login-42", paths)
    assert not is_public_endpoint("/auth/login/history", paths)


@pytest.mark.parametrize("booking_id", ["login-42", "otp", "signup"])
@pytest.mark.asyncio
@respx.mock
async def test_private_path_containing_auth_words_keeps_bearer(gateway, session, booking_id):
    await session.establish("tok")
    route = respx.get(f"{BASE_URL}/bookings/{booking_id}").respond(200, json={"id": booking_id})

    await gateway.execute("booking_detail", path_params={"booking_id": booking_id})

    assert route.calls[0].request.headers["Authorization"] == "Bearer tok"
    await gateway.aclose()


async def _trickle_response(reader, writer):
    await reader.readuntil(b"\r\n\r\n")
    writer.write(
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: application/json\r\n"
        b"Transfer-Encoding: chunked\r\n\r\n"
    )
    try:
        # One byte every 0.1s keeps every read well inside the timeout.
        for _ in range(30):
            if reader.at_eof():
                break
            writer.write(b"1\r\n \r\n")
            await writer.drain()
            await asyncio.sleep(0.1)
        writer.write(b"0\r\n\r\n")
        await writer.drain()
    except ConnectionError:
        pass
    finally:
        writer.close()


@pytest.mark.asyncio
async def test_timeout_bounds_the_whole_call_not_each_read(session):
    server = await asyncio.start_server(_trickle_response, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    settings = Settings(
        api_base_url=f"http://127.0.0.1:{port}",
        environment="test",
        request_timeout_seconds=0.5,
    )
    gateway = RequestGateway(settings, session)

    started = time.monotonic()
    with pytest.raises(RequestTimeoutError) as exc_info:
        await gateway.execute("user_profile")
    elapsed = time.monotonic() - started

    assert exc_info.value.code == "backend_timeout"
    assert elapsed < 1.5
    await gateway.aclose()
    server.close()
