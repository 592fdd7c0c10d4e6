"""
Tests del cliente HTTP de WooCommerce con una sesion de requests guionada.
"""
import pytest
import requests

from catalog_mirror.infrastructure.external.woocommerce import client as client_module
from catalog_mirror.infrastructure.external.woocommerce.client import WooCommerceClient
from catalog_mirror.infrastructure.external.woocommerce.types import (
    RemoteCredentials,
    extract_last_modified,
    normalize_store_url,
)
from catalog_mirror.shared.exceptions.sync import RemoteRejected, RemoteUnavailable

from tests.fakes import ScriptedSession, make_response


CREDENTIALS = RemoteCredentials(
    url="tienda.example.com/",
    consumer_key=" ck_123 ",
    consumer_secret="cs_456",
)


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(client_module.time, "sleep", recorded.append)
    return recorded


def _client(session, **kwargs) -> WooCommerceClient:
    return WooCommerceClient(CREDENTIALS, session=session, **kwargs)


class TestHelpers:

    def test_normalize_store_url(self):
        assert normalize_store_url("tienda.example.com/") == "https://tienda.example.com"
        assert normalize_store_url("http://local.test") == "http://local.test"

    def test_extract_last_modified_prefers_gmt(self):
        parsed = extract_last_modified({
            "date_modified_gmt": "2026-01-01T12:00:00",
            "date_modified": "2026-01-01T09:00:00",
        })
        assert parsed.hour == 12
        assert parsed.tzinfo is not None

    def test_extract_last_modified_missing(self):
        assert extract_last_modified({}) is None


class TestWooCommerceClient:

    def test_builds_base_url_and_basic_auth(self, sleeps):
        session = ScriptedSession(make_response(body={"id": 1}))
        client = _client(session)

        assert client.get("/products/1") == {"id": 1}

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", "https://tienda.example.com/wp-json/wc/v3/products/1")
        assert session.auth == ("ck_123", "cs_456")
        assert kwargs["timeout"] == 30

    def test_retries_server_errors_then_succeeds(self, sleeps):
        session = ScriptedSession(
            make_response(503, {"message": "busy"}),
            make_response(200, [{"id": 1}]),
        )

        assert _client(session).get("/products") == [{"id": 1}]
        assert len(session.calls) == 2
        assert len(sleeps) == 1

    def test_rate_limit_respects_retry_after(self, sleeps):
        session = ScriptedSession(
            make_response(429, {"message": "slow down"}, {"Retry-After": "3"}),
            make_response(200, {"id": 1}),
        )

        _client(session).get("/orders/1")

        assert sleeps == [3.0]

    def test_exhausted_retries_raise_unavailable(self, sleeps):
        session = ScriptedSession(*[make_response(500, {"message": "boom"}) for _ in range(3)])

        with pytest.raises(RemoteUnavailable) as exc_info:
            _client(session, max_retries=2).get("/products")

        assert exc_info.value.http_status == 500
        assert len(session.calls) == 3

    def test_timeout_is_retried(self, sleeps):
        session = ScriptedSession(requests.Timeout("lento"), make_response(200, {"id": 1}))

        assert _client(session).get("/customers/1") == {"id": 1}

    def test_persistent_connection_error_raises_unavailable(self, sleeps):
        session = ScriptedSession(*[requests.ConnectionError("caido") for _ in range(2)])

        with pytest.raises(RemoteUnavailable):
            _client(session, max_retries=1).get("/customers")

    def test_validation_error_raises_rejected_without_retry(self, sleeps):
        session = ScriptedSession(
            make_response(400, {"code": "woocommerce_rest_invalid", "message": "SKU duplicado"})
        )

        with pytest.raises(RemoteRejected) as exc_info:
            _client(session).post("/products", {"sku": "A"})

        assert exc_info.value.http_status == 400
        assert "SKU duplicado" in exc_info.value.message
        assert len(session.calls) == 1
        assert sleeps == []

    def test_unauthorized_raises_unavailable(self, sleeps):
        session = ScriptedSession(make_response(401, {"message": "Consumer key invalida"}))

        with pytest.raises(RemoteUnavailable) as exc_info:
            _client(session).get("/products")

        assert exc_info.value.http_status == 401

    def test_no_content_returns_none(self, sleeps):
        session = ScriptedSession(make_response(204))

        assert _client(session).delete("/products/1") is None

    def test_non_json_body_raises_rejected(self, sleeps):
        resp = make_response(200)
        resp._content = b"<html>mantenimiento</html>"
        session = ScriptedSession(resp)

        with pytest.raises(RemoteRejected):
            _client(session).get("/products")


class TestPagination:

    def test_stops_at_total_pages(self, sleeps):
        session = ScriptedSession(
            make_response(200, [{"id": 1}, {"id": 2}], {"X-WP-TotalPages": "2"}),
            make_response(200, [{"id": 3}, {"id": 4}], {"X-WP-TotalPages": "2"}),
        )

        pages = list(_client(session, page_size=2).iter_pages("/products", {"status": "any"}))

        assert pages == [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}]]
        assert [call[2]["params"]["page"] for call in session.calls] == [1, 2]
        assert session.calls[0][2]["params"]["status"] == "any"

    def test_stops_on_short_page(self, sleeps):
        session = ScriptedSession(
            make_response(200, [{"id": 1}, {"id": 2}]),
            make_response(200, [{"id": 3}]),
        )

        pages = list(_client(session, page_size=2).iter_pages("/orders"))

        assert len(pages) == 2
        assert len(session.calls) == 2

    def test_empty_listing_yields_nothing(self, sleeps):
        session = ScriptedSession(make_response(200, []))

        assert list(_client(session).iter_pages("/customers")) == []

    def test_non_list_page_is_rejected(self, sleeps):
        session = ScriptedSession(make_response(200, {"id": 1}))

        with pytest.raises(RemoteRejected):
            list(_client(session).iter_pages("/customers"))
