"""
Tests for the Render Adapter.

R1) HTTP backend: multipart form with fixed layout fields + access key
R2) Non-2xx → RenderError(status_code, provider message)
R3) 200 without %PDF magic → RenderError
R4) Timeout → RenderTimeoutError, transport error → RenderError(None)
R5) Missing configuration → RenderError(None)
R6) Browserless backend (playwright mocked)
R7) get_renderer backend selection
"""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from contract_pdf.core.config import settings
from contract_pdf.errors import PdfErrorCode, RenderError, RenderTimeoutError
from contract_pdf.services.pdf_renderer import (
    PROVIDER_MESSAGE_LIMIT,
    BrowserlessPdfRenderer,
    HttpPdfRenderer,
    get_renderer,
)

ENDPOINT = "https://render.test/api/convert"


def _renderer(handler, timeout: float = 5.0) -> HttpPdfRenderer:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpPdfRenderer(ENDPOINT, "secret-key", timeout=timeout, client=client)


# ===================================================================
# R1) Request shape
# ===================================================================

class TestHttpRequest:
    def test_success_returns_bytes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, content=b"%PDF-1.7 rendered")

        assert _renderer(handler).render("<p>Hello</p>") == b"%PDF-1.7 rendered"

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.params["access_key"] == "secret-key"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.read()
        assert b'name="document_html"' in body
        assert b"<p>Hello</p>" in body
        assert b'name="page_size"' in body and b"A4" in body
        assert b'name="margin_top"' in body and b"20mm" in body
        assert b'name="use_print_media"' in body


# ===================================================================
# R2) / R3) Provider errors
# ===================================================================

class TestHttpProviderErrors:
    def test_json_error_info(self):
        def handler(request):
            return httpx.Response(400, json={"success": False, "error": {"code": 311, "info": "invalid html"}})

        with pytest.raises(RenderError) as exc_info:
            _renderer(handler).render("<p>x</p>")
        assert exc_info.value.status_code == 400
        assert exc_info.value.provider_message == "invalid html"
        assert exc_info.value.error_code == PdfErrorCode.RENDER_FAILED

    def test_plain_string_error(self):
        def handler(request):
            return httpx.Response(502, json={"error": "upstream down"})

        with pytest.raises(RenderError) as exc_info:
            _renderer(handler).render("<p>x</p>")
        assert exc_info.value.provider_message == "upstream down"

    def test_text_body_truncated(self):
        def handler(request):
            return httpx.Response(500, text="E" * 1000)

        with pytest.raises(RenderError) as exc_info:
            _renderer(handler).render("<p>x</p>")
        assert exc_info.value.status_code == 500
        assert len(exc_info.value.provider_message) == PROVIDER_MESSAGE_LIMIT

    def test_200_with_json_error_body(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": {"info": "quota exceeded"}})

        with pytest.raises(RenderError) as exc_info:
            _renderer(handler).render("<p>x</p>")
        assert exc_info.value.status_code == 200
        assert "quota exceeded" in str(exc_info.value)


# ===================================================================
# R4) Timeout / transport
# ===================================================================

class TestHttpTransport:
    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(RenderTimeoutError) as exc_info:
            _renderer(handler, timeout=2.5).render("<p>x</p>")
        err = exc_info.value
        assert isinstance(err, RenderError)
        assert err.error_code == PdfErrorCode.RENDER_TIMEOUT
        assert err.status_code is None
        assert "timed out after 2.5s" in str(err)

    def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RenderError) as exc_info:
            _renderer(handler).render("<p>x</p>")
        assert not isinstance(exc_info.value, RenderTimeoutError)
        assert exc_info.value.status_code is None

    def test_single_attempt_no_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="busy")

        with pytest.raises(RenderError):
            _renderer(handler).render("<p>x</p>")
        assert len(calls) == 1


# ===================================================================
# R5) Configuration
# ===================================================================

class TestConfiguration:
    def test_missing_access_key(self):
        with pytest.raises(RenderError) as exc_info:
            HttpPdfRenderer(ENDPOINT, None).render("<p>x</p>")
        assert exc_info.value.status_code is None

    def test_missing_ws_endpoint(self):
        with pytest.raises(RenderError):
            BrowserlessPdfRenderer(None).render("<p>x</p>")


# ===================================================================
# R6) Browserless
# ===================================================================

def _mock_playwright(sync_playwright: MagicMock) -> MagicMock:
    p = MagicMock()
    sync_playwright.return_value.__enter__.return_value = p
    browser = p.chromium.connect_over_cdp.return_value
    return browser.new_page.return_value


class TestBrowserless:
    def test_prints_a4_with_margins(self):
        with patch("playwright.sync_api.sync_playwright") as sp:
            page = _mock_playwright(sp)
            page.pdf.return_value = b"%PDF-chromium"

            out = BrowserlessPdfRenderer("wss://chrome.test", timeout=10).render("<p>x</p>")

        assert out == b"%PDF-chromium"
        page.emulate_media.assert_called_once_with(media="print")
        kwargs = page.pdf.call_args.kwargs
        assert kwargs["format"] == "A4"
        assert kwargs["print_background"] is True
        assert kwargs["margin"]["left"] == "20mm"

    def test_timeout_mapped(self):
        from playwright.sync_api import TimeoutError as PlaywrightTimeout

        with patch("playwright.sync_api.sync_playwright") as sp:
            page = _mock_playwright(sp)
            page.set_content.side_effect = PlaywrightTimeout("Timeout 10000ms exceeded")

            with pytest.raises(RenderTimeoutError):
                BrowserlessPdfRenderer("wss://chrome.test", timeout=10).render("<p>x</p>")


# ===================================================================
# R7) Backend selection
# ===================================================================

class TestGetRenderer:
    def test_http_default(self):
        cfg = settings.model_copy(update={"pdf_render_backend": "http", "pdf_render_timeout_seconds": 12.0})
        renderer = get_renderer(cfg)
        assert isinstance(renderer, HttpPdfRenderer)
        assert renderer.timeout == 12.0

    def test_browserless(self):
        cfg = settings.model_copy(update={
            "pdf_render_backend": "browserless",
            "pdf_browser_ws_endpoint": "wss://chrome.test",
        })
        renderer = get_renderer(cfg)
        assert isinstance(renderer, BrowserlessPdfRenderer)
        assert renderer.ws_endpoint == "wss://chrome.test"

    def test_unknown_backend(self):
        cfg = settings.model_copy(update={"pdf_render_backend": "carrier-pigeon"})
        with pytest.raises(ValueError):
            get_renderer(cfg)
