"""
Render Adapter — remote HTML → PDF conversion.

Contract:
    render(html) -> bytes
    RenderError(status_code, provider_message)  on any non-success answer
    RenderTimeoutError                           when no answer within timeout
    zero internal retries (retry policy belongs to the caller)

Backends (PDF_RENDER_BACKEND):
    http         HttpPdfRenderer: one multipart POST to a conversion API
                 (pdflayer-compatible form fields)
    browserless  BrowserlessPdfRenderer: remote Chromium over CDP

Layout directives are fixed configuration: A4, 20mm margins, print media.
"""
from __future__ import annotations

import json
import logging
from typing import Optional, Protocol

import httpx

from ..core.config import Settings, settings as default_settings
from ..errors import RenderError, RenderTimeoutError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
PROVIDER_MESSAGE_LIMIT = 300

PAGE_SIZE = "A4"
PAGE_MARGIN = "20mm"

HTTP_LAYOUT_FIELDS: dict[str, str] = {
    "page_size": PAGE_SIZE,
    "margin_top": PAGE_MARGIN,
    "margin_right": PAGE_MARGIN,
    "margin_bottom": PAGE_MARGIN,
    "margin_left": PAGE_MARGIN,
    "use_print_media": "1",
}


class PdfRenderer(Protocol):
    def render(self, html: str) -> bytes:
        ...


def _provider_message(response: httpx.Response) -> str:
    """Best-effort extraction of the provider's error text."""
    body = response.text
    try:
        data = json.loads(body)
    except ValueError:
        return body[:PROVIDER_MESSAGE_LIMIT] or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            info = error.get("info") or error.get("message") or error.get("type")
            if info:
                return str(info)[:PROVIDER_MESSAGE_LIMIT]
        elif error:
            return str(error)[:PROVIDER_MESSAGE_LIMIT]
    return body[:PROVIDER_MESSAGE_LIMIT]


# ---------------------------------------------------------------------------
# HTTP conversion API
# ---------------------------------------------------------------------------

class HttpPdfRenderer:
    """Stateless adapter around a remote HTML → PDF conversion endpoint."""

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: Optional[str],
        *,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.access_key = access_key
        self.timeout = timeout
        self._client = client

    def render(self, html: str) -> bytes:
        if not self.endpoint_url or not self.access_key:
            raise RenderError(None, "render endpoint or access key not configured")

        # multipart/form-data with plain fields (no file parts)
        form = {"document_html": (None, html)}
        form.update({k: (None, v) for k, v in HTTP_LAYOUT_FIELDS.items()})

        client = self._client or httpx.Client()
        try:
            response = client.post(
                self.endpoint_url,
                params={"access_key": self.access_key},
                files=form,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RenderTimeoutError(self.timeout) from e
        except httpx.HTTPError as e:
            raise RenderError(None, f"transport error: {type(e).__name__}: {e}") from e
        finally:
            if self._client is None:
                client.close()

        if not response.is_success:
            message = _provider_message(response)
            logger.warning(f"[PDF-RENDER] Provider error {response.status_code}: {message}")
            raise RenderError(response.status_code, message)

        content = response.content
        # Some providers answer 200 with a JSON error body
        if not content.startswith(PDF_MAGIC):
            raise RenderError(response.status_code, _provider_message(response))

        logger.info(f"[PDF-RENDER] Received PDF, size={len(content)} bytes")
        return content


# ---------------------------------------------------------------------------
# Remote Chromium (browserless) over CDP
# ---------------------------------------------------------------------------

class BrowserlessPdfRenderer:
    """
    Prints the document with a remote headless Chromium.

    CSS @page rules of the embedded stylesheet win (prefer_css_page_size);
    the explicit A4/20mm values apply when the document has none.
    """

    def __init__(self, ws_endpoint: Optional[str], *, timeout: float = 60.0) -> None:
        self.ws_endpoint = ws_endpoint
        self.timeout = timeout

    def render(self, html: str) -> bytes:
        if not self.ws_endpoint:
            raise RenderError(None, "browser websocket endpoint not configured")

        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import TimeoutError as PlaywrightTimeout
        from playwright.sync_api import sync_playwright

        timeout_ms = self.timeout * 1000
        try:
            with sync_playwright() as p:
                browser = p.chromium.connect_over_cdp(self.ws_endpoint, timeout=timeout_ms)
                try:
                    page = browser.new_page()
                    page.set_content(html, wait_until="networkidle", timeout=timeout_ms)
                    page.emulate_media(media="print")
                    return page.pdf(
                        format=PAGE_SIZE,
                        print_background=True,
                        prefer_css_page_size=True,
                        margin={
                            "top": PAGE_MARGIN,
                            "right": PAGE_MARGIN,
                            "bottom": PAGE_MARGIN,
                            "left": PAGE_MARGIN,
                        },
                    )
                finally:
                    browser.close()
        except PlaywrightTimeout as e:
            raise RenderTimeoutError(self.timeout) from e
        except PlaywrightError as e:
            raise RenderError(None, str(e)[:PROVIDER_MESSAGE_LIMIT]) from e


def get_renderer(config: Optional[Settings] = None) -> PdfRenderer:
    """Build the configured render adapter."""
    cfg = config or default_settings
    if cfg.pdf_render_backend == "browserless":
        return BrowserlessPdfRenderer(
            cfg.pdf_browser_ws_endpoint,
            timeout=cfg.pdf_render_timeout_seconds,
        )
    if cfg.pdf_render_backend != "http":
        raise ValueError(f"Unknown PDF_RENDER_BACKEND: {cfg.pdf_render_backend}")
    return HttpPdfRenderer(
        cfg.pdf_render_url,
        cfg.pdf_render_access_key,
        timeout=cfg.pdf_render_timeout_seconds,
    )
