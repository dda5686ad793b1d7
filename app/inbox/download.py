"""Capture of the consolidated PDF through CDP ``Fetch`` interception.

The "download all" control answers with a file download that never reaches
the page DOM, so the response is intercepted at the network layer: a CDP
session pauses every response, the first one that looks like a PDF has its
body read, and every paused response is released unmodified. The channel is
armed immediately before the click and always disarmed afterwards.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import unquote

from playwright.sync_api import CDPSession, Error as PWError, Page

from . import config
from .error_codes import ErrorCode
from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, safe_evaluate, wait_seconds
from .polling import poll_until
from .selectors import INBOX_SELECTORS
from .utils import log_line

PDF_MAGIC = b"%PDF"

_CAPTURE_POLL_SECONDS = 0.25
_CAPTURE_POLL_BACKOFF = 1.5
_CAPTURE_POLL_MAX_SECONDS = 2.0

_PDF_CONTENT_TYPES = (
    "application/pdf",
    "application/x-pdf",
    "application/octet-stream",
    "application/force-download",
    "binary/octet-stream",
)

_FILENAME_STAR_RE = re.compile(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_QUOTED_RE = re.compile(r'filename\s*=\s*"([^"]*)"', re.IGNORECASE)
_FILENAME_PLAIN_RE = re.compile(r"filename\s*=\s*([^;]+)", re.IGNORECASE)

DOWNLOAD_ALL_JS = """
(args) => {
  const s = args.s;
  const dialogs = Array.from(document.querySelectorAll(s.modal_containers.join(', ')))
    .filter((el) => el.getAttribute('aria-hidden') === 'false' || el.offsetParent !== null);
  if (!dialogs.length) return { found: false, reason: 'dialog' };
  let control = null;
  let via = '';
  for (const modal of dialogs) {
    for (const id of s.download_all_ids) {
      control = modal.querySelector('[id*="' + id + '" i]');
      if (control) { via = 'id'; break; }
    }
    if (!control) {
      for (const el of modal.querySelectorAll('button, a')) {
        const text = (el.textContent || '').trim().toLowerCase();
        if (s.download_all_labels.some((label) => text.includes(label))) {
          control = el;
          via = 'label';
          break;
        }
      }
    }
    if (control) break;
  }
  if (!control) return { found: false, reason: 'control' };
  const clickable = control.closest('button, a') || control;
  const disabled = clickable.disabled || clickable.classList.contains(s.disabled_class) ||
    clickable.getAttribute('aria-disabled') === 'true';
  if (disabled) return { found: true, enabled: false, via, id: clickable.id || '' };
  if (args.click) clickable.click();
  return { found: true, enabled: true, clicked: !!args.click, via, id: clickable.id || '' };
}
"""


class CaptureError(Exception):
    """Raised inside the interceptor; converted to a failed ``CaptureResult``."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


@dataclass
class CaptureResult:
    ok: bool
    clicked: bool = False
    pdf_base64: str = ""
    filename: str = ""
    size: int = 0
    url: str = ""
    error_code: Optional[str] = None
    error: str = ""

    @property
    def has_bytes(self) -> bool:
        return bool(self.pdf_base64)


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """Return the filename carried by a ``Content-Disposition`` header.

    The RFC 5987 ``filename*=charset''value`` form wins over the plain
    ``filename=`` parameter; both are percent-decoded.
    """

    if not header:
        return None

    match = _FILENAME_STAR_RE.search(header)
    if match:
        charset = (match.group(1) or "utf-8").strip() or "utf-8"
        raw = match.group(2).strip().strip('"')
        try:
            name = unquote(raw, encoding=charset, errors="replace")
        except LookupError:
            name = unquote(raw)
        if name:
            return name

    match = _FILENAME_QUOTED_RE.search(header) or _FILENAME_PLAIN_RE.search(header)
    if match:
        name = unquote(match.group(1).strip().strip("'\""))
        return name or None
    return None


def _lower_headers(raw: Any) -> Dict[str, str]:
    if isinstance(raw, Mapping):
        return {str(k).lower(): str(v) for k, v in raw.items()}
    headers: Dict[str, str] = {}
    for entry in raw or []:
        name = str(entry.get("name") or "").lower()
        if name:
            headers[name] = str(entry.get("value") or "")
    return headers


def is_pdf_candidate(headers: Mapping[str, str], status: Optional[int]) -> bool:
    """Return ``True`` when a response looks like the consolidated file."""

    if status != 200:
        return False
    content_type = (headers.get("content-type") or "").lower()
    disposition = (headers.get("content-disposition") or "").lower()
    if any(kind in content_type for kind in _PDF_CONTENT_TYPES):
        return True
    return "attachment" in disposition or ".pdf" in disposition


def validate_pdf_bytes(data: bytes) -> None:
    """Raise ``CaptureError`` unless *data* is a plausible PDF document."""

    if len(data) < config.MIN_PDF_BYTES:
        raise CaptureError(
            ErrorCode.INVALID_FORMAT,
            f"PDF too small ({len(data)} bytes, minimum {config.MIN_PDF_BYTES}).",
        )
    if not data.startswith(PDF_MAGIC):
        raise CaptureError(
            ErrorCode.INVALID_FORMAT,
            f"Response is not a PDF (starts with {data[:8]!r}).",
        )


def fallback_filename(notification_number: str) -> str:
    base = (notification_number or "notificacion").replace("/", "_").strip() or "notificacion"
    return f"{base}_Consolidado.pdf"


class PdfInterceptor:
    """Owns one CDP session with response-stage ``Fetch`` interception."""

    def __init__(self, page: Page) -> None:
        self.page = page
        self.session: Optional[CDPSession] = None
        self.captured: Optional[Dict[str, Any]] = None
        self.errors: List[str] = []
        self.paused = 0

    @property
    def armed(self) -> bool:
        return self.session is not None

    def arm(self) -> None:
        session = self.page.context.new_cdp_session(self.page)
        self.session = session
        session.on("Fetch.requestPaused", self._on_request_paused)
        session.send(
            "Fetch.enable",
            {"patterns": [{"urlPattern": "*", "requestStage": "Response"}]},
        )
        _scraper_event("pdf", step="armed")

    def disarm(self) -> None:
        session, self.session = self.session, None
        if session is None:
            return
        try:
            session.send("Fetch.disable")
        except PWError as exc:
            _scraper_event("pdf", step="disable_failed", error=str(exc))
        try:
            session.detach()
        except PWError as exc:
            _scraper_event("pdf", step="detach_failed", error=str(exc))
        _scraper_event("pdf", step="disarmed", paused=self.paused)

    def _release(self, request_id: Any) -> None:
        if self.session is None or request_id is None:
            return
        try:
            self.session.send("Fetch.continueRequest", {"requestId": request_id})
        except PWError as exc:
            self.errors.append(f"continue failed: {exc}")

    def _on_request_paused(self, event: Dict[str, Any]) -> None:
        request_id = event.get("requestId")
        self.paused += 1
        try:
            if self.captured is not None or self.session is None:
                return
            headers = _lower_headers(event.get("responseHeaders"))
            status = event.get("responseStatusCode")
            if not is_pdf_candidate(headers, status):
                return
            body = self.session.send("Fetch.getResponseBody", {"requestId": request_id})
            self.captured = {
                "url": (event.get("request") or {}).get("url", ""),
                "headers": headers,
                "body": body.get("body", ""),
                "base64": bool(body.get("base64Encoded")),
            }
        except PWError as exc:
            self.errors.append(f"body read failed: {exc}")
        finally:
            self._release(request_id)


def _decode_capture(captured: Dict[str, Any]) -> bytes:
    body = captured.get("body") or ""
    if not captured.get("base64"):
        return body.encode("utf-8")
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CaptureError(ErrorCode.INVALID_FORMAT, f"Corrupt base64 body: {exc}") from exc


def _download_all(page: Page, *, click: bool) -> Optional[Dict[str, Any]]:
    raw = safe_evaluate(page, DOWNLOAD_ALL_JS, {"s": INBOX_SELECTORS.to_js(), "click": click})
    return raw if isinstance(raw, dict) else None


def _failed(code: str, message: str, *, clicked: bool = False) -> CaptureResult:
    log_line(f"[PDF] {message}")
    _scraper_event("error", phase="pdf", error_code=code, error=message, clicked=clicked)
    return CaptureResult(ok=False, clicked=clicked, error_code=code, error=message)


def capture_consolidated_pdf(
    page: Page, *, timeout: Optional[float] = None, notification_number: str = ""
) -> CaptureResult:
    """Click the dialog's "download all" control and capture the PDF it returns."""

    if is_page_closed(page):
        return _failed(ErrorCode.CONTEXT_LOST, "Page closed before the PDF capture.")

    located = _download_all(page, click=False)
    if located is None:
        return _failed(ErrorCode.CONTEXT_LOST, "Page did not answer while locating the download control.")
    if not located.get("found"):
        return _failed(ErrorCode.NOT_FOUND, f"Download-all control not found ({located.get('reason')}).")
    if not located.get("enabled"):
        return _failed(ErrorCode.NOT_FOUND, "Download-all control is disabled.")

    interceptor = PdfInterceptor(page)
    try:
        try:
            interceptor.arm()
        except PWError as exc:
            # Without interception the click still triggers the portal's own download.
            log_line(f"[PDF] Could not arm interception ({exc}); clicking without capture.")
            _scraper_event("pdf", step="arm_failed", error=str(exc))
            interceptor.disarm()
            clicked = _download_all(page, click=True)
            if not clicked or not clicked.get("clicked"):
                return _failed(ErrorCode.CONTEXT_LOST, "Download-all click failed.")
            return CaptureResult(ok=True, clicked=True)

        wait_seconds(page, config.PDF_PRE_CLICK_SECONDS)
        clicked = _download_all(page, click=True)
        if not clicked or not clicked.get("clicked"):
            return _failed(ErrorCode.CONTEXT_LOST, "Download-all click failed.")
        _scraper_event("pdf", step="clicked", via=clicked.get("via"), control_id=clicked.get("id"))

        ceiling = float(timeout if timeout is not None else config.PDF_CAPTURE_TIMEOUT_SECONDS)
        outcome = poll_until(
            page,
            lambda: interceptor.captured,
            ready=lambda value: True,
            interval=_CAPTURE_POLL_SECONDS,
            backoff=_CAPTURE_POLL_BACKOFF,
            max_interval=_CAPTURE_POLL_MAX_SECONDS,
            ceiling=ceiling,
            label="pdf_capture",
        )
        if not outcome.ok:
            detail = f" ({interceptor.errors[-1]})" if interceptor.errors else ""
            return _failed(
                ErrorCode.TIMEOUT,
                f"No PDF response within {ceiling:.0f}s{detail}.",
                clicked=True,
            )

        captured = outcome.value
        try:
            data = _decode_capture(captured)
            validate_pdf_bytes(data)
        except CaptureError as exc:
            return _failed(exc.error_code, exc.message, clicked=True)

        encoded = base64.b64encode(data).decode("ascii")
        if len(base64.b64decode(encoded)) != len(data):
            return _failed(ErrorCode.INVALID_FORMAT, "PDF corrupted during base64 conversion.", clicked=True)

        filename = parse_content_disposition(
            captured["headers"].get("content-disposition")
        ) or fallback_filename(notification_number)
        log_line(f"[PDF] Captured {filename} ({round(len(data) / 1024)} KB)")
        _scraper_event("pdf", step="captured", filename=filename, size=len(data), url=captured.get("url"))
        return CaptureResult(
            ok=True,
            clicked=True,
            pdf_base64=encoded,
            filename=filename,
            size=len(data),
            url=str(captured.get("url") or ""),
        )
    finally:
        interceptor.disarm()


__all__ = [
    "PDF_MAGIC",
    "DOWNLOAD_ALL_JS",
    "CaptureError",
    "CaptureResult",
    "PdfInterceptor",
    "parse_content_disposition",
    "is_pdf_candidate",
    "validate_pdf_bytes",
    "fallback_filename",
    "capture_consolidated_pdf",
]
