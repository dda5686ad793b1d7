"""In-memory stand-ins for the Playwright objects the harvester drives.

``FakePage.evaluate`` dispatches on the exact script constant passed in, so a
test registers a handler per script (a value returned as is, a ``Seq`` of
successive values, or a callable receiving the script argument). Waiting advances ``clock``
instead of sleeping; the ``fake_page`` fixture points the polling clock at
it.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PWError


class Seq:
    """Successive results for one script; the last one repeats forever."""

    def __init__(self, *values: Any) -> None:
        if not values:
            raise ValueError("Seq needs at least one value")
        self.values = list(values)

    def next(self) -> Any:
        return self.values.pop(0) if len(self.values) > 1 else self.values[0]


class FakeKeyboard:
    def __init__(self, page: "FakePage") -> None:
        self.page = page
        self.pressed: List[str] = []
        self.typed: List[str] = []

    def press(self, key: str) -> None:
        self.pressed.append(key)
        if key == "Backspace" and self.page.focused is not None:
            self.page.focused.value = ""
        if self.page.on_key:
            self.page.on_key(key)

    def type(self, text: str, delay: float = 0) -> None:
        self.typed.append(text)
        focused = self.page.focused
        if focused is not None:
            focused.value += text


class FakeCDPSession:
    def __init__(self) -> None:
        self.handlers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {}
        self.sent: List[tuple[str, Optional[Dict[str, Any]]]] = []
        self.enabled = False
        self.detached = False
        self.pending: List[Dict[str, Any]] = []
        self.bodies: Dict[str, Dict[str, Any]] = {}

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.sent.append((method, params))
        if self.detached:
            raise PWError("Target page, context or browser has been closed")
        if method == "Fetch.enable":
            self.enabled = True
        elif method == "Fetch.disable":
            self.enabled = False
        elif method == "Fetch.getResponseBody":
            return self.bodies[params["requestId"]]
        return {}

    def detach(self) -> None:
        self.detached = True

    def queue_response(
        self,
        request_id: str,
        *,
        url: str,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        body: str = "",
        base64_encoded: bool = True,
    ) -> None:
        self.pending.append(
            {
                "requestId": request_id,
                "request": {"url": url},
                "responseStatusCode": status,
                "responseHeaders": [
                    {"name": name, "value": value} for name, value in (headers or {}).items()
                ],
            }
        )
        self.bodies[request_id] = {"body": body, "base64Encoded": base64_encoded}

    def flush(self) -> None:
        if not self.enabled:
            return
        events, self.pending = self.pending, []
        for event in events:
            for handler in self.handlers.get("Fetch.requestPaused", []):
                handler(event)

    def continued(self) -> List[str]:
        return [params["requestId"] for method, params in self.sent if method == "Fetch.continueRequest"]


class FakeContext:
    def __init__(self, page: "FakePage") -> None:
        self.page = page

    def new_cdp_session(self, page: "FakePage") -> FakeCDPSession:
        if self.page.cdp_error is not None:
            raise self.page.cdp_error
        if self.page.cdp is None:
            self.page.cdp = FakeCDPSession()
        return self.page.cdp


class FakeElement:
    def __init__(self, value: str = "") -> None:
        self.value = value
        self.clicks = 0
        self.blurred = 0


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def _element(self) -> Optional[FakeElement]:
        return self.page.elements.get(self.selector)

    def count(self) -> int:
        return 1 if self._element() is not None else 0

    def click(self, timeout: Optional[float] = None) -> None:
        element = self._element()
        if element is None:
            raise PWError(f"waiting for locator('{self.selector}')")
        element.clicks += 1
        self.page.focused = element
        if self.selector in self.page.on_click:
            self.page.on_click[self.selector]()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        element = self._element()
        if element is not None and "blur" in script:
            element.blurred += 1
            self.page.focused = None
        return None

    def input_value(self) -> str:
        element = self._element()
        return element.value if element is not None else ""


class FakePage:
    def __init__(self, url: str = "https://portal.example/sinoe/casillas/notificacion-bandeja.xhtml") -> None:
        self._url = url
        self.clock = 0.0
        self.closed = False
        self.url_error: Optional[Exception] = None
        self.handlers: Dict[str, Any] = {}
        self.evaluations: List[tuple[str, Any]] = []
        self.keyboard = FakeKeyboard(self)
        self.context = FakeContext(self)
        self.cdp: Optional[FakeCDPSession] = None
        self.cdp_error: Optional[Exception] = None
        self.elements: Dict[str, FakeElement] = {}
        self.on_click: Dict[str, Callable[[], None]] = {}
        self.on_key: Optional[Callable[[str], None]] = None
        self.focused: Optional[FakeElement] = None
        self.waits: List[float] = []
        self.goto_calls: List[str] = []
        self.reload_calls = 0
        self.goto_hook: Optional[Callable[[str], None]] = None
        self.reload_hook: Optional[Callable[[], None]] = None
        self.screenshots: List[str] = []

    # -- Playwright surface -------------------------------------------------

    @property
    def url(self) -> str:
        if self.url_error is not None:
            raise self.url_error
        return self._url

    def is_closed(self) -> bool:
        return self.closed

    def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        if self.closed:
            raise PWError("Target page, context or browser has been closed")
        if script not in self.handlers:
            raise PWError("Execution context was destroyed, most likely because of a navigation")
        handler = self.handlers[script]
        if callable(handler):
            result = handler(arg)
        elif isinstance(handler, Seq):
            result = handler.next()
        else:
            result = handler
        if isinstance(result, BaseException):
            raise result
        return result

    def wait_for_timeout(self, timeout: float) -> None:
        self.waits.append(timeout)
        self.clock += float(timeout) / 1000.0
        if self.cdp is not None:
            self.cdp.flush()

    def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.goto_calls.append(url)
        if self.goto_hook:
            self.goto_hook(url)
        else:
            self._url = url

    def reload(self, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.reload_calls += 1
        if self.reload_hook:
            self.reload_hook()

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def screenshot(self, path: str, full_page: bool = False) -> None:
        self.screenshots.append(path)

    # -- helpers --------------------------------------------------------------

    def set_url(self, url: str) -> None:
        self._url = url

    def calls(self, script: str) -> List[Any]:
        return [arg for evaluated, arg in self.evaluations if evaluated == script]


def table_probe(kind: str, rows: int = 0, no_results: bool = False) -> Dict[str, Any]:
    return {"kind": kind, "rowCount": rows, "noResults": no_results}


__all__ = [
    "FakeCDPSession",
    "FakeElement",
    "FakeLocator",
    "FakePage",
    "Seq",
    "table_probe",
]
