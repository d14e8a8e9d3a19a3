"""
ASGI middleware rewriting the Path attribute of outgoing cookies.

The downstream app is called with a wrapped ``send``. Body messages go
through as-is; the ``http.response.start`` message, which carries the status
and headers, is where every staged Set-Cookie header is parsed, rewritten
and re-serialized before the status is forwarded.
"""

import logging
from typing import Optional, Sequence

from opentelemetry import trace
from prometheus_client import Counter
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from cookie_path_filter.config import Config, create_config
from cookie_path_filter.cookies import read_set_cookies
from cookie_path_filter.replacement import (
    CompiledReplacement,
    compile_replacements,
    rewrite_path,
)

SET_COOKIE_HEADER = b"set-cookie"

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

cookie_path_rewrites = Counter(
    "cookie_path_rewrites_total",
    "Cookies whose Path attribute was rewritten",
    ["filter"],
)


class CookiePathRewritingSend:
    """``send`` wrapper that rewrites cookie paths on the response start message."""

    def __init__(
        self,
        send: Send,
        replacements: Sequence[CompiledReplacement],
        name: str = "",
    ):
        self.send = send
        self.replacements = replacements
        self.name = name

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.rewrite_cookies(message)
        await self.send(message)

    def rewrite_cookies(self, message: Message) -> None:
        if not self.replacements or not message.get("headers"):
            return
        # Header names may arrive in any case
        values = [
            value.decode("latin-1")
            for key, value in message["headers"]
            if key.lower() == SET_COOKIE_HEADER
        ]
        if not values:
            return

        with tracer.start_as_current_span("cookie_path_rewrite") as span:
            cookies = read_set_cookies(values)
            headers = [
                (key, value)
                for key, value in message["headers"]
                if key.lower() != SET_COOKIE_HEADER
            ]

            rewritten = 0
            for cookie in cookies:
                path = rewrite_path(self.replacements, cookie.name, cookie.path)
                if path != cookie.path:
                    logger.debug(
                        f"[CookiePath] {self.name}: cookie {cookie.name} path "
                        f"{cookie.path!r} -> {path!r}"
                    )
                    cookie.path = path
                    rewritten += 1
                headers.append((SET_COOKIE_HEADER, cookie.to_header().encode("latin-1")))
            message["headers"] = headers

            if rewritten:
                cookie_path_rewrites.labels(filter=self.name).inc(rewritten)
            span.set_attribute("cookie_path.filter", self.name)
            span.set_attribute("cookie_path.cookies", len(cookies))
            span.set_attribute("cookie_path.rewritten", rewritten)
            span.set_attribute("cookie_path.dropped", len(values) - len(cookies))


class CookiePathReplacementMiddleware:
    """
    Rewrites the Path of Set-Cookie headers emitted by the wrapped app.

    The rules are compiled once here; an invalid pattern raises
    InvalidPatternError and no middleware is built.
    """

    def __init__(self, app: ASGIApp, config: Optional[Config] = None, name: str = ""):
        self.app = app
        self.config = config or create_config()
        self.name = name
        self.replacements = compile_replacements(self.config.replacements)
        logger.info(
            f"[CookiePath] {name or 'filter'} ready with "
            f"{len(self.replacements)} replacement(s)"
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        await self.app(
            scope, receive, CookiePathRewritingSend(send, self.replacements, self.name)
        )
