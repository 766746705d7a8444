"""Middleware for CORS headers, request locale and error recovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from apikit.app import Context, Handler, Middleware
from apikit.locale import Tag

log = logging.getLogger(__name__)


@dataclass
class CORSConfig:
    """Which origins, methods and headers cross-origin requests may use."""

    allow_origins: list[str] = field(default_factory=lambda: ["*"])
    allow_methods: list[str] = field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    allow_headers: list[str] = field(
        default_factory=lambda: ["Origin", "Content-Type", "Accept", "Authorization"]
    )
    allow_credentials: bool = False


DEFAULT_CORS_CONFIG = CORSConfig()


def cors(config: CORSConfig = DEFAULT_CORS_CONFIG) -> Middleware:
    """Build middleware adding CORS headers and answering preflight requests."""
    allow_methods = ", ".join(config.allow_methods)
    allow_headers = ", ".join(config.allow_headers)
    allow_creds = "true" if config.allow_credentials else "false"
    origins = config.allow_origins

    def middleware(next_handler: Handler) -> Handler:
        def handler(ctx: Context) -> Any:
            headers = ctx.writer.headers
            origin = ctx.request.headers.get("Origin", "")
            if origin and ("*" in origins or origin in origins):
                headers.set("Access-Control-Allow-Origin", origin)
            headers.set("Access-Control-Allow-Methods", allow_methods)
            headers.set("Access-Control-Allow-Headers", allow_headers)
            headers.set("Access-Control-Allow-Credentials", allow_creds)

            if ctx.request.method == "OPTIONS":
                ctx.writer.write_header(HTTPStatus.NO_CONTENT)
                return None
            return next_handler(ctx)

        return handler

    return middleware


def locale_wrapper(next_handler: Handler) -> Handler:
    """Use the locale named by the ``lang`` query value when it is supported."""

    def handler(ctx: Context) -> Any:
        lang = ctx.query("lang")
        if lang in (Tag.BAHASA.value, Tag.ENGLISH.value):
            ctx.use_locale(Tag(lang))
        return next_handler(ctx)

    return handler


def recover(next_handler: Handler) -> Handler:
    """Turn an unexpected exception into an internal-error response.

    An exception raised after a response was written is a handled error and
    passes through untouched.
    """

    def handler(ctx: Context) -> Any:
        try:
            return next_handler(ctx)
        except Exception as exc:
            if ctx.writer.written:
                raise
            log.error("[PANIC RECOVER] %s", exc, exc_info=True)
            err = RuntimeError("internal panic recover")
            ctx.server_error(err)
            raise err from exc

    return handler