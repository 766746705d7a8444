"""A small WSGI application: routing, middleware chains and JSON replies.

Handlers receive a :class:`Context` and either return normally or raise.
Error helpers such as :meth:`Context.bad_input` write the response and hand
the error back, so a handler can ``raise ctx.bad_input(exc)``.
"""

from __future__ import annotations

import json
import logging
import re
import time
import types
import typing
from collections.abc import Callable, Mapping
from dataclasses import MISSING, Field, asdict, dataclass, fields, is_dataclass
from http import HTTPStatus
from typing import Any, Protocol, Union

from werkzeug.datastructures import FileStorage, Headers
from werkzeug.wrappers import Request, Response

from apikit.errors import AppError, Errors
from apikit.fieldtypes import Date, Datetime, Float, Integer
from apikit.locale import DEFAULT_LOCALE, Tag
from apikit.validator import validate_struct

log = logging.getLogger(__name__)

Handler = Callable[["Context"], Any]
Middleware = Callable[[Handler], Handler]

_JSON_FIELD_TYPES = (Date, Datetime, Float, Integer)
_INT_RE = re.compile(r"[+-]?[0-9]+")
_OPTIONAL_RE = re.compile(r"(?:typing\.)?Optional\[(.+)\]")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1
_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_SKIP = object()

_NAMED_TYPES: dict[str, Any] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "None": type(None),
    "NoneType": type(None),
    "Any": Any,
    "Date": Date,
    "Datetime": Datetime,
    "Float": Float,
    "Integer": Integer,
}


class Session(Protocol):
    """Per-request session storage."""

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class _RawResponse(Response):
    default_mimetype = None


class _ResponseWriter:
    """Collects the status line, headers and body of one response."""

    def __init__(self) -> None:
        self.headers = Headers()
        self.status = 0
        self.body = bytearray()

    @property
    def written(self) -> bool:
        return self.status != 0

    def write_header(self, code: int) -> None:
        if not self.written:
            self.status = int(code)

    def write(self, data: bytes) -> None:
        if not self.written:
            self.status = int(HTTPStatus.OK)
        self.body += data

    def to_response(self) -> Response:
        headers = Headers(self.headers)
        if self.body and "Content-Type" not in headers:
            headers.set("Content-Type", "text/plain; charset=utf-8")
        return _RawResponse(
            bytes(self.body), status=self.status or int(HTTPStatus.OK), headers=headers
        )


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"cannot encode {type(obj).__name__} as JSON")


def _encode(data: Any) -> bytes:
    text = json.dumps(
        data,
        default=_json_default,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
    )
    text = text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
    return (text + "\n").encode()


def _resolve(tp: Any) -> Any:
    """Turn a field annotation, possibly written as a string, into a type."""
    if not isinstance(tp, str):
        return tp
    text = tp.strip()
    match = _OPTIONAL_RE.fullmatch(text)
    if match:
        return Union[_resolve(match.group(1)), None]
    if "|" in text:
        return Union[tuple(_resolve(part) for part in text.split("|"))]
    return _NAMED_TYPES.get(text.rsplit(".", 1)[-1], Any)


def _field_types(cls: type) -> dict[str, Any]:
    return {f.name: _resolve(f.type) for f in fields(cls)}


def _unwrap_optional(tp: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = typing.get_args(tp)
        rest = [arg for arg in args if arg is not type(None)]
        if len(rest) == 1 and len(rest) != len(args):
            return rest[0], True
    return tp, False


def _zero(tp: Any) -> Any:
    inner, optional = _unwrap_optional(tp)
    if optional:
        return None
    target = typing.get_origin(inner) or inner
    if isinstance(target, type):
        try:
            return target()
        except Exception:
            return None
    return None


def _default(f: Field, tp: Any) -> Any:
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:
        return f.default_factory()
    return _zero(tp)


def _decode_json_value(tp: Any, value: Any, name: str) -> Any:
    inner, optional = _unwrap_optional(tp)
    if value is None:
        return None if optional else _zero(inner)
    if not isinstance(inner, type):
        return value
    if issubclass(inner, _JSON_FIELD_TYPES):
        return inner.from_json(json.dumps(value))
    if inner is bool:
        if not isinstance(value, bool):
            raise TypeError(f"cannot decode {value!r} into bool field {name}")
        return value
    if inner is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"cannot decode {value!r} into int field {name}")
        return value
    if inner is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"cannot decode {value!r} into float field {name}")
        return float(value)
    if issubclass(inner, str):
        if not isinstance(value, str):
            raise TypeError(f"cannot decode {value!r} into string field {name}")
        return inner(value)
    if is_dataclass(inner):
        if not isinstance(value, dict):
            raise TypeError(f"cannot decode {value!r} into object field {name}")
        return _build_from_json(inner, value)
    return value


def _lookup(data: Mapping[str, Any], key: str) -> tuple[bool, Any]:
    if key in data:
        return True, data[key]
    folded = key.casefold()
    for candidate, value in data.items():
        if candidate.casefold() == folded:
            return True, value
    return False, None


def _build_from_json(cls: type, data: Mapping[str, Any]) -> Any:
    hints = _field_types(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if not f.init:
            continue
        tp = hints.get(f.name, Any)
        tag = str(f.metadata.get("json", ""))
        if tag == "-":
            kwargs[f.name] = _default(f, tp)
            continue
        key = tag.split(",")[0] or f.name
        found, value = _lookup(data, key)
        kwargs[f.name] = _decode_json_value(tp, value, key) if found else _default(f, tp)
    return cls(**kwargs)


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(text)))


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def _convert_scalar(tp: Any, text: str) -> Any:
    if not isinstance(tp, type):
        return _SKIP
    if tp is bool:
        return text in _TRUE
    if tp is int:
        return _parse_int(text)
    if tp is float:
        return _parse_float(text)
    if issubclass(tp, str):
        return tp(text)
    return _SKIP


def _convert_form(tp: Any, text: str) -> Any:
    inner, optional = _unwrap_optional(tp)
    converted = _convert_scalar(inner, text)
    if converted is _SKIP and optional:
        return _zero(inner)
    return converted


def bind_form_values(values: Any, cls: type) -> Any:
    """Build a ``cls`` instance from form values and validate it.

    Fields are filled from ``metadata["form"]``; strings, ints, floats and
    bools are converted, with unparsable numbers becoming zero.
    """
    if hasattr(values, "getlist"):
        lists = {key: list(values.getlist(key)) for key in values.keys()}
    else:
        lists = {key: [val] if isinstance(val, str) else list(val) for key, val in values.items()}
    hints = _field_types(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if not f.init:
            continue
        tp = hints.get(f.name, Any)
        form_key = str(f.metadata.get("form", ""))
        vals = lists.get(form_key) if form_key else None
        if vals:
            converted = _convert_form(tp, vals[0])
            if converted is not _SKIP:
                kwargs[f.name] = converted
                continue
        kwargs[f.name] = _default(f, tp)
    instance = cls(**kwargs)
    validate_struct(instance)
    return instance


def match_route(pattern: str, path: str) -> dict[str, str] | None:
    """Match ``path`` against ``pattern``; return its ``:name`` params or None."""
    parts = pattern.split("/")
    path_parts = path.split("/")
    if len(parts) != len(path_parts):
        return None
    params: dict[str, str] = {}
    for part, actual in zip(parts, path_parts):
        if part.startswith(":"):
            params[part[1:]] = actual
        elif part != actual:
            return None
    return params


class Context:
    """The request being served and the response being built."""

    def __init__(
        self,
        request: Request,
        params: dict[str, str] | None = None,
        session: Session | None = None,
    ) -> None:
        self.request = request
        self.writer = _ResponseWriter()
        self.params: dict[str, str] = dict(params or {})
        self.session = session
        self.locale: Tag = DEFAULT_LOCALE
        self.http_status = 0

    def use_locale(self, tag: Tag) -> None:
        """Use ``tag`` for localized error messages."""
        self.locale = tag

    def json(self, code: int, data: Any) -> None:
        """Write ``data`` as a JSON response with status ``code``."""
        self.writer.headers.set("Content-Type", "application/json")
        self.writer.write_header(code)
        self.writer.write(_encode(data))

    def success(self, data: Any) -> None:
        """Write a 200 response wrapping ``data``."""
        self.http_status = int(HTTPStatus.OK)
        self.json(self.http_status, {"code": str(self.http_status), "data": data})

    def _map_error(self, err: AppError) -> None:
        self.http_status = err.http_status
        self.json(
            err.http_status,
            {"code": err.code, "data": {"description": err.localized_error(self.locale)}},
        )

    def _general(
        self, status: HTTPStatus, err: BaseException, label: str, key: str = "data"
    ) -> BaseException:
        if isinstance(err, AppError):
            self._map_error(err)
            return err
        self.http_status = int(status)
        self.json(
            self.http_status,
            {"code": str(self.http_status), key: {"description": f"general {label} error: {err}"}},
        )
        return err

    def unauthorized(self, err: BaseException) -> BaseException:
        """Write an unauthorized response for ``err`` and return it."""
        return self._general(HTTPStatus.UNAUTHORIZED, err, "unautorized")

    def bad_input(self, err: BaseException) -> BaseException:
        """Write a bad-request response for ``err`` and return it."""
        if isinstance(err, Errors):
            self.http_status = int(HTTPStatus.BAD_REQUEST)
            self.json(
                self.http_status,
                {"code": str(self.http_status), "data": err.localized_error(self.locale)},
            )
            return err
        return self._general(HTTPStatus.BAD_REQUEST, err, "input")

    def not_allowed(self, err: BaseException) -> BaseException:
        """Write a method-not-allowed response for ``err`` and return it."""
        return self._general(HTTPStatus.METHOD_NOT_ALLOWED, err, "not allowed")

    def bad_gateway(self, err: BaseException) -> BaseException:
        """Write a bad-gateway response for ``err`` and return it."""
        return self._general(HTTPStatus.BAD_GATEWAY, err, "bad gateway")

    def server_error(self, err: BaseException) -> BaseException:
        """Write an internal-error response for ``err`` and return it."""
        return self._general(HTTPStatus.INTERNAL_SERVER_ERROR, err, "server", key="error")

    def param(self, key: str) -> str:
        """Return the path parameter ``key``, or an empty string."""
        return self.params.get(key, "")

    def query(self, key: str) -> str:
        """Return the first query value for ``key``, or an empty string."""
        return self.request.args.get(key, "")

    def bind(self, cls: type) -> Any:
        """Decode the JSON body into a ``cls`` instance and validate it."""
        data = json.loads(self.request.get_data())
        if not isinstance(data, dict):
            raise TypeError(f"cannot decode {type(data).__name__} into {cls.__name__}")
        instance = _build_from_json(cls, data)
        log.debug("bound %r", instance)
        validate_struct(instance)
        return instance

    def bind_form(self, cls: type) -> Any:
        """Build a ``cls`` instance from the form body and query string."""
        values: dict[str, list[str]] = {}
        for source in (self.request.form, self.request.args):
            for key in source.keys():
                values.setdefault(key, []).extend(source.getlist(key))
        return bind_form_values(values, cls)

    def form_file(self, key: str) -> FileStorage:
        """Return the uploaded file ``key``; raise LookupError when absent."""
        upload = self.request.files.get(key)
        if upload is None:
            raise LookupError("no such file")
        return upload


@dataclass(frozen=True)
class _RouteEntry:
    handler: Handler
    middleware: tuple[Middleware, ...]


class Router:
    """Registers routes under a prefix with a middleware chain."""

    def __init__(
        self,
        prefix: str = "",
        routes: dict[str, dict[str, _RouteEntry]] | None = None,
        middleware: list[Middleware] | None = None,
    ) -> None:
        self.prefix = prefix
        self.routes: dict[str, dict[str, _RouteEntry]] = {} if routes is None else routes
        self.middleware: list[Middleware] = list(middleware or [])

    def group(self, prefix: str, *middleware: Middleware) -> Router:
        """Return a router sharing these routes, nested under ``prefix``."""
        return Router(self.prefix + prefix, self.routes, [*self.middleware, *middleware])

    def _handle(self, method: str, path: str, handler: Handler, middleware: tuple) -> None:
        self.routes.setdefault(method, {})[path] = _RouteEntry(
            handler, (*self.middleware, *middleware)
        )

    def use(self, *middleware: Middleware) -> None:
        """Add middleware for routes registered from now on."""
        self.middleware.extend(middleware)

    def get(self, path: str, handler: Handler, *middleware: Middleware) -> None:
        """Register a GET route."""
        self._handle("GET", self.prefix + path, handler, middleware)

    def post(self, path: str, handler: Handler, *middleware: Middleware) -> None:
        """Register a POST route."""
        self._handle("POST", self.prefix + path, handler, middleware)


def _not_found() -> Response:
    headers = Headers()
    headers.set("Content-Type", "text/plain; charset=utf-8")
    headers.set("X-Content-Type-Options", "nosniff")
    return _RawResponse(b"404 page not found\n", status=int(HTTPStatus.NOT_FOUND), headers=headers)


class App:
    """A WSGI application dispatching requests to registered routes."""

    def __init__(self) -> None:
        self.router = Router()
        self.middleware: list[Middleware] = []

    def route(self) -> Router:
        """Return the root router."""
        return self.router

    def use(self, *middleware: Middleware) -> None:
        """Add middleware applied around every route."""
        self.middleware.extend(middleware)

    def _find(self, method: str, path: str) -> tuple[_RouteEntry, dict[str, str]] | None:
        for pattern, entry in self.router.routes.get(method, {}).items():
            params = match_route(pattern, path)
            if params is not None:
                return entry, params
        return None

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        request = Request(environ)
        start = time.monotonic()
        found = self._find(request.method, request.path)
        if found is None:
            return _not_found()(environ, start_response)
        entry, params = found
        ctx = Context(request, params=params)

        handler = entry.handler
        for mw in reversed(entry.middleware):
            handler = mw(handler)
        for mw in reversed(self.middleware):
            handler = mw(handler)

        message = "success"
        try:
            handler(ctx)
        except Exception as exc:
            message = str(exc)

        elapsed = int((time.monotonic() - start) * 1000)
        log.info(
            "%s [%d] %s %s (%s) %d milliseconds",
            request.method,
            ctx.http_status,
            request.path,
            request.remote_addr,
            message,
            elapsed,
        )
        return ctx.writer.to_response()(environ, start_response)