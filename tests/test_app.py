from __future__ import annotations

import io
import json
from dataclasses import dataclass, field
from http import HTTPStatus

import pytest
from werkzeug.test import Client, EnvironBuilder
from werkzeug.wrappers import Request

from apikit.app import App, Context, bind_form_values, match_route
from apikit.errors import ErrAttr, Errors, new_error
from apikit.fieldtypes import Integer
from apikit.loader import collect_builtin_errors
from apikit.locale import LangPackage, Tag
from apikit.pagination import Pagination

ERROR_YAML = """
http_status: 400
errors:
  ErrFieldRequired:
    code: "4001"
    en: "field is required"
    id: "wajib diisi"
  ErrFieldBelowMinimum:
    code: "4002"
    en: "must be at least %v"
    id: "minimal %v"
  ErrFieldMustBeDigit:
    code: "4003"
    en: "must be digits"
    id: "harus angka"
  ErrFieldUnsupportedType:
    code: "4004"
    en: "unsupported type"
    id: "tipe tidak didukung"
"""


@pytest.fixture(autouse=True)
def builtin_errors():
    collect_builtin_errors(ERROR_YAML)


@dataclass
class Signup:
    name: str = field(default="", metadata={"json": "name", "validation": "required"})
    age: Integer = field(default=Integer(""), metadata={"json": "age", "validation": "min=18"})


@dataclass
class Filter:
    name: str = field(default="", metadata={"form": "name"})
    count: int = field(default=0, metadata={"form": "count"})
    ratio: float = field(default=0.0, metadata={"form": "ratio"})
    active: bool = field(default=False, metadata={"form": "active"})
    nick: str | None = field(default=None, metadata={"form": "nick"})
    note: str = "untouched"


def make_ctx(**kwargs):
    return Context(Request(EnvironBuilder(**kwargs).get_environ()))


def body_of(ctx):
    return json.loads(bytes(ctx.writer.body))


def test_match_route_extracts_params():
    assert match_route("/users/:id/posts/:post", "/users/7/posts/9") == {"id": "7", "post": "9"}
    assert match_route("/users", "/users") == {}


@pytest.mark.parametrize("path", ["/users/7/extra", "/accounts/7", "/users"])
def test_match_route_rejects(path):
    assert match_route("/users/:id", path) is None


def test_get_route_with_params():
    app = App()
    app.route().get("/users/:id", lambda ctx: ctx.success({"id": ctx.param("id")}))
    resp = Client(app).get("/users/42")
    assert resp.status_code == HTTPStatus.OK
    assert resp.get_json() == {"code": str(HTTPStatus.OK.value), "data": {"id": "42"}}


def test_unknown_path_and_method_are_not_found():
    app = App()
    app.route().get("/ping", lambda ctx: ctx.success("pong"))
    client = Client(app)
    assert client.get("/nope").status_code == HTTPStatus.NOT_FOUND
    assert client.post("/ping").status_code == HTTPStatus.NOT_FOUND


def _recorder(calls, name):
    def mw(next_handler):
        def handler(ctx):
            calls.append(name)
            return next_handler(ctx)

        return handler

    return mw


def test_middleware_order_and_group_prefix():
    calls = []
    app = App()
    app.use(_recorder(calls, "app"))
    api = app.route().group("/api", _recorder(calls, "group"))
    api.get("/ping", lambda ctx: calls.append("handler"), _recorder(calls, "route"))
    resp = Client(app).get("/api/ping")
    assert resp.status_code == HTTPStatus.OK
    assert calls == ["app", "group", "route", "handler"]


def test_nested_groups_join_prefixes():
    app = App()
    app.route().group("/api").group("/v1").get("/x", lambda ctx: ctx.success("x"))
    client = Client(app)
    assert client.get("/api/v1/x").status_code == HTTPStatus.OK
    assert client.get("/v1/x").status_code == HTTPStatus.NOT_FOUND


def test_router_use_affects_later_routes_only():
    calls = []
    app = App()
    router = app.route()
    router.get("/a", lambda ctx: calls.append("a"))
    router.use(_recorder(calls, "late"))
    router.get("/b", lambda ctx: calls.append("b"))
    client = Client(app)
    client.get("/a")
    client.get("/b")
    assert calls == ["a", "late", "b"]


def test_handler_error_without_response_gives_empty_ok():
    def boom(ctx):
        raise ValueError("boom")

    app = App()
    app.route().get("/boom", boom)
    resp = Client(app).get("/boom")
    assert resp.status_code == HTTPStatus.OK
    assert resp.data == b""


def test_bad_input_with_validation_errors_is_localized():
    def handler(ctx):
        ctx.use_locale(Tag.BAHASA)
        try:
            ctx.bind(Signup)
        except Errors as errs:
            raise ctx.bad_input(errs)

    app = App()
    app.route().post("/signup", handler)
    resp = Client(app).post("/signup", json={"name": "", "age": 21})
    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert resp.get_json() == {
        "code": str(HTTPStatus.BAD_REQUEST.value),
        "data": {"name": "wajib diisi"},
    }


@pytest.mark.parametrize(
    "method", ["unauthorized", "bad_input", "not_allowed", "bad_gateway", "server_error"]
)
def test_app_error_is_mapped(method):
    err = new_error(
        "Teapot",
        ErrAttr(http_status=418, code=7, messages=[LangPackage(Tag.ENGLISH, "short and stout")]),
    )
    ctx = make_ctx()
    assert getattr(ctx, method)(err) is err
    assert ctx.http_status == 418
    assert ctx.writer.status == 418
    assert body_of(ctx) == {"code": 7, "data": {"description": "short and stout"}}


@pytest.mark.parametrize(
    "method, status, label, key",
    [
        ("unauthorized", HTTPStatus.UNAUTHORIZED, "general unautorized error", "data"),
        ("bad_input", HTTPStatus.BAD_REQUEST, "general input error", "data"),
        ("not_allowed", HTTPStatus.METHOD_NOT_ALLOWED, "general not allowed error", "data"),
        ("bad_gateway", HTTPStatus.BAD_GATEWAY, "general bad gateway error", "data"),
        ("server_error", HTTPStatus.INTERNAL_SERVER_ERROR, "general server error", "error"),
    ],
)
def test_generic_errors(method, status, label, key):
    err = ValueError("boom")
    ctx = make_ctx()
    assert getattr(ctx, method)(err) is err
    assert ctx.http_status == status
    assert body_of(ctx) == {"code": str(status.value), key: {"description": f"{label}: boom"}}


def test_json_escapes_html_and_sets_content_type():
    ctx = make_ctx()
    ctx.json(HTTPStatus.OK, {"html": "<b>&"})
    assert ctx.writer.headers["Content-Type"] == "application/json"
    assert b"\\u003cb\\u003e\\u0026" in bytes(ctx.writer.body)
    assert body_of(ctx) == {"html": "<b>&"}


def test_success_encodes_pagination():
    ctx = make_ctx()
    ctx.success(Pagination(items=[{"id": 1}], total=1, page=1, limit=10))
    assert body_of(ctx)["data"] == {"items": [{"id": 1}], "total": 1, "page": 1, "limit": 10}


def test_query_and_param():
    ctx = Context(Request(EnvironBuilder(query_string="q=hello&q=other").get_environ()), params={"id": "5"})
    assert ctx.query("q") == "hello"
    assert ctx.query("missing") == ""
    assert ctx.param("id") == "5"
    assert ctx.param("other") == ""


def test_bind_decodes_and_validates():
    ctx = make_ctx(method="POST", json={"name": "Ann", "age": 21})
    signup = ctx.bind(Signup)
    assert signup == Signup(name="Ann", age=Integer("21"))


def test_bind_reports_each_failing_field():
    ctx = make_ctx(method="POST", json={"name": "", "age": 10})
    with pytest.raises(Errors) as info:
        ctx.bind(Signup)
    assert set(info.value) == {"name", "age"}


def test_bind_rejects_malformed_json():
    ctx = make_ctx(method="POST", data="not json")
    with pytest.raises(ValueError):
        ctx.bind(Signup)


def test_bind_rejects_wrong_type():
    ctx = make_ctx(method="POST", json={"name": 5, "age": 30})
    with pytest.raises(TypeError):
        ctx.bind(Signup)


def test_bind_form_values_converts_fields():
    values = {
        "name": ["Ann"],
        "count": ["7"],
        "ratio": ["0.5"],
        "active": ["true"],
        "nick": ["an"],
        "note": ["ignored"],
    }
    assert bind_form_values(values, Filter) == Filter("Ann", 7, 0.5, True, "an", "untouched")


def test_bind_form_values_bad_numbers_become_zero():
    result = bind_form_values({"count": ["abc"], "ratio": ["x"], "active": ["maybe"]}, Filter)
    assert (result.count, result.ratio, result.active) == (0, 0.0, False)


def test_bind_form_reads_query_and_body():
    assert make_ctx(query_string="name=Bob&count=3").bind_form(Filter).name == "Bob"
    posted = make_ctx(method="POST", data={"name": "Cy", "count": "4"}).bind_form(Filter)
    assert (posted.name, posted.count) == ("Cy", 4)


def test_form_file():
    ctx = make_ctx(method="POST", data={"upload": (io.BytesIO(b"hello"), "hello.txt")})
    upload = ctx.form_file("upload")
    assert upload.filename == "hello.txt"
    assert upload.read() == b"hello"
    with pytest.raises(LookupError):
        ctx.form_file("missing")