# apikit

A small toolkit for building JSON APIs as WSGI applications.

- `apikit.app` – `App` (a WSGI callable), `Router` with `:name` path
  parameters, route groups and middleware at app, group and route level, and
  `Context` with JSON reply helpers and request binding.
- `apikit.middleware` – `cors(CORSConfig)`, `locale_wrapper` and `recover`.
- `apikit.locale` – the `Tag` enum (`Tag.ENGLISH` = `"en"`, `Tag.BAHASA` =
  `"id"`), `supported_tags()` and `is_supported()`.
- `apikit.errors`, `apikit.loader`, `apikit.builtin` – `AppError` (HTTP
  status, application code and per-language messages), `Errors` (a mapping of
  field names to errors that is itself an exception), loading error
  definitions from YAML, and the built-in validation errors.
- `apikit.rules`, `apikit.validator` – validation rules and `validate_struct`
  for dataclass instances.
- `apikit.fieldtypes` – the string-backed types `Date`, `Datetime`, `Float`
  and `Integer`, which accept JSON strings or numbers.
- `apikit.pagination` – `parse_opts` and `pagination_result` for filtering,
  searching, sorting and paging SQLAlchemy selects from query parameters.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## A minimal application

```python
from apikit.app import App
from apikit.middleware import CORSConfig, cors, locale_wrapper, recover

application = App()
application.use(recover, locale_wrapper, cors(CORSConfig()))

def hello(ctx):
    ctx.success({"name": ctx.param("name")})

api = application.route().group("/api")
api.get("/hello/:name", hello)
```

`App` is a WSGI callable, so any WSGI server can serve it, for example
`werkzeug.serving.run_simple("localhost", 8000, application)`. Requests that
match no route get a plain-text 404.

Only `GET` and `POST` routes can be registered (`Router.get`, `Router.post`).
A handler receives a `Context` and either returns or raises. Each request is
logged on the `apikit.app` logger with its method, status, path, client
address, outcome (`success` or the exception's message) and the time taken.

### Replies

- `ctx.success(data)` writes `{"code": "200", "data": ...}`.
- `ctx.bad_input(err)`, `ctx.unauthorized(err)`, `ctx.not_allowed(err)`,
  `ctx.bad_gateway(err)` and `ctx.server_error(err)` write an error response
  and return `err`, so a handler can `raise ctx.bad_input(exc)`. An `AppError`
  is written with its own status and code and its message in the request's
  locale; an `Errors` passed to `bad_input` is written as a map of field
  messages; any other exception becomes a general error description.
- `ctx.json(code, data)` writes any JSON-serialisable value.

### Reading the request

- `ctx.param(key)` – a path parameter; `ctx.query(key)` – a query value.
- `ctx.bind(cls)` – decode the JSON body into dataclass `cls` (keys from
  `metadata["json"]` or the field name) and validate it.
- `ctx.bind_form(cls)` – fill `cls` from form and query values named by
  `metadata["form"]`, then validate it. `bind_form_values(values, cls)` does
  the same from a plain mapping.
- `ctx.form_file(key)` – an uploaded file; raises `LookupError` if absent.

## Middleware

- `cors(config)` sets the `Access-Control-Allow-*` headers and answers
  `OPTIONS` requests with 204. `CORSConfig()` allows any origin, `GET`,
  `POST` and `OPTIONS`, and the `Origin`, `Content-Type`, `Accept` and
  `Authorization` headers, without credentials.
- `locale_wrapper` switches the context to `en` or `id` when the `lang` query
  value names one of them.
- `recover` turns an exception raised before any response was written into a
  500 reply and re-raises it as `RuntimeError("internal panic recover")`.

## Built-in error messages

The validation errors (`field_required()`, `field_below_minimum(n)`, …) take
their status, code and messages from a file named `400_error_list.yaml`. The
package does not ship this file: load your own once at start-up with
`apikit.builtin.load_builtin_errors(base_dir)`, where `base_dir` is the
directory holding it (default `app/errors/yaml_files`). Until it is loaded the
built-in errors, and so the validation rules that raise them, raise
`LookupError`. The file looks like:

```yaml
http_status: 400
errors:
  ErrFieldRequired:
    code: "40001"
    en: "field is required"
    id: "field wajib diisi"
  ErrFieldBelowMinimum:
    code: "40002"
    en: "value must be at least %v"
    id: "nilai minimal %v"
```

Messages may use `%v`, `%d`, `%s` and similar verbs, filled from the error's
arguments. Further definitions can be registered with
`apikit.loader.collect_builtin_errors(data)`, and errors built with
`apikit.errors.new_error(key, attr, *args)`.

## Validation

Rules are listed in a dataclass field's `metadata["validation"]`:

```python
from dataclasses import dataclass, field
from apikit.validator import validate_struct

@dataclass
class SignUp:
    email: str = field(default="", metadata={"json": "email", "validation": "required,email"})
    age: int = field(default=0, metadata={"validation": "min=18,max=120"})

validate_struct(SignUp(email="user@example.com", age=30))  # passes
```

`validate_struct` returns nothing when every field passes and raises `Errors`
otherwise, keyed by `metadata["json"]` or the field name; only the first
failing rule of each field is reported. The registered rules are `required`,
`min`, `max`, `minlen`, `maxlen`, `email`, `digit`, `alphabet`, `alphanum`,
`date` (`YYYY-MM-DD`) and `datetime` (`YYYY-MM-DD HH:MM:SS`). Add your own
with `register_validator(name, fn)`, where `fn(value, param)` raises to
reject.

## Pagination

`parse_opts` reads a query string or mapping: `page` (default 1), `limit`
(default 10), `sort=name,-created`, `search=field,keyword`,
`select=a,b`, `key[]=low&key[]=high` for ranges, and any other key as an
equality filter. `pagination_result(model, opts, session)` applies them to
`model.model()` (a SQLAlchemy `Select`), using only the public names that
`model.allowed_fields()` maps to columns, and returns a `Pagination` with
the page's rows as dictionaries and the total count.
`default_allowed_fields(cls)` builds that map from dataclass fields whose
`metadata["gorm"]` holds a `column:<name>` part.

## What it does not do

apikit is a library: it has no command and no server of its own, and it does
not open or manage database connections — `pagination_result` uses the
SQLAlchemy session you pass in.