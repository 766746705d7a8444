"""Query-string driven filtering, sorting and pagination of SQL selects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Protocol
from urllib.parse import parse_qs

from sqlalchemy import Select, func, literal_column, select

_RESERVED = frozenset({"page", "limit", "sort", "search", "select"})


@dataclass(frozen=True)
class SortField:
    """A column to sort by and its direction."""

    field: str
    desc: bool = False


@dataclass(frozen=True)
class SearchQuery:
    """A substring search on one field."""

    field: str
    keyword: str


@dataclass
class QueryOptions:
    """Everything parsed from a listing request's query string."""

    page: int = 1
    limit: int = 10
    offset: int = 0
    sort: list[SortField] = field(default_factory=list)
    search: SearchQuery | None = None
    filters: dict[str, str] = field(default_factory=dict)
    select: list[str] = field(default_factory=list)
    between: dict[str, tuple[str, str]] = field(default_factory=dict)


@dataclass
class Pagination:
    """One page of results with the total count."""

    items: Any
    total: int
    page: int
    limit: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }


class AllowedFieldProvider(Protocol):
    """A listable model: its base select and the fields clients may use."""

    def allowed_fields(self) -> dict[str, str]:
        """Map public field names to column names."""
        ...

    def model(self) -> Select:
        """Return the select statement the listing starts from."""
        ...


def default_allowed_fields(model: Any) -> dict[str, str]:
    """Map each dataclass field's public name to its ``column:`` setting.

    The public name is ``metadata["json"]`` or the lower-cased field name;
    the column comes from ``metadata["gorm"]`` parts such as
    ``"column:name;size:100"``. Fields without a column are left out.
    """
    if not is_dataclass(model):
        raise TypeError(f"expected a dataclass, got {type(model).__name__}")
    allowed: dict[str, str] = {}
    for f in fields(model):
        json_name = f.metadata.get("json", "")
        if not json_name or json_name == "-":
            json_name = f.name.lower()
        column = next(
            (
                part[len("column:"):]
                for part in str(f.metadata.get("gorm", "")).split(";")
                if part.startswith("column:")
            ),
            "",
        )
        if column:
            allowed[json_name] = column
    return allowed


def _normalize(values: Any) -> dict[str, list[str]]:
    if isinstance(values, (str, bytes)):
        text = values.decode() if isinstance(values, bytes) else values
        return parse_qs(text.lstrip("?"), keep_blank_values=True)
    if hasattr(values, "getlist"):
        return {key: list(values.getlist(key)) for key in values.keys()}
    if isinstance(values, Mapping):
        return {
            key: [val] if isinstance(val, str) else list(val)
            for key, val in values.items()
        }
    raise TypeError(f"unsupported query values: {type(values).__name__}")


def _positive_int(text: str) -> int:
    try:
        number = int(text)
    except ValueError:
        return 0
    return number if text.strip() == text and "_" not in text else 0


def parse_opts(values: Any) -> QueryOptions:
    """Build QueryOptions from a query string or a mapping of value lists."""
    query = _normalize(values)

    def first(key: str) -> str:
        vals = query.get(key) or [""]
        return vals[0]

    opts = QueryOptions()
    if (page := _positive_int(first("page"))) > 0:
        opts.page = page
    if (limit := _positive_int(first("limit"))) > 0:
        opts.limit = limit
    opts.offset = (opts.page - 1) * opts.limit

    if sort := first("sort"):
        opts.sort = [
            SortField(field=part[1:] if part.startswith("-") else part,
                      desc=part.startswith("-"))
            for part in sort.split(",")
        ]

    if search := first("search"):
        parts = search.split(",", 1)
        if len(parts) == 2:
            opts.search = SearchQuery(field=parts[0], keyword=parts[1])

    if selected := first("select"):
        opts.select = selected.split(",")

    for key, vals in query.items():
        if key in _RESERVED or not vals:
            continue
        if key.endswith("[]") and len(vals) == 2:
            opts.between[key[:-2]] = (vals[0], vals[1])
            continue
        opts.filters[key] = vals[0]

    return opts


def pagination_result(
    model: AllowedFieldProvider, opts: QueryOptions, session: Any
) -> Pagination:
    """Run the model's select with the options applied and return one page.

    Only fields listed by ``model.allowed_fields()`` take part; others are
    ignored. Items are returned as dictionaries of column values.
    """
    stmt = model.model()
    allowed = model.allowed_fields()

    for key, val in opts.filters.items():
        if (col := allowed.get(key)) is not None:
            stmt = stmt.where(literal_column(col) == val)

    for key, (low, high) in opts.between.items():
        if (col := allowed.get(key)) is not None and low and high:
            stmt = stmt.where(literal_column(col).between(low, high))

    if opts.search is not None:
        if (col := allowed.get(opts.search.field)) is not None:
            stmt = stmt.where(literal_column(col).like(f"%{opts.search.keyword}%"))

    columns = [allowed[name] for name in opts.select if name in allowed]
    if columns:
        stmt = stmt.with_only_columns(
            *(literal_column(col) for col in columns), maintain_column_froms=True
        )

    for sort in opts.sort:
        if (col := allowed.get(sort.field)) is not None:
            column = literal_column(col)
            stmt = stmt.order_by(column.desc() if sort.desc else column.asc())

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = int(session.execute(count_stmt).scalar_one())

    page_stmt = stmt.offset(opts.offset).limit(opts.limit)
    items = [dict(row) for row in session.execute(page_stmt).mappings()]

    return Pagination(items=items, total=total, page=opts.page, limit=opts.limit)