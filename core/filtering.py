"""
Filter / pagination translation

Turns a structured filter request into a parameterised PostgreSQL query
with a companion COUNT query, and wraps result pages in a pagination
envelope.

Usage:
    query = build_filter_query(request, columns={"contract_id": UUID, "created_at": datetime})
    sql, params = query.select_sql("contract.contract")
    count_sql, count_params = query.count_sql("contract.contract")
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 1000


class InvalidFilterError(ValueError):
    """Filter request references unknown columns or carries unusable values"""


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class PaginationRequest(BaseModel):
    """Page selection, page numbers are 0-based"""
    page_number: int = Field(0, ge=0)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    sort_by: Optional[str] = None
    sort_direction: SortDirection = SortDirection.DESC


class RangeFilter(BaseModel):
    """Inclusive bounds, either side optional"""
    model_config = ConfigDict(populate_by_name=True)

    from_: Optional[Any] = Field(None, alias="from")
    to: Optional[Any] = None


class FilterRequest(BaseModel):
    """Equality filters, range filters and pagination"""
    filters: Dict[str, Any] = Field(default_factory=dict)
    range_filters: Dict[str, RangeFilter] = Field(default_factory=dict)
    pagination: PaginationRequest = Field(default_factory=PaginationRequest)


class PaginationResponse(BaseModel, Generic[T]):
    """One page of results"""
    content: List[T]
    total_elements: int
    total_pages: int
    current_page: int

    @classmethod
    def of(cls, content: List[T], total_elements: int, pagination: PaginationRequest) -> "PaginationResponse[T]":
        return cls(
            content=content,
            total_elements=total_elements,
            total_pages=math.ceil(total_elements / pagination.page_size) if total_elements else 0,
            current_page=pagination.page_number,
        )


@dataclass
class FilterQuery:
    """Translated filter: WHERE/ORDER clauses and their positional parameters"""
    where_clause: str
    order_clause: str
    params: List[Any] = field(default_factory=list)
    page_size: int = DEFAULT_PAGE_SIZE
    page_number: int = 0

    @property
    def offset(self) -> int:
        return self.page_number * self.page_size

    def select_sql(self, table: str) -> Tuple[str, List[Any]]:
        limit_param = len(self.params) + 1
        sql = (
            f"SELECT * FROM {table} {self.where_clause} {self.order_clause} "
            f"LIMIT ${limit_param} OFFSET ${limit_param + 1}"
        )
        return sql, [*self.params, self.page_size, self.offset]

    def count_sql(self, table: str) -> Tuple[str, List[Any]]:
        return f"SELECT COUNT(*) AS count FROM {table} {self.where_clause}", list(self.params)


def columns_of(model: Type[BaseModel], exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Filter whitelist of a pydantic model: every field mapped to its annotation"""
    skipped = set(exclude)
    return {name: info.annotation for name, info in model.model_fields.items() if name not in skipped}


def _coerce(column: str, annotation: Any, value: Any) -> Any:
    if annotation is None or value is None:
        return value
    try:
        coerced = TypeAdapter(annotation).validate_python(value)
    except ValidationError as e:
        raise InvalidFilterError(f"Invalid value for '{column}': {value!r}") from e
    return coerced.value if isinstance(coerced, Enum) else coerced


def _check_column(column: str, columns: Mapping[str, Any]) -> None:
    if column not in columns:
        raise InvalidFilterError(f"Unknown filter field: {column}")


def build_filter_query(
    request: FilterRequest,
    columns: Mapping[str, Any],
    default_sort: str = "created_at",
) -> FilterQuery:
    """
    Translate a FilterRequest against a whitelist of columns.

    ``columns`` maps every filterable/sortable column to the Python type its
    values are coerced to before binding (``None`` binds values unchanged).
    Lists become ``= ANY($n)``, ``None`` becomes ``IS NULL``.
    """
    conditions: List[str] = []
    params: List[Any] = []
    param_count = 0

    for column, value in request.filters.items():
        _check_column(column, columns)
        if value is None:
            conditions.append(f"{column} IS NULL")
            continue
        param_count += 1
        if isinstance(value, (list, tuple)):
            conditions.append(f"{column} = ANY(${param_count})")
            params.append([_coerce(column, columns[column], v) for v in value])
        else:
            conditions.append(f"{column} = ${param_count}")
            params.append(_coerce(column, columns[column], value))

    for column, bounds in request.range_filters.items():
        _check_column(column, columns)
        if bounds.from_ is not None:
            param_count += 1
            conditions.append(f"{column} >= ${param_count}")
            params.append(_coerce(column, columns[column], bounds.from_))
        if bounds.to is not None:
            param_count += 1
            conditions.append(f"{column} <= ${param_count}")
            params.append(_coerce(column, columns[column], bounds.to))

    pagination = request.pagination
    sort_by = pagination.sort_by or default_sort
    _check_column(sort_by, columns)

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    order_clause = f"ORDER BY {sort_by} {pagination.sort_direction.value}"

    return FilterQuery(
        where_clause=where_clause,
        order_clause=order_clause,
        params=params,
        page_size=pagination.page_size,
        page_number=pagination.page_number,
    )
