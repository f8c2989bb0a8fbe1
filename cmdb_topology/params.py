"""Request parameters for the host listing operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import TypeCoercionError, ValidationError
from .querybuilder import compile_filter
from .utils import get_int64

SET_COND_OPERATORS = {"$eq", "$ne", "$in", "$nin", "$lt", "$lte", "$gt", "$gte"}


def _int_list(data: Mapping[str, Any], key: str) -> Optional[List[int]]:
    raw = data.get(key)
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError(f"{key} must be a list", key=key)
    try:
        return [get_int64(item) for item in raw]
    except TypeCoercionError as exc:
        raise ValidationError(f"{key}: {exc}", key=key) from exc


def _fields(data: Mapping[str, Any]) -> List[str]:
    raw = data.get("fields") or []
    if not isinstance(raw, list) or not all(isinstance(item, str) and item for item in raw):
        raise ValidationError("fields must be a list of field names", key="fields")
    return raw


def _property_filter(data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    raw = data.get("host_property_filter")
    if raw is None or raw == {}:
        return None
    return compile_filter(raw)


@dataclass(slots=True)
class Page:
    start: int = 0
    limit: int = 0
    sort: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Page":
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValidationError("page must be an object", key="page")
        try:
            start = get_int64(data.get("start", 0))
            limit = get_int64(data.get("limit", 0))
        except TypeCoercionError as exc:
            raise ValidationError(f"page: {exc}", key="page") from exc
        sort = data.get("sort") or ""
        if not isinstance(sort, str):
            raise ValidationError("page.sort must be a string", key="page.sort")
        return cls(start=start, limit=limit, sort=sort)

    def is_illegal(self, max_page_size: int) -> bool:
        return self.limit <= 0 or self.limit > max_page_size or self.start < 0


@dataclass(slots=True)
class SetCondition:
    field: str
    operator: str
    value: Any

    @classmethod
    def from_dict(cls, data: Any, index: int) -> "SetCondition":
        key = f"set_cond[{index}]"
        if not isinstance(data, Mapping):
            raise ValidationError(f"{key} must be an object", key=key)
        field_name = data.get("field")
        if not isinstance(field_name, str) or not field_name:
            raise ValidationError(f"{key}.field is required", key=f"{key}.field")
        operator = data.get("operator", "$eq")
        if operator not in SET_COND_OPERATORS:
            raise ValidationError(f"{key}.operator {operator!r} is not supported", key=f"{key}.operator")
        return cls(field=field_name, operator=operator, value=data.get("value"))


def set_cond_filter(conditions: List[SetCondition]) -> Dict[str, Any]:
    flt: Dict[str, Any] = {}
    for cond in conditions:
        flt.setdefault(cond.field, {})[cond.operator] = cond.value
    return flt


@dataclass(slots=True)
class ListHostsParameter:
    """Body of a business host listing."""

    set_ids: Optional[List[int]] = None
    set_cond: List[SetCondition] = field(default_factory=list)
    module_ids: Optional[List[int]] = None
    host_filter: Optional[Dict[str, Any]] = None
    fields: List[str] = field(default_factory=list)
    page: Page = field(default_factory=Page)

    @classmethod
    def from_dict(cls, data: Any, max_page_size: int) -> "ListHostsParameter":
        if not isinstance(data, Mapping):
            raise ValidationError("request body must be an object")
        page = Page.from_dict(data.get("page"))
        if page.is_illegal(max_page_size):
            raise ValidationError(f"page.limit must be between 1 and {max_page_size}", key="page.limit")

        set_ids = _int_list(data, "bk_set_ids")
        raw_cond = data.get("set_cond") or []
        if not isinstance(raw_cond, list):
            raise ValidationError("set_cond must be a list", key="set_cond")
        if set_ids and raw_cond:
            raise ValidationError(
                "bk_set_ids and set_cond can't both be set", key="bk_set_ids and set_cond"
            )
        return cls(
            set_ids=set_ids,
            set_cond=[SetCondition.from_dict(item, index) for index, item in enumerate(raw_cond)],
            module_ids=_int_list(data, "bk_module_ids"),
            host_filter=_property_filter(data),
            fields=_fields(data),
            page=page,
        )


@dataclass(slots=True)
class ListHostsWithNoBizParameter:
    host_filter: Optional[Dict[str, Any]] = None
    fields: List[str] = field(default_factory=list)
    page: Page = field(default_factory=Page)

    @classmethod
    def from_dict(cls, data: Any, max_page_size: int) -> "ListHostsWithNoBizParameter":
        if not isinstance(data, Mapping):
            raise ValidationError("request body must be an object")
        page = Page.from_dict(data.get("page"))
        if page.is_illegal(max_page_size):
            raise ValidationError(f"page.limit must be between 1 and {max_page_size}", key="page.limit")
        return cls(host_filter=_property_filter(data), fields=_fields(data), page=page)


@dataclass(slots=True)
class ListHostsOption:
    """Resolved host query handed to ``HostService.list_hosts``."""

    biz_id: Optional[int] = None
    set_ids: Optional[List[int]] = None
    module_ids: Optional[List[int]] = None
    host_filter: Optional[Dict[str, Any]] = None
    fields: List[str] = field(default_factory=list)
    page: Page = field(default_factory=Page)

    @property
    def scoped(self) -> bool:
        return self.biz_id is not None or bool(self.set_ids) or bool(self.module_ids)


def parse_biz_id(raw: Any) -> int:
    try:
        biz_id = get_int64(raw)
    except TypeCoercionError as exc:
        raise ValidationError(f"bk_biz_id: {exc}", key="bk_biz_id") from exc
    if biz_id == 0:
        raise ValidationError("bk_biz_id must not be 0", key="bk_biz_id")
    return biz_id
