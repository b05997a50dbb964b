"""Builders for parameterized SQL fragments.

Both builders emit 1-based ``$n`` placeholders (see ``database.run_query``)
and keep the generated placeholders positionally coupled to the values that
are bound to them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional

from errors import BadRequestError


def build_set_clause(
    updates: Mapping[str, Any], field_name_map: Mapping[str, str]
) -> tuple[str, list[Any]]:
    """Create the SET clause and bound values for a partial update.

    ({"firstName": "Aliya", "age": 32}, {"firstName": "first_name"})
        => ('"first_name"=$1, "age"=$2', ["Aliya", 32])

    Raises BadRequestError when ``updates`` is empty.
    """
    if not updates:
        raise BadRequestError("No data")

    cols = [
        f'"{field_name_map.get(key, key)}"=${idx}'
        for idx, key in enumerate(updates, start=1)
    ]
    return ", ".join(cols), list(updates.values())


@dataclass(frozen=True)
class FilterRule:
    """How one recognized filter key turns into a WHERE fragment.

    ``template`` holds ``{}`` where the placeholder goes. Flag rules have no
    placeholder: they add their literal template when the value is truthy
    and nothing otherwise.
    """

    template: str
    flag: bool = False
    transform: Optional[Callable[[Any], Any]] = None


def contains(value: Any) -> str:
    return f"%{value}%"


COMPANY_FILTERS: dict[str, FilterRule] = {
    "nameLike": FilterRule("lower(name) LIKE lower({})", transform=contains),
    "minEmployees": FilterRule("num_employees >= {}"),
    "maxEmployees": FilterRule("num_employees <= {}"),
}

JOB_FILTERS: dict[str, FilterRule] = {
    "title": FilterRule("lower(title) LIKE lower({})", transform=contains),
    "minSalary": FilterRule("salary >= {}"),
    "hasEquity": FilterRule("equity > 0", flag=True),
}


_UNBOUND = object()


def _walk(
    criteria: Mapping[str, Any], rules: Mapping[str, FilterRule]
) -> Iterator[tuple[str, Any]]:
    """Yield (fragment, bound value) pairs; flag fragments carry ``_UNBOUND``."""
    idx = 1
    for key, value in criteria.items():
        rule = rules.get(key)
        if rule is None:
            raise BadRequestError(f"Unrecognized filter: {key}")
        if rule.flag:
            if value:
                yield rule.template, _UNBOUND
            continue
        bound = rule.transform(value) if rule.transform else value
        yield rule.template.format(f"${idx}"), bound
        idx += 1


def build_filter_clause(
    criteria: Mapping[str, Any], rules: Mapping[str, FilterRule]
) -> str:
    """Turn filter criteria into WHERE-compatible text.

    {"title": "eng", "minSalary": 1000, "hasEquity": True}
        => "lower(title) LIKE lower($1) AND salary >= $2 AND equity > 0"

    Returns "" when nothing applies; callers must then leave out WHERE.
    """
    return " AND ".join(fragment for fragment, _ in _walk(criteria, rules))


def filter_values(criteria: Mapping[str, Any], rules: Mapping[str, FilterRule]) -> list[Any]:
    """Values to bind for ``build_filter_clause(criteria, rules)``, in placeholder order."""
    return [value for _, value in _walk(criteria, rules) if value is not _UNBOUND]
