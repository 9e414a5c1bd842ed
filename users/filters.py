#!/usr/bin/env python3
"""
User Query Filters - Compile loosely typed request parameters into MongoDB filters

Each predicate group (email, name, age, phone, free text) resolves to at most
one tagged predicate. Groups with competing parameters pick the winner by an
ordered first-present match, so precedence lives in one place per group:

    name:  nameRegex > name
    age:   ageIn > ageNin > age
    phone: hasPhone > phone

Resolution validates everything up front; compilation is a pure mapping from
predicates to a filter document and cannot fail.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from users.errors import ValidationError
from users.models import UserListQuery

_INT_TOKEN = re.compile(r"[+-]?\d+")


# -------------------------------
# Predicate variants
# -------------------------------

@dataclass(frozen=True)
class EmailContains:
    text: str


@dataclass(frozen=True)
class NameRegex:
    pattern: str


@dataclass(frozen=True)
class NameContains:
    text: str


@dataclass(frozen=True)
class AgeIn:
    values: Tuple[int, ...]


@dataclass(frozen=True)
class AgeNotIn:
    values: Tuple[int, ...]


@dataclass(frozen=True)
class AgeEquals:
    value: int


@dataclass(frozen=True)
class HasPhone:
    present: bool


@dataclass(frozen=True)
class PhoneContains:
    text: str


@dataclass(frozen=True)
class TextSearch:
    query: str


NamePredicate = Union[NameRegex, NameContains]
AgePredicate = Union[AgeIn, AgeNotIn, AgeEquals]
PhonePredicate = Union[HasPhone, PhoneContains]


@dataclass(frozen=True)
class FilterPredicates:
    """At most one winning predicate per group plus delete visibility."""
    include_deleted: bool = False
    email: Optional[EmailContains] = None
    name: Optional[NamePredicate] = None
    age: Optional[AgePredicate] = None
    phone: Optional[PhonePredicate] = None
    text: Optional[TextSearch] = None


# -------------------------------
# Resolution
# -------------------------------

def _given(value: Any) -> bool:
    """Presence test: None and blank strings count as absent, 0 and False do not."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _first_present(candidates: Sequence[Tuple[Any, Callable[[Any], Any]]]) -> Any:
    """Return the predicate built from the first given value, or None."""
    for value, build in candidates:
        if _given(value):
            return build(value)
    return None


def parse_int_list(raw: str, param: str) -> Tuple[int, ...]:
    """Parse a comma-separated integer literal list.

    Every token must be an integer; a single bad or empty token rejects the
    whole list rather than being skipped.
    """
    tokens = [token.strip() for token in raw.split(",")]
    invalid = [token for token in tokens if not _INT_TOKEN.fullmatch(token)]
    if invalid:
        raise ValidationError(
            f"Invalid integer values for {param}: {', '.join(repr(t) for t in invalid)}",
            invalid=invalid,
        )
    return tuple(int(token) for token in tokens)


def _name_regex(pattern: str) -> NameRegex:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid nameRegex pattern: {e}", invalid=[pattern]) from e
    return NameRegex(pattern)


def resolve_predicates(query: UserListQuery) -> FilterPredicates:
    """Pick the winning predicate of every group from a list query."""
    return FilterPredicates(
        include_deleted=bool(query.include_deleted),
        email=_first_present([(query.email, EmailContains)]),
        name=_first_present([
            (query.name_regex, _name_regex),
            (query.name, NameContains),
        ]),
        age=_first_present([
            (query.age_in, lambda raw: AgeIn(parse_int_list(raw, "ageIn"))),
            (query.age_nin, lambda raw: AgeNotIn(parse_int_list(raw, "ageNin"))),
            (query.age, AgeEquals),
        ]),
        phone=_first_present([
            (query.has_phone, HasPhone),
            (query.phone, PhoneContains),
        ]),
        text=_first_present([(query.q, lambda raw: TextSearch(raw.strip()))]),
    )


# -------------------------------
# Compilation
# -------------------------------

def _contains(text: str) -> Dict[str, str]:
    """Case-insensitive substring match with regex metacharacters escaped."""
    return {"$regex": re.escape(text), "$options": "i"}


def _phone_missing() -> List[Dict[str, Any]]:
    return [
        {"phone": {"$exists": False}},
        {"phone": None},
        {"phone": ""},
    ]


def compile_filter(predicates: FilterPredicates) -> Dict[str, Any]:
    """Map resolved predicates onto a MongoDB filter document."""
    query: Dict[str, Any] = {}

    if not predicates.include_deleted:
        query["isDeleted"] = False

    if predicates.email is not None:
        query["email"] = _contains(predicates.email.text)

    name = predicates.name
    if isinstance(name, NameRegex):
        query["name"] = {"$regex": name.pattern, "$options": "i"}
    elif isinstance(name, NameContains):
        query["name"] = _contains(name.text)

    age = predicates.age
    if isinstance(age, AgeIn):
        query["age"] = {"$in": list(age.values)}
    elif isinstance(age, AgeNotIn):
        query["age"] = {"$nin": list(age.values)}
    elif isinstance(age, AgeEquals):
        query["age"] = age.value

    phone = predicates.phone
    if isinstance(phone, HasPhone):
        if phone.present:
            query["phone"] = {"$exists": True, "$nin": [None, ""]}
        else:
            query["$or"] = _phone_missing()
    elif isinstance(phone, PhoneContains):
        query["phone"] = _contains(phone.text)

    if predicates.text is not None:
        query["$text"] = {"$search": predicates.text.query}

    return query


def build_filter(query: UserListQuery) -> Dict[str, Any]:
    """Resolve and compile in one step; raises ValidationError on bad input."""
    return compile_filter(resolve_predicates(query))
