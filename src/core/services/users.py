"""User listing helpers (sorting, filtering, display)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Literal

from core.domain.models import User
from core.errors import InputValidationError
from core.interfaces.api import SkytapAPI

UserSortField = Literal["id", "last_name", "first_name", "activated", "last_login"]


async def fetch_users(api: SkytapAPI, count: int = 50) -> list[User]:
    if count <= 0:
        raise InputValidationError("Please enter a valid number of users")
    return await api.get_users(count=count)


def _sort_key(field: UserSortField):
    def key(user: User) -> Any:
        if field == "id":
            return int(user.id) if user.id.isdigit() else 0
        if field == "first_name":
            return user.first_name.lower()
        if field == "activated":
            return user.activated
        if field == "last_login":
            return user.last_login or ""
        return user.last_name.lower()

    return key


def sort_users(
    users: Iterable[User],
    field: UserSortField = "last_name",
    *,
    descending: bool = False,
) -> list[User]:
    return sorted(users, key=_sort_key(field), reverse=descending)


def filter_not_activated(users: Iterable[User]) -> list[User]:
    return [u for u in users if not u.activated]


def format_last_login(value: str | None) -> str:
    if not value:
        return "Never"
    for fmt in ("%Y/%m/%d %H:%M:%S %z", "%Y/%m/%d %H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).strftime("%Y-%m-%d %H:%M:%S")
        except ValueError:
            continue
    return value
