from typing import Dict, Iterable, Protocol

from case_triage.errors import NotFoundError
from case_triage.schema import Actor


class UserDirectory(Protocol):
    """Identity collaborator: resolves users to role and area membership."""

    def get_user(self, user_id: int) -> Actor: ...

    def area_exists(self, area_id: int) -> bool: ...


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[Actor] = (), areas: Iterable[int] = ()) -> None:
        self._users: Dict[int, Actor] = {u.user_id: u for u in users}
        self._areas = set(areas)
        for u in self._users.values():
            self._areas.update(u.areas)

    def add_user(self, user: Actor) -> Actor:
        self._users[user.user_id] = user
        self._areas.update(user.areas)
        return user

    def add_area(self, area_id: int) -> None:
        self._areas.add(area_id)

    def get_user(self, user_id: int) -> Actor:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def area_exists(self, area_id: int) -> bool:
        return area_id in self._areas
