"""Thread-safe in-memory data store of the reference service.

Records are plain dictionaries with an integer ``id`` and UTC
``created_at`` / ``updated_at`` timestamps. Every public method takes the
store lock, so route handlers may call them from worker threads.
Lookups of missing records raise :class:`NotFoundError`, uniqueness
violations raise :class:`ConflictError`.
"""

import copy
import itertools
import threading
from datetime import datetime, timezone
from typing import Any

from src.errors import ConflictError, NotFoundError

Record = dict[str, Any]


def utc_timestamp() -> str:
    """Return the current UTC time in ISO 8601 format ending with 'Z'."""
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


class InMemoryStore:
    """Users, their profiles and homes, groups and memberships."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[int, Record] = {}
        self._profiles: dict[int, Record] = {}
        self._homes: dict[int, Record] = {}
        self._groups: dict[int, Record] = {}
        self._memberships: set[tuple[int, int]] = set()
        self._user_ids = itertools.count(1)
        self._home_ids = itertools.count(1)
        self._group_ids = itertools.count(1)

    # Helpers below expect the lock to be held.

    def _user(self, user_id: int) -> Record:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _group(self, group_id: int) -> Record:
        group = self._groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    def _home(self, user_id: int, home_id: int) -> Record:
        self._user(user_id)
        home = self._homes.get(home_id)
        if home is None or home["user_id"] != user_id:
            raise NotFoundError(f"Home {home_id} not found for user {user_id}")
        return home

    def _check_email_free(self, email: str, exclude_id: int | None = None) -> None:
        for user in self._users.values():
            if user["id"] != exclude_id and user["email"].lower() == email.lower():
                raise ConflictError(f"A user with email '{email}' already exists")

    def _check_group_name_free(self, name: str, exclude_id: int | None = None) -> None:
        for group in self._groups.values():
            if group["id"] != exclude_id and group["name"].lower() == name.lower():
                raise ConflictError(f"A group named '{name}' already exists")

    @staticmethod
    def _new_record(record_id: int, data: Record) -> Record:
        now = utc_timestamp()
        return {"id": record_id, **data, "created_at": now, "updated_at": now}

    @staticmethod
    def _replace(record: Record, data: Record) -> None:
        record.update(data)
        record["updated_at"] = utc_timestamp()

    # Users (base model)

    def list_users(self) -> list[Record]:
        with self._lock:
            return [copy.deepcopy(u) for u in sorted(self._users.values(), key=lambda r: r["id"])]

    def create_user(self, name: str, email: str) -> Record:
        with self._lock:
            self._check_email_free(email)
            user = self._new_record(next(self._user_ids), {"name": name, "email": email})
            self._users[user["id"]] = user
            return copy.deepcopy(user)

    def get_user(self, user_id: int) -> Record:
        with self._lock:
            return copy.deepcopy(self._user(user_id))

    def update_user(self, user_id: int, name: str, email: str) -> Record:
        with self._lock:
            user = self._user(user_id)
            self._check_email_free(email, exclude_id=user_id)
            self._replace(user, {"name": name, "email": email})
            return copy.deepcopy(user)

    def delete_user(self, user_id: int) -> None:
        """Delete a user with its profile, homes and memberships."""
        with self._lock:
            self._user(user_id)
            del self._users[user_id]
            self._profiles.pop(user_id, None)
            self._homes = {k: h for k, h in self._homes.items() if h["user_id"] != user_id}
            self._memberships = {m for m in self._memberships if m[0] != user_id}

    # Profile (one-to-one)

    def get_profile(self, user_id: int) -> Record:
        with self._lock:
            self._user(user_id)
            profile = self._profiles.get(user_id)
            if profile is None:
                raise NotFoundError(f"Profile of user {user_id} not found")
            return copy.deepcopy(profile)

    def put_profile(self, user_id: int, data: Record) -> tuple[Record, bool]:
        """Create or replace a user's profile.

        Returns:
            The profile and whether it was created.
        """
        with self._lock:
            self._user(user_id)
            profile = self._profiles.get(user_id)
            if profile is None:
                now = utc_timestamp()
                profile = {"user_id": user_id, **data, "created_at": now, "updated_at": now}
                self._profiles[user_id] = profile
                return copy.deepcopy(profile), True
            self._replace(profile, data)
            return copy.deepcopy(profile), False

    def delete_profile(self, user_id: int) -> None:
        with self._lock:
            self._user(user_id)
            if self._profiles.pop(user_id, None) is None:
                raise NotFoundError(f"Profile of user {user_id} not found")

    # Homes (one-to-many)

    def list_homes(self, user_id: int) -> list[Record]:
        with self._lock:
            self._user(user_id)
            homes = [h for h in self._homes.values() if h["user_id"] == user_id]
            return [copy.deepcopy(h) for h in sorted(homes, key=lambda r: r["id"])]

    def create_home(self, user_id: int, data: Record) -> Record:
        with self._lock:
            self._user(user_id)
            home = self._new_record(next(self._home_ids), {"user_id": user_id, **data})
            self._homes[home["id"]] = home
            return copy.deepcopy(home)

    def get_home(self, user_id: int, home_id: int) -> Record:
        with self._lock:
            return copy.deepcopy(self._home(user_id, home_id))

    def update_home(self, user_id: int, home_id: int, data: Record) -> Record:
        with self._lock:
            home = self._home(user_id, home_id)
            self._replace(home, data)
            return copy.deepcopy(home)

    def delete_home(self, user_id: int, home_id: int) -> None:
        with self._lock:
            self._home(user_id, home_id)
            del self._homes[home_id]

    # Groups (base model)

    def list_groups(self) -> list[Record]:
        with self._lock:
            return [copy.deepcopy(g) for g in sorted(self._groups.values(), key=lambda r: r["id"])]

    def create_group(self, name: str, description: str | None = None) -> Record:
        with self._lock:
            self._check_group_name_free(name)
            group = self._new_record(
                next(self._group_ids), {"name": name, "description": description}
            )
            self._groups[group["id"]] = group
            return copy.deepcopy(group)

    def get_group(self, group_id: int) -> Record:
        with self._lock:
            return copy.deepcopy(self._group(group_id))

    def update_group(self, group_id: int, name: str, description: str | None = None) -> Record:
        with self._lock:
            group = self._group(group_id)
            self._check_group_name_free(name, exclude_id=group_id)
            self._replace(group, {"name": name, "description": description})
            return copy.deepcopy(group)

    def delete_group(self, group_id: int) -> None:
        """Delete a group and its memberships. Members are kept."""
        with self._lock:
            self._group(group_id)
            del self._groups[group_id]
            self._memberships = {m for m in self._memberships if m[1] != group_id}

    # Memberships (many-to-many)

    def list_user_groups(self, user_id: int) -> list[Record]:
        with self._lock:
            self._user(user_id)
            ids = sorted(g for u, g in self._memberships if u == user_id)
            return [copy.deepcopy(self._groups[g]) for g in ids]

    def list_group_users(self, group_id: int) -> list[Record]:
        with self._lock:
            self._group(group_id)
            ids = sorted(u for u, g in self._memberships if g == group_id)
            return [copy.deepcopy(self._users[u]) for u in ids]

    def link(self, user_id: int, group_id: int) -> bool:
        """Add a user to a group.

        Returns:
            True if the membership was created, False if it already existed.
        """
        with self._lock:
            self._user(user_id)
            self._group(group_id)
            key = (user_id, group_id)
            if key in self._memberships:
                return False
            self._memberships.add(key)
            return True

    def unlink(self, user_id: int, group_id: int) -> None:
        with self._lock:
            self._user(user_id)
            self._group(group_id)
            try:
                self._memberships.remove((user_id, group_id))
            except KeyError:
                raise NotFoundError(
                    f"User {user_id} is not a member of group {group_id}",
                ) from None
