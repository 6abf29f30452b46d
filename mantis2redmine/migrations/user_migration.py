"""User migration: map Mantis users onto Redmine users, creating missing ones."""

import re

from mantis2redmine.migrations.base_migration import BaseMigration, register_entity_types
from mantis2redmine.models import Candidate, MappingEntry, TargetOption
from mantis2redmine.type_definitions import EntityKind, NewId, SourceRow

LOGIN_PATTERN = re.compile(r"[^a-zA-Z0-9_\-@.]")
NAME_PATTERN = re.compile(r"[^\w\s'\-]")
ADMIN_LEVEL = 90


def normalize_user(row: SourceRow) -> dict:
    """Turn a Mantis user row into the fields of a Redmine user.

    >>> normalize_user({"username": "j.doe!", "realname": "John Doe", "email": "", "access_level": 90})
    {'login': 'j.doe', 'firstname': 'John', 'lastname': 'Doe', 'mail': 'j.doe@dev.null', 'admin': True}
    """
    login = LOGIN_PATTERN.sub("", row.get("username") or "")
    names = (row.get("realname") or "").split()
    firstname = names[0] if names else login
    lastname = names[1] if len(names) > 1 else ""
    return {
        "login": login,
        "firstname": NAME_PATTERN.sub("", firstname[:30]),
        "lastname": NAME_PATTERN.sub("", lastname[:30]),
        "mail": row.get("email") or f"{login}@dev.null",
        "admin": (row.get("access_level") or 0) >= ADMIN_LEVEL,
    }


@register_entity_types(EntityKind.USER)
class UserMigration(BaseMigration):
    """Users are matched by login."""

    title = "User"

    def get_candidates(self) -> list[Candidate]:
        candidates = []
        for row in self.mantis.get_users():
            fields = normalize_user(row)
            candidates.append(Candidate(old_id=row["id"], label=fields["login"], fields=fields))
        return candidates

    def get_options(self) -> list[TargetOption]:
        return [
            TargetOption(key=row["id"], id=row["id"], label=row["login"] or "", fields=row)
            for row in self.redmine.get_users()
        ]

    def create(self, entry: MappingEntry) -> NewId:
        fields = entry.fields
        return self._insert(
            "users",
            {
                "login": fields["login"],
                "firstname": fields["firstname"],
                "lastname": fields["lastname"],
                "mail": fields["mail"],
                "admin": fields["admin"],
                "status": 1,
                "type": "User",
            },
        )
