from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


@dataclass(slots=True)
class Principal:
    subject: str
    role: Role
    first_name: str
    last_name: str

    def require_roles(self, required: Iterable[Role]) -> None:
        allowed = set(required)
        if allowed and self.role not in allowed:
            raise PermissionError(f"role {self.role.value} not in {sorted(role.value for role in allowed)}")


def parse_role(value: object) -> Role | None:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().upper())
    except ValueError:
        return None
