from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from seoadmin.core.errors import ValidationError


PERM_READ = "seo:read"
PERM_WRITE = "seo:write"
PERM_BULK = "seo:bulk"
PERM_AUDIT = "seo:audit"
PERM_ADMIN = "seo:admin"

ALL_PERMISSIONS: frozenset[str] = frozenset({PERM_READ, PERM_WRITE, PERM_BULK, PERM_AUDIT, PERM_ADMIN})
EDITOR_DEFAULT_PERMISSIONS: frozenset[str] = frozenset({PERM_READ, PERM_WRITE, PERM_BULK, PERM_AUDIT})


class _BaseActor(BaseModel):
    id: str = Field(min_length=1)
    permissions: frozenset[str] = frozenset()

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Actor id is required")
        return stripped

    @field_validator("permissions")
    @classmethod
    def _known_permissions(cls, value: frozenset[str]) -> frozenset[str]:
        unknown = sorted(value - ALL_PERMISSIONS)
        if unknown:
            raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
        return value

    def allows(self, permission: str) -> bool:
        return permission in self.permissions


class AdminActor(_BaseActor):
    role: Literal["admin"] = "admin"

    def allows(self, permission: str) -> bool:
        # Admins hold every permission regardless of what the header listed.
        return permission in ALL_PERMISSIONS


class EditorActor(_BaseActor):
    role: Literal["editor"] = "editor"
    permissions: frozenset[str] = EDITOR_DEFAULT_PERMISSIONS


class CustomActor(_BaseActor):
    role: Literal["custom"] = "custom"


Actor = Annotated[Union[AdminActor, EditorActor, CustomActor], Field(discriminator="role")]

_actor_adapter: TypeAdapter[Actor] = TypeAdapter(Actor)


def parse_permissions(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_actor(payload: dict[str, Any]) -> AdminActor | EditorActor | CustomActor:
    # Validate the upstream identity once; everything downstream trusts the typed actor.
    data = dict(payload)
    role = data.get("role")
    if isinstance(role, str):
        data["role"] = role.strip().lower()
    if not data.get("permissions"):
        data.pop("permissions", None)
    try:
        return _actor_adapter.validate_python(data)
    except PydanticValidationError as exc:
        fields = {
            ".".join(str(part) for part in error.get("loc", ())) or "actor": str(error.get("msg"))
            for error in exc.errors()
        }
        raise ValidationError("Invalid actor", fields=fields) from exc
