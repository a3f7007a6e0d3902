# helpdesk_console/core/auth.py
from fastapi import Header
from pydantic import BaseModel

ADMIN_ROLES = {"ADMIN", "SUPERVISOR"}


class AuthContext(BaseModel):
    """Who is driving the console. Authentication itself happens elsewhere."""

    user_id: str | None = None
    role: str = ""
    token: str | None = None

    model_config = {"frozen": True}

    @property
    def is_admin(self) -> bool:
        return self.role.upper() in ADMIN_ROLES

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


def get_auth_context(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
) -> AuthContext:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    return AuthContext(user_id=x_user_id, role=x_user_role or "", token=token)
