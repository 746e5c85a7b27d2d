from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.auth_utils import decode_token
from app.db.session import get_db  # noqa: F401  re-exported for routes
from app.models.studio import Studio

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, studio: Studio) -> bool:
        return self.is_admin or (self.role == "studio" and studio.owner_id == self.id)


def _principal_from(credentials: HTTPAuthorizationCredentials) -> Principal:
    payload = decode_token(credentials.credentials)
    return Principal(id=str(payload["sub"]), role=payload["role"])


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    return _principal_from(credentials)


def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> Principal | None:
    if credentials is None:
        return None
    return _principal_from(credentials)


def require_customer(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.role != "customer":
        raise HTTPException(status_code=403, detail="Only customers can book studios")
    return principal


def require_studio_owner(principal: Principal, studio: Studio):
    if not principal.owns(studio):
        raise HTTPException(status_code=403, detail="You do not own this studio")
