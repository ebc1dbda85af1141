from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import structlog
from bson import ObjectId
from fastapi import Depends, Header, Request
from pymongo.database import Database

from database import USERS, get_db, is_active
from errors import Forbidden, NotFound, Unauthorized
from identity import IdentityProvider

logger = structlog.get_logger(__name__)

GUEST = "guest"


@dataclass
class CurrentUser:
    id: str
    role: str = GUEST
    email: Optional[str] = None
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def is_allowed(role: Optional[str], allowed: Iterable[str]) -> bool:
    return (role or GUEST) in set(allowed)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authenticate(db: Database, identity: IdentityProvider, token: Optional[str]) -> CurrentUser:
    if not token:
        raise Unauthorized("Access token required")
    claims = identity.verify_token(token)
    user_id = claims["sub"]
    if not ObjectId.is_valid(user_id):
        raise Unauthorized("Invalid token")
    user = db[USERS].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise NotFound("User not found in database")
    if claims.get("ver", 0) != user.get("tokenVersion", 0):
        raise Unauthorized("Token has been revoked")
    if not is_active(user):
        raise Forbidden("Account is deactivated")
    return CurrentUser(id=user_id, role=user.get("role") or GUEST, email=user.get("email"), user=user)


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Database = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
) -> CurrentUser:
    return authenticate(db, identity, bearer_token(authorization))


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    db: Database = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
) -> Optional[CurrentUser]:
    token = bearer_token(authorization)
    if not token:
        return None
    try:
        return authenticate(db, identity, token)
    except (Unauthorized, Forbidden, NotFound) as exc:
        logger.info("optional_auth_ignored", reason=exc.message)
        return None


def require_role(*roles: str):
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not is_allowed(current_user.role, roles):
            raise Forbidden("Insufficient permissions")
        return current_user

    return dependency


require_admin = require_role("admin")
require_customer = require_role("customer", "admin")
