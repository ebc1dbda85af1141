from typing import Any, Dict

import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import CurrentUser, get_current_user, get_identity
from database import USERS, create_document, get_db, is_active, serialize_doc, utcnow
from errors import Conflict, Forbidden, NotFound, Unauthorized
from identity import IdentityProvider
from schemas import ChangePasswordInput, LoginInput, ProfileUpdate, RegisterInput, User as UserSchema

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def session_response(message: str, user: Dict[str, Any], identity: IdentityProvider) -> Dict[str, Any]:
    token = identity.issue_token(str(user["_id"]), user.get("tokenVersion", 0))
    return {"message": message, "user": serialize_doc(user), "accessToken": token, "tokenType": "bearer"}


@router.post("/register", status_code=201)
def register(payload: RegisterInput, db: Database = Depends(get_db),
             identity: IdentityProvider = Depends(get_identity)):
    email = payload.email.lower()
    if db[USERS].find_one({"email": email}):
        raise Conflict("User with this email already exists")
    user_model = UserSchema(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        password_hash=identity.hash_password(payload.password),
        phone_number=payload.phone_number,
        role="customer",
    )
    user_id = create_document(db, USERS, user_model)
    user = db[USERS].find_one({"_id": ObjectId(user_id)})
    logger.info("user_registered", user_id=user_id)
    return session_response("User registered successfully", user, identity)


@router.post("/login")
def login(payload: LoginInput, db: Database = Depends(get_db),
          identity: IdentityProvider = Depends(get_identity)):
    user = db[USERS].find_one({"email": payload.email.lower()})
    if not user:
        raise NotFound("User not found")
    if not is_active(user):
        raise Forbidden("Account is deactivated")
    if not identity.verify_password(payload.password, user.get("passwordHash")):
        raise Unauthorized("Invalid credentials")
    logger.info("user_logged_in", user_id=str(user["_id"]))
    return session_response("Login successful", user, identity)


@router.get("/profile")
def profile(current_user: CurrentUser = Depends(get_current_user)):
    return serialize_doc(current_user.user)


@router.put("/profile")
def update_profile(payload: ProfileUpdate, current_user: CurrentUser = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    changes = payload.model_dump(by_alias=True, exclude_unset=True, exclude={"preferences"})
    if payload.preferences is not None:
        for key, value in payload.preferences.model_dump(exclude_unset=True).items():
            changes[f"preferences.{key}"] = value
    changes["updatedAt"] = utcnow()
    db[USERS].update_one({"_id": ObjectId(current_user.id)}, {"$set": changes})
    user = db[USERS].find_one({"_id": ObjectId(current_user.id)})
    return {"message": "Profile updated successfully", "user": serialize_doc(user)}


@router.put("/change-password")
def change_password(payload: ChangePasswordInput, current_user: CurrentUser = Depends(get_current_user),
                    db: Database = Depends(get_db), identity: IdentityProvider = Depends(get_identity)):
    db[USERS].update_one(
        {"_id": ObjectId(current_user.id)},
        {"$set": {"passwordHash": identity.hash_password(payload.new_password), "updatedAt": utcnow()}},
    )
    return {"message": "Password updated successfully"}


@router.post("/logout")
def logout(current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    db[USERS].update_one({"_id": ObjectId(current_user.id)}, {"$inc": {"tokenVersion": 1}})
    logger.info("user_logged_out", user_id=current_user.id)
    return {"message": "Logged out successfully"}
