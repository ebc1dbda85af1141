import structlog
from fastapi import APIRouter, Depends, Response
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import CurrentUser, get_current_user, get_identity, require_admin
from database import USERS, Lifecycle, create_document, get_db, get_documents, serialize_doc, to_object_id, utcnow
from errors import Conflict, Forbidden, NotFound
from identity import IdentityProvider
from schemas import User as UserSchema, UserCreate, UserUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("")
def list_users(_: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    return [serialize_doc(u) for u in get_documents(db, USERS)]


@router.get("/{user_id}")
def get_user(user_id: str, current_user: CurrentUser = Depends(get_current_user), db: Database = Depends(get_db)):
    if not current_user.is_admin and current_user.id != user_id:
        raise Forbidden("Insufficient permissions")
    user = db[USERS].find_one({"_id": to_object_id(user_id, "User")})
    if not user:
        raise NotFound("User not found")
    return serialize_doc(user)


@router.post("", status_code=201)
def create_user(data: UserCreate, admin: CurrentUser = Depends(require_admin), db: Database = Depends(get_db),
                identity: IdentityProvider = Depends(get_identity)):
    email = data.email.lower()
    # inactive accounts keep their address
    if db[USERS].find_one({"email": email}):
        raise Conflict("User with this email already exists")
    user_model = UserSchema(
        first_name=data.first_name,
        last_name=data.last_name,
        email=email,
        role=data.role,
        phone_number=data.phone_number,
        password_hash=identity.hash_password(data.password) if data.password else None,
    )
    user_id = create_document(db, USERS, user_model)
    logger.info("user_created", admin_id=admin.id, user_id=user_id, role=data.role)
    return serialize_doc(db[USERS].find_one({"_id": to_object_id(user_id)}))


@router.put("/{user_id}")
def update_user(user_id: str, data: UserUpdate, _: CurrentUser = Depends(require_admin),
                db: Database = Depends(get_db)):
    oid = to_object_id(user_id, "User")
    changes = data.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        if db[USERS].find_one({"email": changes["email"], "_id": {"$ne": oid}}):
            raise Conflict("User with this email already exists")
    changes["updatedAt"] = utcnow()
    user = db[USERS].find_one_and_update({"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if not user:
        raise NotFound("User not found")
    return serialize_doc(user)


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: str, admin: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    res = db[USERS].update_one(
        {"_id": to_object_id(user_id, "User")},
        {"$set": {"status": Lifecycle.INACTIVE.value, "updatedAt": utcnow()}},
    )
    if res.matched_count == 0:
        raise NotFound("User not found")
    logger.info("user_deactivated", admin_id=admin.id, user_id=user_id)
    return Response(status_code=204)
