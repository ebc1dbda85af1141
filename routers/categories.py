from typing import Any, Dict

import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import CurrentUser, require_admin
from database import ACTIVE, CATEGORIES, PRODUCTS, Lifecycle, create_document, get_db, is_active, serialize_doc, to_object_id, utcnow
from errors import InvalidState, NotFound
from schemas import Category as CategorySchema, CategoryUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _category_filter(category_id: str) -> Dict[str, Any]:
    # seeded categories use slugs ("electronics") as ids
    return {"_id": ObjectId(category_id) if ObjectId.is_valid(category_id) else category_id}


def _with_product_count(db: Database, category: Dict[str, Any]) -> Dict[str, Any]:
    doc = serialize_doc(category)
    doc["productCount"] = db[PRODUCTS].count_documents({**ACTIVE, "category": doc["id"]})
    return doc


@router.get("")
def list_categories(db: Database = Depends(get_db)):
    return [_with_product_count(db, c) for c in db[CATEGORIES].find(ACTIVE)]


@router.get("/{category_id}")
def get_category(category_id: str, db: Database = Depends(get_db)):
    category = db[CATEGORIES].find_one(_category_filter(category_id))
    if not is_active(category):
        raise NotFound("Category not found")
    return _with_product_count(db, category)


@router.post("", status_code=201)
def create_category(data: CategorySchema, _: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    category_id = create_document(db, CATEGORIES, data)
    return serialize_doc(db[CATEGORIES].find_one({"_id": to_object_id(category_id)}))


@router.put("/{category_id}")
def update_category(category_id: str, data: CategoryUpdate, _: CurrentUser = Depends(require_admin),
                    db: Database = Depends(get_db)):
    changes = data.model_dump(mode="json", by_alias=True, exclude_unset=True)
    changes["updatedAt"] = utcnow()
    category = db[CATEGORIES].find_one_and_update(
        _category_filter(category_id),
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not category:
        raise NotFound("Category not found")
    return serialize_doc(category)


@router.delete("/{category_id}")
def delete_category(category_id: str, admin: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    category = db[CATEGORIES].find_one(_category_filter(category_id))
    if not category:
        raise NotFound("Category not found")
    product_count = db[PRODUCTS].count_documents({**ACTIVE, "category": category_id})
    if product_count:
        raise InvalidState(
            "Cannot delete category with active products",
            details=[{"field": "productCount", "message": str(product_count)}],
        )
    db[CATEGORIES].update_one(
        {"_id": category["_id"]},
        {"$set": {"status": Lifecycle.INACTIVE.value, "updatedAt": utcnow()}},
    )
    logger.info("category_deactivated", admin_id=admin.id, category_id=category_id)
    return {"message": "Category deactivated successfully"}
