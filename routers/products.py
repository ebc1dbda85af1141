from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import CurrentUser, get_optional_user, require_admin
from database import ACTIVE, PRODUCTS, Lifecycle, create_document, get_db, is_visible, serialize_doc, to_object_id, utcnow
from errors import NotFound, field_error
from product_search import (
    DEFAULT_PAGE_SIZE,
    ProductFilters,
    list_all_products,
    parse_tags,
    product_analytics,
    related_products,
    search_products,
)
from schemas import BulkProductUpdate, PricingUpdate, Product as ProductSchema, ProductUpdate, StockUpdate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


def _load_product(db: Database, product_id: str):
    product = db[PRODUCTS].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    return product


@router.get("")
@router.get("/search")
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    tags: Optional[str] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    is_featured: Optional[bool] = Query(None, alias="isFeatured"),
    sort_by: str = Query("createdAt", alias="sortBy", pattern="^(name|price|createdAt|rating)$"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = DEFAULT_PAGE_SIZE,
    db: Database = Depends(get_db),
):
    filters = ProductFilters(
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        tags=parse_tags(tags),
        in_stock=in_stock,
        is_featured=is_featured,
        query=q,
    )
    return search_products(db, filters, sort_by, sort_order, page, limit).to_dict()


@router.get("/featured")
def featured_products(db: Database = Depends(get_db)):
    docs = db[PRODUCTS].find({**ACTIVE, "isFeatured": True}).limit(12)
    return [serialize_doc(d) for d in docs]


@router.get("/category/{category}")
def products_by_category(category: str, limit: int = Query(50, ge=1, le=100), db: Database = Depends(get_db)):
    docs = db[PRODUCTS].find({**ACTIVE, "category": category}).limit(limit)
    return [serialize_doc(d) for d in docs]


@router.get("/brand/{brand}")
def products_by_brand(brand: str, limit: int = Query(50, ge=1, le=100), db: Database = Depends(get_db)):
    docs = db[PRODUCTS].find({**ACTIVE, "brand": brand}).limit(limit)
    return [serialize_doc(d) for d in docs]


# Admin

@router.get("/admin/all")
def admin_list_products(
    status: Optional[str] = Query(None, pattern="^(active|inactive|all)$"),
    page: int = Query(1, ge=1),
    limit: int = DEFAULT_PAGE_SIZE,
    _: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return list_all_products(db, status, page, limit).to_dict()


@router.get("/admin/analytics")
def admin_analytics(_: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    return product_analytics(db)


@router.patch("/admin/bulk-update")
def bulk_update_products(payload: BulkProductUpdate, admin: CurrentUser = Depends(require_admin),
                         db: Database = Depends(get_db)):
    updates = payload.updates.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if not updates:
        raise field_error("updates", "Updates object is required")
    ids = [to_object_id(product_id, "Product") for product_id in payload.product_ids]
    res = db[PRODUCTS].update_many({"_id": {"$in": ids}}, {"$set": {**updates, "updatedAt": utcnow()}})
    logger.info("products_bulk_updated", admin_id=admin.id, requested=len(ids), matched=res.matched_count,
                fields=sorted(updates))
    return {
        "message": "Bulk update completed successfully",
        "updatedProductCount": res.matched_count,
        "updates": updates,
    }


@router.get("/{product_id}/related")
def get_related_products(product_id: str, db: Database = Depends(get_db)):
    return related_products(db, product_id)


@router.get("/{product_id}")
def get_product(product_id: str, current_user: Optional[CurrentUser] = Depends(get_optional_user),
                db: Database = Depends(get_db)):
    product = db[PRODUCTS].find_one({"_id": to_object_id(product_id, "Product")})
    role = current_user.role if current_user else None
    if not is_visible(product, role):
        raise NotFound("Product not found")
    return serialize_doc(product)


@router.post("", status_code=201)
def create_product(data: ProductSchema, admin: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    product_id = create_document(db, PRODUCTS, data)
    created = db[PRODUCTS].find_one({"_id": to_object_id(product_id)})
    logger.info("product_created", admin_id=admin.id, product_id=product_id)
    return serialize_doc(created)


@router.put("/{product_id}")
def update_product(product_id: str, data: ProductUpdate, _: CurrentUser = Depends(require_admin),
                   db: Database = Depends(get_db)):
    update_dict = data.model_dump(mode="json", by_alias=True, exclude_unset=True)
    update_dict["updatedAt"] = utcnow()
    product = db[PRODUCTS].find_one_and_update(
        {"_id": to_object_id(product_id, "Product")},
        {"$set": update_dict},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound("Product not found")
    return serialize_doc(product)


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: CurrentUser = Depends(require_admin), db: Database = Depends(get_db)):
    product = _load_product(db, product_id)
    db[PRODUCTS].update_one(
        {"_id": product["_id"]},
        {"$set": {"status": Lifecycle.INACTIVE.value, "updatedAt": utcnow()}},
    )
    logger.info("product_deactivated", admin_id=admin.id, product_id=product_id)
    return {"message": "Product deactivated successfully"}


@router.patch("/{product_id}/stock")
def update_stock(product_id: str, data: StockUpdate, admin: CurrentUser = Depends(require_admin),
                 db: Database = Depends(get_db)):
    product = _load_product(db, product_id)
    previous = product.get("stock", 0)
    if data.action == "add":
        new_stock = previous + data.stock
    elif data.action == "subtract":
        new_stock = max(0, previous - data.stock)
    else:
        new_stock = data.stock
    db[PRODUCTS].update_one({"_id": product["_id"]}, {"$set": {"stock": new_stock, "updatedAt": utcnow()}})
    logger.info("product_stock_changed", admin_id=admin.id, product_id=product_id, action=data.action,
                previous=previous, new=new_stock)
    return {
        "message": "Stock updated successfully",
        "productId": product_id,
        "previousStock": previous,
        "newStock": new_stock,
        "action": data.action,
    }


@router.patch("/{product_id}/pricing")
def update_pricing(product_id: str, data: PricingUpdate, _: CurrentUser = Depends(require_admin),
                   db: Database = Depends(get_db)):
    product = _load_product(db, product_id)
    changes = data.model_dump(by_alias=True, exclude_none=True)
    changes["updatedAt"] = utcnow()
    updated = db[PRODUCTS].find_one_and_update(
        {"_id": product["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return {"message": "Pricing updated successfully", "product": serialize_doc(updated)}
