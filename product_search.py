import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from database import ACTIVE, PRODUCTS, Lifecycle, serialize_doc, to_object_id
from errors import NotFound

SORT_KEYS = ("name", "price", "createdAt", "rating")
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
RELATED_LIMIT = 6
LOW_STOCK_THRESHOLD = 10

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ProductFilters:
    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    tags: List[str] = field(default_factory=list)
    in_stock: Optional[bool] = None
    is_featured: Optional[bool] = None
    query: Optional[str] = None


@dataclass
class SearchPage:
    products: List[Dict[str, Any]]
    total_count: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": self.products,
            "totalCount": self.total_count,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }


def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def build_store_query(filters: ProductFilters) -> Dict[str, Any]:
    query: Dict[str, Any] = dict(ACTIVE)
    if filters.category:
        query["category"] = filters.category
    if filters.brand:
        query["brand"] = filters.brand
    if filters.is_featured is not None:
        query["isFeatured"] = filters.is_featured
    if filters.in_stock:
        query["stock"] = {"$gt": 0}
    return query


def _matches_text(product: Dict[str, Any], needle: str) -> bool:
    fields = [product.get("name"), product.get("description"), product.get("brand")]
    fields.extend(product.get("tags") or [])
    return any(needle in str(value).lower() for value in fields if value)


def filter_products(products: List[Dict[str, Any]], filters: ProductFilters) -> List[Dict[str, Any]]:
    result = products
    if filters.min_price is not None:
        result = [p for p in result if p.get("price", 0) >= filters.min_price]
    if filters.max_price is not None:
        result = [p for p in result if p.get("price", 0) <= filters.max_price]
    if filters.query:
        needle = filters.query.strip().lower()
        if needle:
            result = [p for p in result if _matches_text(p, needle)]
    if filters.tags:
        wanted = set(filters.tags)
        result = [p for p in result if wanted.intersection(p.get("tags") or [])]
    return result


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if not isinstance(value, datetime):
        return _EPOCH
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _sort_value(product: Dict[str, Any], sort_by: str) -> Any:
    if sort_by == "name":
        return str(product.get("name", "")).lower()
    if sort_by == "price":
        return product.get("price", 0)
    if sort_by == "rating":
        return (product.get("rating") or {}).get("average") or 0
    return _as_datetime(product.get("createdAt"))


def sort_products(products: List[Dict[str, Any]], sort_by: Optional[str] = "createdAt",
                  sort_order: Optional[str] = "desc") -> List[Dict[str, Any]]:
    if sort_by not in SORT_KEYS:
        sort_by, sort_order = "createdAt", "desc"
    # sorted() stays stable with reverse=True, ties keep their input order
    return sorted(products, key=lambda p: _sort_value(p, sort_by), reverse=sort_order != "asc")


def clamp_page_size(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(MAX_PAGE_SIZE, int(limit)))


def paginate(items: List[Dict[str, Any]], page: int = 1, limit: Optional[int] = DEFAULT_PAGE_SIZE) -> SearchPage:
    page = max(1, int(page))
    limit = clamp_page_size(limit)
    total = len(items)
    total_pages = math.ceil(total / limit)
    start = (page - 1) * limit
    return SearchPage(
        products=items[start:start + limit],
        total_count=total,
        current_page=page,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def search_products(db: Database, filters: ProductFilters, sort_by: Optional[str] = "createdAt",
                    sort_order: Optional[str] = "desc", page: int = 1,
                    limit: Optional[int] = DEFAULT_PAGE_SIZE) -> SearchPage:
    matched = list(db[PRODUCTS].find(build_store_query(filters)))
    matched = filter_products(matched, filters)
    matched = sort_products(matched, sort_by, sort_order)
    result = paginate(matched, page, limit)
    result.products = [serialize_doc(p) for p in result.products]
    return result


def list_all_products(db: Database, status: Optional[str] = None, page: int = 1,
                      limit: Optional[int] = DEFAULT_PAGE_SIZE) -> SearchPage:
    """Admin listing, inactive products included unless filtered out."""
    query: Dict[str, Any] = {}
    if status in (Lifecycle.ACTIVE.value, Lifecycle.INACTIVE.value):
        query["status"] = status
    products = sort_products(list(db[PRODUCTS].find(query)), "createdAt", "desc")
    result = paginate(products, page, limit)
    result.products = [serialize_doc(p) for p in result.products]
    return result


def related_products(db: Database, product_id: str) -> List[Dict[str, Any]]:
    product = db[PRODUCTS].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")

    def _others(query: Dict[str, Any], exclude: set) -> List[Dict[str, Any]]:
        docs = db[PRODUCTS].find({**ACTIVE, **query}).limit(8)
        return [d for d in docs if d["_id"] not in exclude]

    seen = {product["_id"]}
    related = _others({"category": product.get("category")}, seen)
    if len(related) < 4:
        seen.update(d["_id"] for d in related)
        related += _others({"brand": product.get("brand")}, seen)
    return [serialize_doc(p) for p in related[:RELATED_LIMIT]]


def product_analytics(db: Database) -> Dict[str, Any]:
    products = list(db[PRODUCTS].find({}))
    active = [p for p in products if p.get("status") == Lifecycle.ACTIVE.value]
    categories = Counter(p.get("category") for p in products)
    brands = Counter(p.get("brand") for p in products)
    return {
        "totalProducts": len(products),
        "activeProducts": len(active),
        "inactiveProducts": len(products) - len(active),
        "featuredProducts": sum(1 for p in products if p.get("isFeatured")),
        "outOfStockProducts": sum(1 for p in products if p.get("stock", 0) == 0),
        "lowStockProducts": sum(1 for p in products if 0 < p.get("stock", 0) <= LOW_STOCK_THRESHOLD),
        "totalInventoryValue": round(sum(p.get("price", 0) * p.get("stock", 0) for p in active), 2),
        "averagePrice": round(sum(p.get("price", 0) for p in active) / len(active), 2) if active else 0,
        "categoriesCount": len(categories),
        "brandsCount": len(brands),
        "topCategories": categories.most_common(5),
        "topBrands": brands.most_common(5),
    }
