from typing import Any, Dict, List, Optional

import structlog
from pymongo import ReturnDocument
from pymongo.database import Database

from address_book import AddressBook
from auth import CurrentUser
from database import CARTS, ORDERS, PRODUCTS, USERS, is_active, serialize_doc, to_object_id, utcnow
from errors import Forbidden, InvalidState, NotFound
from schemas import Cart, Order

logger = structlog.get_logger(__name__)


def recompute_total(items: List[Dict[str, Any]]) -> float:
    return round(sum(item["price"] * item["quantity"] for item in items), 2)


def new_order(user_id: str, items: List[Dict[str, Any]], shipping_address: Dict[str, Any],
              payment_method: str) -> Dict[str, Any]:
    order = Order(
        user_id=user_id,
        items=items,
        total=recompute_total(items),
        shipping_address=shipping_address,
        payment_method=payment_method,
    ).model_dump(by_alias=True)
    order["createdAt"] = order["updatedAt"] = utcnow()
    return order


def empty_cart(user_id: str) -> Dict[str, Any]:
    return {"userId": user_id, "items": [], "total": 0}


def line_snapshot(product: Dict[str, Any], quantity: int) -> Dict[str, Any]:
    images = product.get("images") or []
    return {
        "productId": str(product["_id"]),
        "name": product.get("name"),
        "price": product.get("price", 0),
        "image": images[0] if images else "",
        "quantity": quantity,
    }


class CartService:
    def __init__(self, db: Database):
        self.db = db

    def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.db[CARTS].find_one({"userId": user_id})

    def _load_existing(self, user_id: str) -> Dict[str, Any]:
        cart = self._load(user_id)
        if not cart:
            raise NotFound("Cart not found")
        return cart

    def _save(self, cart: Dict[str, Any]) -> Dict[str, Any]:
        cart = Cart(user_id=cart["userId"], items=cart["items"]).model_dump(by_alias=True)
        cart["total"] = recompute_total(cart["items"])
        cart["updatedAt"] = utcnow()
        self.db[CARTS].replace_one({"userId": cart["userId"]}, cart, upsert=True)
        return serialize_doc(cart)

    def _active_product(self, product_id: str) -> Dict[str, Any]:
        product = self.db[PRODUCTS].find_one({"_id": to_object_id(product_id, "Product")})
        if not is_active(product):
            raise NotFound("Product not found")
        return product

    def get(self, user_id: str) -> Dict[str, Any]:
        cart = self._load(user_id)
        return serialize_doc(cart) if cart else empty_cart(user_id)

    def add_item(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidState("Quantity must be at least 1")
        product = self._active_product(product_id)
        product_id = str(product["_id"])
        cart = self._load(user_id) or empty_cart(user_id)
        line = next((i for i in cart["items"] if i["productId"] == product_id), None)
        if line:
            line["quantity"] += quantity
        else:
            cart["items"].append(line_snapshot(product, quantity))
        return self._save(cart)

    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        cart = self._load_existing(user_id)
        if quantity <= 0:
            cart["items"] = [i for i in cart["items"] if i["productId"] != product_id]
            return self._save(cart)
        line = next((i for i in cart["items"] if i["productId"] == product_id), None)
        if not line:
            raise NotFound("Item not found in cart")
        line["quantity"] = quantity
        return self._save(cart)

    def remove_item(self, user_id: str, product_id: str) -> Dict[str, Any]:
        cart = self._load_existing(user_id)
        cart["items"] = [i for i in cart["items"] if i["productId"] != product_id]
        return self._save(cart)

    def clear(self, user_id: str) -> None:
        self.db[CARTS].delete_one({"userId": user_id})

    def checkout(self, user_id: str, shipping_address_id: str, payment_method: str) -> Dict[str, Any]:
        cart = self._load(user_id)
        if not cart or not cart.get("items"):
            raise InvalidState("Cart is empty")
        user = self.db[USERS].find_one({"_id": to_object_id(user_id, "User")}) or {}
        shipping_address = AddressBook(user.get("addresses")).snapshot(shipping_address_id)
        if shipping_address is None:
            raise InvalidState("Invalid shipping address")

        order = new_order(user_id, cart["items"], shipping_address, payment_method)
        # Two separate writes: a crash in between leaves the order and the cart.
        result = self.db[ORDERS].insert_one(order)
        self.db[CARTS].delete_one({"userId": user_id})
        logger.info("checkout_completed", user_id=user_id, order_id=str(result.inserted_id),
                    total=order["total"], lines=len(order["items"]))
        return serialize_doc(order)


class OrderService:
    def __init__(self, db: Database):
        self.db = db

    def list_for(self, user: CurrentUser) -> List[Dict[str, Any]]:
        query = {} if user.is_admin else {"userId": user.id}
        return [serialize_doc(o) for o in self.db[ORDERS].find(query).sort("createdAt", -1)]

    def get_for(self, user: CurrentUser, order_id: str) -> Dict[str, Any]:
        order = self.db[ORDERS].find_one({"_id": to_object_id(order_id, "Order")})
        if not order:
            raise NotFound("Order not found")
        if not user.is_admin and order.get("userId") != user.id:
            raise Forbidden("Not allowed to view this order")
        return serialize_doc(order)

    def place_order(self, user: CurrentUser, items: List[Dict[str, Any]], shipping_address_id: str,
                    payment_method: str) -> Dict[str, Any]:
        """Create an order directly from product ids, reserving stock."""
        shipping_address = AddressBook(user.user.get("addresses")).snapshot(shipping_address_id)
        if shipping_address is None:
            raise InvalidState("Invalid shipping address")

        lines = []
        for item in items:
            product = self.db[PRODUCTS].find_one({"_id": to_object_id(item["productId"], "Product")})
            if not is_active(product):
                raise InvalidState(f"Product {item['productId']} not found")
            if product.get("stock", 0) < item["quantity"]:
                raise InvalidState(f"Insufficient stock for product {product.get('name')}")
            lines.append(line_snapshot(product, item["quantity"]))

        reserved = []
        for line in lines:
            res = self.db[PRODUCTS].update_one(
                {"_id": to_object_id(line["productId"]), "stock": {"$gte": line["quantity"]}},
                {"$inc": {"stock": -line["quantity"]}, "$set": {"updatedAt": utcnow()}},
            )
            if res.modified_count == 0:
                for done in reserved:
                    self.db[PRODUCTS].update_one({"_id": to_object_id(done["productId"])},
                                                 {"$inc": {"stock": done["quantity"]}})
                raise InvalidState(f"Insufficient stock for product {line['name']}")
            reserved.append(line)

        order = new_order(user.id, lines, shipping_address, payment_method)
        result = self.db[ORDERS].insert_one(order)
        logger.info("order_placed", user_id=user.id, order_id=str(result.inserted_id), total=order["total"])
        return serialize_doc(order)

    def update_status(self, order_id: str, status: str) -> Dict[str, Any]:
        order = self.db[ORDERS].find_one_and_update(
            {"_id": to_object_id(order_id, "Order")},
            {"$set": {"status": status, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not order:
            raise NotFound("Order not found")
        logger.info("order_status_changed", order_id=order_id, status=status)
        return serialize_doc(order)

    def bulk_update_status(self, order_ids: List[str], status: str) -> int:
        ids = [to_object_id(order_id, "Order") for order_id in order_ids]
        res = self.db[ORDERS].update_many(
            {"_id": {"$in": ids}},
            {"$set": {"status": status, "updatedAt": utcnow()}},
        )
        logger.info("order_status_bulk_changed", requested=len(ids), matched=res.matched_count, status=status)
        return res.matched_count
