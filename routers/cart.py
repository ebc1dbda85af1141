from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import CurrentUser, get_current_user
from cart_service import CartService
from database import get_db
from schemas import CartAdd, CartQuantity, CheckoutInput

router = APIRouter(prefix="/api/cart", tags=["cart"])


def get_cart_service(db: Database = Depends(get_db)) -> CartService:
    return CartService(db)


@router.get("")
def get_cart(current_user: CurrentUser = Depends(get_current_user), carts: CartService = Depends(get_cart_service)):
    return carts.get(current_user.id)


@router.post("/add")
def add_to_cart(item: CartAdd, current_user: CurrentUser = Depends(get_current_user),
                carts: CartService = Depends(get_cart_service)):
    cart = carts.add_item(current_user.id, item.product_id, item.quantity)
    return {"message": "Item added to cart", "cart": cart}


@router.put("/update")
def update_cart(item: CartQuantity, current_user: CurrentUser = Depends(get_current_user),
                carts: CartService = Depends(get_cart_service)):
    cart = carts.set_quantity(current_user.id, item.product_id, item.quantity)
    return {"message": "Cart updated", "cart": cart}


@router.delete("/remove/{product_id}")
def remove_from_cart(product_id: str, current_user: CurrentUser = Depends(get_current_user),
                     carts: CartService = Depends(get_cart_service)):
    cart = carts.remove_item(current_user.id, product_id)
    return {"message": "Item removed from cart", "cart": cart}


@router.delete("/clear")
def clear_cart(current_user: CurrentUser = Depends(get_current_user), carts: CartService = Depends(get_cart_service)):
    carts.clear(current_user.id)
    return {"message": "Cart cleared"}


@router.post("/checkout", status_code=201)
def checkout(payload: CheckoutInput, current_user: CurrentUser = Depends(get_current_user),
             carts: CartService = Depends(get_cart_service)):
    order = carts.checkout(current_user.id, payload.shipping_address_id, payload.payment_method)
    return {"message": "Order created successfully", "order": order}
