from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import CurrentUser, get_current_user, require_admin, require_customer
from cart_service import OrderService
from database import get_db
from schemas import BulkOrderStatusUpdate, OrderCreate, OrderStatusUpdate

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_order_service(db: Database = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.get("")
def list_orders(current_user: CurrentUser = Depends(get_current_user),
                orders: OrderService = Depends(get_order_service)):
    return orders.list_for(current_user)


@router.patch("/bulk-status")
def bulk_update_status(data: BulkOrderStatusUpdate, _: CurrentUser = Depends(require_admin),
                       orders: OrderService = Depends(get_order_service)):
    updated = orders.bulk_update_status(data.order_ids, data.status)
    return {"message": "Bulk status update completed", "updatedOrderCount": updated, "status": data.status}


@router.get("/{order_id}")
def get_order(order_id: str, current_user: CurrentUser = Depends(get_current_user),
              orders: OrderService = Depends(get_order_service)):
    return orders.get_for(current_user, order_id)


@router.post("", status_code=201)
def create_order(data: OrderCreate, current_user: CurrentUser = Depends(require_customer),
                 orders: OrderService = Depends(get_order_service)):
    items = [item.model_dump(by_alias=True) for item in data.items]
    return orders.place_order(current_user, items, data.shipping_address_id, data.payment_method)


@router.patch("/{order_id}/status")
def update_order_status(order_id: str, data: OrderStatusUpdate, _: CurrentUser = Depends(require_admin),
                        orders: OrderService = Depends(get_order_service)):
    return orders.update_status(order_id, data.status)
