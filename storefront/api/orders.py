from typing import List

from fastapi import APIRouter, Depends, status

from storefront.api.deps import get_admin_user, get_current_user, get_orders
from storefront.models.schemas import CurrentUser, OrderCreate, OrderOut, OrderStatusUpdate
from storefront.services.orders_service import OrderManager

router = APIRouter()


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, user: CurrentUser = Depends(get_current_user),
                 orders: OrderManager = Depends(get_orders)):
    return orders.create_order(user, payload)


@router.get("/my-orders", response_model=List[OrderOut])
def my_orders(user: CurrentUser = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    return orders.get_my_orders(user)


@router.get("/all", response_model=List[OrderOut])
def all_orders(admin: CurrentUser = Depends(get_admin_user), orders: OrderManager = Depends(get_orders)):
    return orders.get_all_orders(admin)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user: CurrentUser = Depends(get_current_user),
              orders: OrderManager = Depends(get_orders)):
    return orders.get_order_by_id(order_id, user)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(order_id: str, payload: OrderStatusUpdate,
                  admin: CurrentUser = Depends(get_admin_user), orders: OrderManager = Depends(get_orders)):
    return orders.update_order_status(order_id, payload, admin)
