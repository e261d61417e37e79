import logging
from typing import Dict, Iterable, List

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from storefront.core.errors import Forbidden, NotFound, ValidationError
from storefront.db.mongo import ORDERS, PRODUCTS, USERS, parse_object_id
from storefront.models.schemas import (
    CurrentUser,
    OrderCreate,
    OrderItemOut,
    OrderOut,
    OrderStatusUpdate,
    ProductSummary,
    UserSummary,
    to_money,
)
from storefront.services.common import order_total, parse_input, utcnow

logger = logging.getLogger("storefront.orders")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

# delivered and cancelled are terminal
STATUS_TRANSITIONS = {
    "pending": {"processing", "shipped", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}


def require_role(caller: CurrentUser, role: str, message: str = "Forbidden"):
    if caller is None or caller.role != role:
        raise Forbidden(message)


def can_transition(current: str, new: str) -> bool:
    return current == new or new in STATUS_TRANSITIONS.get(current, set())


class OrderManager:
    def __init__(self, db: Database):
        self.orders = db[ORDERS]
        self.products = db[PRODUCTS]
        self.users = db[USERS]

    # --- rendering ---

    def _render(self, docs: Iterable[dict]) -> List[OrderOut]:
        docs = list(docs)
        product_ids = {item["product"] for doc in docs for item in doc.get("items", [])}
        user_ids = {doc["user"] for doc in docs}

        products = {
            p["_id"]: p
            for p in self.products.find({"_id": {"$in": list(product_ids)}}, {"name": 1, "price": 1, "images": 1})
        } if product_ids else {}
        users = {
            u["_id"]: u
            for u in self.users.find({"_id": {"$in": list(user_ids)}}, {"name": 1, "email": 1})
        } if user_ids else {}

        rendered = []
        for doc in docs:
            items = []
            for item in doc.get("items", []):
                product = products.get(item["product"])
                summary = None
                if product:
                    images = product.get("images") or []
                    summary = ProductSummary(
                        id=str(product["_id"]),
                        name=product.get("name", ""),
                        price=product.get("price", 0),
                        image_url=images[0]["url"] if images else "",
                    )
                items.append(OrderItemOut(
                    product_id=str(item["product"]),
                    product=summary,
                    name=item.get("name", ""),
                    quantity=item["quantity"],
                    price=item["price"],
                ))
            user = users.get(doc["user"])
            rendered.append(OrderOut(
                id=str(doc["_id"]),
                user_id=str(doc["user"]),
                user=UserSummary(id=str(user["_id"]), name=user.get("name", ""), email=user.get("email", ""))
                if user else None,
                items=items,
                total=doc["total"],
                status=doc["status"],
                created_at=doc.get("created_at"),
                updated_at=doc.get("updated_at"),
            ))
        return rendered

    def _find(self, order_id: str) -> dict:
        oid = parse_object_id(order_id)
        doc = self.orders.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Order not found")
        return doc

    def _list(self, query: dict) -> List[OrderOut]:
        return self._render(self.orders.find(query).sort("created_at", DESCENDING))

    # --- operations ---

    def create_order(self, caller: CurrentUser, payload) -> OrderOut:
        payload = parse_input(OrderCreate, payload, "Invalid order data")
        if not payload.items:
            raise ValidationError("Invalid order data", {"items": "Order must contain at least one item"})

        # prices come from the catalog, never from the request
        errors: Dict[str, str] = {}
        wanted = {}
        for n, item in enumerate(payload.items):
            oid = parse_object_id(item.product)
            if oid is None:
                errors[f"items.{n}.product"] = "Invalid product ID"
            else:
                wanted[n] = oid
        catalog = {
            p["_id"]: p
            for p in self.products.find({"_id": {"$in": list(set(wanted.values()))}}, {"name": 1, "price": 1})
        } if wanted else {}

        lines = []
        for n, item in enumerate(payload.items):
            if n not in wanted:
                continue
            product = catalog.get(wanted[n])
            if product is None:
                errors[f"items.{n}.product"] = "Product not found"
                continue
            lines.append({
                "product": product["_id"],
                "name": product.get("name", ""),
                "quantity": item.quantity,
                "price": float(to_money(product.get("price", 0))),
            })
        if errors:
            raise ValidationError("Invalid items data", errors)

        now = utcnow()
        doc = {
            "user": parse_object_id(caller.id),
            "items": lines,
            "total": order_total((line["price"], line["quantity"]) for line in lines),
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        doc["_id"] = self.orders.insert_one(doc).inserted_id
        logger.info(f"Order created: {doc['_id']} for user {caller.id}, total {doc['total']:.2f}")
        return self._render([doc])[0]

    def get_orders(self, caller: CurrentUser) -> List[OrderOut]:
        if caller.is_admin:
            return self._list({})
        return self.get_my_orders(caller)

    def get_my_orders(self, caller: CurrentUser) -> List[OrderOut]:
        return self._list({"user": parse_object_id(caller.id)})

    def get_all_orders(self, caller: CurrentUser) -> List[OrderOut]:
        require_role(caller, "admin")
        return self._list({})

    def get_order_by_id(self, order_id: str, caller: CurrentUser) -> OrderOut:
        doc = self._find(order_id)
        if not caller.is_admin and str(doc["user"]) != caller.id:
            raise Forbidden("Not authorized to view this order")
        return self._render([doc])[0]

    def update_order_status(self, order_id: str, new_status, caller: CurrentUser) -> OrderOut:
        require_role(caller, "admin")
        if isinstance(new_status, str):
            new_status = {"status": new_status}
        status = parse_input(OrderStatusUpdate, new_status, "Invalid status").status
        if status not in ORDER_STATUSES:
            raise ValidationError(
                "Invalid status", {"status": f"Status must be one of: {', '.join(ORDER_STATUSES)}"}
            )

        doc = self._find(order_id)
        if doc["status"] == status:
            return self._render([doc])[0]
        if not can_transition(doc["status"], status):
            raise ValidationError(
                "Invalid status", {"status": f"Cannot change status from {doc['status']} to {status}"}
            )

        # guard on the status we checked so concurrent changes can't skip the table
        updated = self.orders.find_one_and_update(
            {"_id": doc["_id"], "status": doc["status"]},
            {"$set": {"status": status, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise ValidationError("Invalid status", {"status": "Order status changed concurrently, retry"})
        logger.info(f"Order {order_id} status {doc['status']} -> {status} by {caller.id}")
        return self._render([updated])[0]
