"""
Store repository: the only code that touches the ORM.

Callers get detached pydantic views (ProductSnapshot, CustomerProfile,
OrderRecord), never live ORM rows. Any SQLAlchemy failure surfaces as
RepositoryError so the conversation layer can answer the customer instead
of crashing the turn.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from chatshop.core.audit import AuditLog
from chatshop.core.business import LOYALTY_POINT_VALUE, vip_tier_for
from chatshop.core.exceptions import (
    InsufficientStockError,
    InvalidStatusTransition,
    OrderNotFoundError,
    ProductNotFoundError,
    RepositoryError,
)
from chatshop.db.session import SessionLocal
from chatshop.models import Customer, Order, OrderSequence, Product
from chatshop.schemas.order import (
    ALLOWED_TRANSITIONS,
    OPEN_STATUSES,
    Address,
    OrderDraft,
    OrderStatus,
    OrderSummary,
)
from chatshop.schemas.records import CustomerProfile, OrderRecord, ProductSnapshot

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value) -> str:
    return str(Decimal(value))


class StoreTransaction:
    """
    Operations that must succeed or fail together when an order is committed.

    Obtained from StoreRepository.transaction(); nothing is visible to other
    sessions until the block exits cleanly.
    """

    def __init__(self, db: Session):
        self.db = db

    def next_order_id(self, now: Optional[datetime] = None) -> str:
        """Allocate ORD-YYMM-NNNN from the per-month sequence. Never reuses a number."""
        period = (now or _now()).strftime("%y%m")
        # Write first so the row lock is taken before anything is read
        result = self.db.execute(
            update(OrderSequence)
            .where(OrderSequence.period == period)
            .values(last_value=OrderSequence.last_value + 1)
        )
        if result.rowcount == 0:
            self.db.add(OrderSequence(period=period, last_value=1))
            self.db.flush()
        value = (
            self.db.query(OrderSequence.last_value)
            .filter(OrderSequence.period == period)
            .scalar()
        )
        return f"ORD-{period}-{value:04d}"

    def create_order(self, order_id: str, draft: OrderDraft) -> OrderRecord:
        now = _now()
        order = Order(
            order_id=order_id,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name,
            negotiation_id=draft.negotiation_id,
            items=[
                {
                    "product_id": item.product_id,
                    "name": item.name,
                    "unit_price": _money(item.unit_price),
                    "quantity": item.quantity,
                    "subtotal": _money(item.subtotal),
                }
                for item in draft.items
            ],
            subtotal=draft.pricing.subtotal,
            delivery_fee=draft.pricing.delivery_fee,
            discount=draft.pricing.discount,
            total=draft.pricing.total,
            delivery={
                "address": draft.address.model_dump(),
                "zone": draft.pricing.zone,
                "estimated_days": draft.pricing.estimated_days,
            },
            payment_method=draft.payment_method.value,
            payment_status="pending",
            status=OrderStatus.PENDING.value,
            status_history=[
                {
                    "status": OrderStatus.PENDING.value,
                    "timestamp": now.isoformat(),
                    "note": "Order placed",
                    "updated_by": "system",
                }
            ],
        )
        self.db.add(order)
        self.db.flush()
        return OrderRecord.model_validate(order)

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        """
        Take `quantity` units in a single conditional UPDATE.

        Raises InsufficientStockError (with the live count) when fewer units
        remain; returns the remaining stock otherwise.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.product_id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
        )
        if result.rowcount == 0:
            available = (
                self.db.query(Product.stock)
                .filter(Product.product_id == product_id)
                .scalar()
            )
            if available is None:
                raise ProductNotFoundError(product_id)
            raise InsufficientStockError(product_id, quantity, available)

        remaining = (
            self.db.query(Product.stock)
            .filter(Product.product_id == product_id)
            .scalar()
        )
        if remaining == 0:
            self.db.execute(
                update(Product)
                .where(Product.product_id == product_id)
                .values(status="out-of-stock")
            )
        return remaining

    def record_sale(self, product_id: str, quantity: int, revenue: Decimal) -> None:
        self.db.execute(
            update(Product)
            .where(Product.product_id == product_id)
            .values(
                orders_count=Product.orders_count + 1,
                revenue=Product.revenue + revenue,
            )
        )


class StoreRepository(ABC):
    """Persistence contract consumed by the orchestrator and services."""

    @abstractmethod
    def transaction(self):
        ...

    @abstractmethod
    def find_or_create_customer(self, customer_id: str, name: Optional[str] = None) -> CustomerProfile:
        ...

    @abstractmethod
    def find_product(self, product_id: str) -> Optional[ProductSnapshot]:
        ...

    @abstractmethod
    def find_products(self, product_ids: List[str]) -> List[ProductSnapshot]:
        ...

    @abstractmethod
    def search_products(self, query: str, limit: int = 5) -> List[ProductSnapshot]:
        ...

    @abstractmethod
    def list_catalog(self, limit: int = 10) -> List[ProductSnapshot]:
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> int:
        ...

    @abstractmethod
    def create_order(self, draft: OrderDraft) -> OrderRecord:
        ...

    @abstractmethod
    def find_order_by_negotiation(self, negotiation_id: str) -> Optional[OrderRecord]:
        ...

    @abstractmethod
    def append_customer_order(self, customer_id: str, summary: OrderSummary) -> CustomerProfile:
        ...

    @abstractmethod
    def open_orders(self, customer_id: str, limit: int = 5) -> List[OrderRecord]:
        ...

    @abstractmethod
    def recent_orders(self, customer_id: str, limit: int = 3) -> List[OrderRecord]:
        ...

    @abstractmethod
    def record_interaction(self, customer_id: str, intent: Optional[str], message: str) -> None:
        ...

    @abstractmethod
    def add_address(self, customer_id: str, address: Address) -> bool:
        ...

    @abstractmethod
    def increment_views(self, product_ids: List[str]) -> None:
        ...

    @abstractmethod
    def set_stock(self, product_id: str, quantity: int) -> ProductSnapshot:
        ...

    @abstractmethod
    def update_order_status(
        self, order_id: str, status: OrderStatus, updated_by: str, note: Optional[str] = None
    ) -> OrderRecord:
        ...


class SqlStoreRepository(StoreRepository):
    """StoreRepository backed by the SQLAlchemy models."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[DB] {type(e).__name__}: {e}")
            raise RepositoryError("Store database unavailable") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """
        Usage:
            with repo.transaction() as tx:
                order_id = tx.next_order_id()
                tx.create_order(order_id, draft)
                tx.decrement_stock("PRD-001", 2)
        """
        with self._session() as db:
            yield StoreTransaction(db)

    # ---- customers ----

    def _customer_row(self, db: Session, customer_id: str, name: Optional[str] = None) -> Customer:
        customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
        if customer is None:
            customer = Customer(
                customer_id=customer_id,
                name=name,
                addresses=[],
                order_history=[],
                cart=[],
                total_spent=Decimal("0"),
                total_orders=0,
                loyalty_points=0,
                is_vip=False,
            )
            db.add(customer)
            db.flush()
            logger.info(f"[DB] New customer {customer_id}")
        elif name and not customer.name:
            customer.name = name
        return customer

    def find_or_create_customer(self, customer_id: str, name: Optional[str] = None) -> CustomerProfile:
        with self._session() as db:
            customer = self._customer_row(db, customer_id, name)
            return CustomerProfile.model_validate(customer)

    def append_customer_order(self, customer_id: str, summary: OrderSummary) -> CustomerProfile:
        """Fold a committed order into the customer's totals, loyalty and VIP tier."""
        with self._session() as db:
            customer = self._customer_row(db, customer_id)
            entry = summary.model_dump(mode="json")
            customer.order_history = [entry] + list(customer.order_history or [])
            customer.total_orders = (customer.total_orders or 0) + 1
            customer.total_spent = Decimal(customer.total_spent or 0) + summary.total
            customer.loyalty_points = (customer.loyalty_points or 0) + int(summary.total // LOYALTY_POINT_VALUE)
            tier = vip_tier_for(customer.total_spent)
            customer.vip_tier = tier
            customer.is_vip = tier is not None
            customer.cart = []
            customer.last_interaction = _now()
            db.flush()
            return CustomerProfile.model_validate(customer)

    def add_address(self, customer_id: str, address: Address) -> bool:
        """Store the address unless an identical one exists. First one becomes default."""
        with self._session() as db:
            customer = self._customer_row(db, customer_id)
            addresses = list(customer.addresses or [])
            for existing in addresses:
                if (
                    existing.get("street", "").lower() == address.street.lower()
                    and existing.get("city", "").lower() == address.city.lower()
                    and existing.get("region", "").lower() == address.region.lower()
                ):
                    return False
            entry = address.model_dump()
            entry["is_default"] = not addresses
            customer.addresses = addresses + [entry]
            return True

    def record_interaction(self, customer_id: str, intent: Optional[str], message: str) -> None:
        with self._session() as db:
            customer = self._customer_row(db, customer_id)
            customer.last_intent = intent
            customer.last_message = message[:1000]
            customer.last_interaction = _now()

    # ---- catalog ----

    def find_product(self, product_id: str) -> Optional[ProductSnapshot]:
        with self._session() as db:
            product = db.query(Product).filter(Product.product_id == product_id).first()
            return ProductSnapshot.model_validate(product) if product else None

    def find_products(self, product_ids: List[str]) -> List[ProductSnapshot]:
        if not product_ids:
            return []
        with self._session() as db:
            rows = db.query(Product).filter(Product.product_id.in_(product_ids)).all()
            by_id = {row.product_id: ProductSnapshot.model_validate(row) for row in rows}
            return [by_id[pid] for pid in product_ids if pid in by_id]

    def search_products(self, query: str, limit: int = 5) -> List[ProductSnapshot]:
        query = (query or "").strip()
        if not query:
            return []
        pattern = f"%{query}%"
        with self._session() as db:
            rows = (
                db.query(Product)
                .filter(Product.status != "discontinued")
                .filter(
                    or_(
                        Product.product_id.ilike(query),
                        Product.name.ilike(pattern),
                        Product.category.ilike(pattern),
                    )
                )
                .order_by(Product.featured.desc(), Product.name)
                .limit(limit)
                .all()
            )
            return [ProductSnapshot.model_validate(row) for row in rows]

    def list_catalog(self, limit: int = 10) -> List[ProductSnapshot]:
        with self._session() as db:
            rows = (
                db.query(Product)
                .filter(Product.status == "active", Product.stock > 0)
                .order_by(Product.featured.desc(), Product.name)
                .limit(limit)
                .all()
            )
            return [ProductSnapshot.model_validate(row) for row in rows]

    def increment_views(self, product_ids: List[str]) -> None:
        if not product_ids:
            return
        with self._session() as db:
            db.execute(
                update(Product)
                .where(Product.product_id.in_(product_ids))
                .values(views=Product.views + 1)
            )

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        with self.transaction() as tx:
            remaining = tx.decrement_stock(product_id, quantity)
        AuditLog.log_stock_change(product_id, -quantity, remaining, "decrement")
        return remaining

    def set_stock(self, product_id: str, quantity: int) -> ProductSnapshot:
        """Operator restock/correction. Reactivates an out-of-stock product."""
        with self._session() as db:
            product = db.query(Product).filter(Product.product_id == product_id).first()
            if product is None:
                raise ProductNotFoundError(product_id)
            delta = quantity - (product.stock or 0)
            product.stock = quantity
            if quantity == 0:
                product.status = "out-of-stock"
            elif product.status == "out-of-stock":
                product.status = "active"
            db.flush()
            snapshot = ProductSnapshot.model_validate(product)
        AuditLog.log_stock_change(product_id, delta, quantity, "admin_update")
        return snapshot

    # ---- orders ----

    def create_order(self, draft: OrderDraft) -> OrderRecord:
        with self.transaction() as tx:
            order_id = tx.next_order_id()
            return tx.create_order(order_id, draft)

    def find_order_by_negotiation(self, negotiation_id: str) -> Optional[OrderRecord]:
        with self._session() as db:
            row = db.query(Order).filter(Order.negotiation_id == negotiation_id).first()
            return OrderRecord.model_validate(row) if row else None

    def open_orders(self, customer_id: str, limit: int = 5) -> List[OrderRecord]:
        with self._session() as db:
            rows = (
                db.query(Order)
                .filter(Order.customer_id == customer_id, Order.status.in_(OPEN_STATUSES))
                .order_by(Order.id.desc())
                .limit(limit)
                .all()
            )
            return [OrderRecord.model_validate(row) for row in rows]

    def recent_orders(self, customer_id: str, limit: int = 3) -> List[OrderRecord]:
        with self._session() as db:
            rows = (
                db.query(Order)
                .filter(Order.customer_id == customer_id)
                .order_by(Order.id.desc())
                .limit(limit)
                .all()
            )
            return [OrderRecord.model_validate(row) for row in rows]

    def update_order_status(
        self, order_id: str, status: OrderStatus, updated_by: str, note: Optional[str] = None
    ) -> OrderRecord:
        """Move an order along its lifecycle. Delivered orders are marked paid."""
        with self._session() as db:
            order = db.query(Order).filter(Order.order_id == order_id).first()
            if order is None:
                raise OrderNotFoundError(order_id)
            current = OrderStatus(order.status)
            if status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransition(current.value, status.value)
            order.status = status.value
            order.status_history = list(order.status_history or []) + [
                {
                    "status": status.value,
                    "timestamp": _now().isoformat(),
                    "note": note or f"Status updated to {status.value}",
                    "updated_by": updated_by,
                }
            ]
            if status == OrderStatus.DELIVERED:
                order.payment_status = "paid"
            db.flush()
            record = OrderRecord.model_validate(order)
        AuditLog.log_order_status(order_id, current.value, status.value, updated_by)
        return record
