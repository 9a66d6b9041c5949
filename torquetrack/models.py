from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class PurchaseRequisitionStatus(str, Enum):
    DRAFT = 'Draft'
    PENDING_APPROVAL = 'Pending Approval'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'
    ORDERED = 'Ordered'
    CANCELLED = 'Cancelled'


class PurchaseOrderStatus(str, Enum):
    DRAFT = 'Draft'
    PENDING_APPROVAL = 'Pending Approval'
    APPROVED = 'Approved'
    PARTIALLY_RECEIVED = 'Partially Received'
    FULLY_RECEIVED = 'Fully Received'
    CLOSED = 'Closed'
    CANCELLED = 'Cancelled'


class GoodsReceiptStatus(str, Enum):
    PENDING = 'Pending'
    PARTIAL = 'Partial'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class JobOrderStatus(str, Enum):
    PENDING = 'Pending'
    IN_PROGRESS = 'In Progress'
    AWAITING_PARTS = 'Awaiting Parts'
    READY_FOR_PICKUP = 'Ready for Pickup'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class SalesOrderStatus(str, Enum):
    DRAFT = 'Draft'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class PaymentStatus(str, Enum):
    PAID = 'Paid'
    PARTIAL = 'Partial'
    UNPAID = 'Unpaid'
    # Kept for display compatibility; no operation produces it.
    REFUNDED = 'Refunded'


class PaymentMethod(str, Enum):
    CASH = 'Cash'
    CREDIT_CARD = 'Credit Card'
    DEBIT_CARD = 'Debit Card'
    BANK_TRANSFER = 'Bank Transfer'
    OTHER = 'Other'


class OrderType(str, Enum):
    JOB_ORDER = 'JobOrder'
    SALES_ORDER = 'SalesOrder'


class StockAdjustmentType(str, Enum):
    ADD = 'ADD'
    REMOVE = 'REMOVE'


class Part(Base):
    __tablename__ = 'parts'
    __table_args__ = (CheckConstraint('stock_quantity >= 0', name='parts_stock_non_negative'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    sku: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    cost: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    supplier_name: Mapped[str | None] = mapped_column(Text)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    min_stock_alert: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Customer(Base):
    __tablename__ = 'customers'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Motorcycle(Base):
    __tablename__ = 'motorcycles'
    __table_args__ = (CheckConstraint('odometer >= 0', name='motorcycles_odometer_non_negative'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(String(32), ForeignKey('customers.id'), nullable=False, index=True)
    make: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer)
    color: Mapped[str | None] = mapped_column(Text)
    plate_number: Mapped[str] = mapped_column(Text, nullable=False)
    vin: Mapped[str | None] = mapped_column(Text)
    odometer: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Mechanic(Base):
    __tablename__ = 'mechanics'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    specializations: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Supplier(Base):
    __tablename__ = 'suppliers'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_person: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    address: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ShopService(Base):
    __tablename__ = 'shop_services'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    default_labor_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseRequisition(Base):
    __tablename__ = 'purchase_requisitions'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    requested_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    department: Mapped[str | None] = mapped_column(Text)
    status: Mapped[PurchaseRequisitionStatus] = mapped_column(
        SQLEnum(PurchaseRequisitionStatus, name='purchase_requisition_status'),
        nullable=False,
        default=PurchaseRequisitionStatus.DRAFT,
    )
    total_estimated_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    notes: Mapped[str | None] = mapped_column(Text)
    submitted_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    approved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by_user_id: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseRequisitionItem(Base):
    __tablename__ = 'purchase_requisition_items'
    __table_args__ = (CheckConstraint('quantity >= 1', name='purchase_requisition_items_quantity_positive'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    requisition_id: Mapped[str] = mapped_column(
        String(32), ForeignKey('purchase_requisitions.id', ondelete='CASCADE'), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    part_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('parts.id'))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_price_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    notes: Mapped[str | None] = mapped_column(Text)


class PurchaseOrder(Base):
    __tablename__ = 'purchase_orders'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    purchase_requisition_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('purchase_requisitions.id'))
    supplier_id: Mapped[str] = mapped_column(String(32), ForeignKey('suppliers.id'), nullable=False)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        SQLEnum(PurchaseOrderStatus, name='purchase_order_status'),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
    )
    order_date: Mapped[date | None] = mapped_column(Date)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date)
    sub_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    tax_is_explicit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    payment_terms: Mapped[str | None] = mapped_column(Text)
    shipping_address: Mapped[str | None] = mapped_column(Text)
    billing_address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseOrderItem(Base):
    __tablename__ = 'purchase_order_items'
    __table_args__ = (CheckConstraint('quantity >= 1', name='purchase_order_items_quantity_positive'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    purchase_order_id: Mapped[str] = mapped_column(
        String(32), ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    part_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('parts.id'))
    part_name: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


class GoodsReceipt(Base):
    __tablename__ = 'goods_receipts'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    purchase_order_id: Mapped[str] = mapped_column(String(32), ForeignKey('purchase_orders.id'), nullable=False)
    supplier_id: Mapped[str] = mapped_column(String(32), ForeignKey('suppliers.id'), nullable=False)
    status: Mapped[GoodsReceiptStatus] = mapped_column(
        SQLEnum(GoodsReceiptStatus, name='goods_receipt_status'),
        nullable=False,
        default=GoodsReceiptStatus.PENDING,
    )
    received_date: Mapped[date | None] = mapped_column(Date)
    received_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    discrepancies: Mapped[str | None] = mapped_column(Text)
    stock_credited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class GoodsReceiptItem(Base):
    __tablename__ = 'goods_receipt_items'
    __table_args__ = (
        CheckConstraint(
            'quantity_received >= 0 AND quantity_received <= quantity_ordered',
            name='goods_receipt_items_received_within_ordered',
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    receipt_id: Mapped[str] = mapped_column(String(32), ForeignKey('goods_receipts.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    purchase_order_item_id: Mapped[str] = mapped_column(String(32), ForeignKey('purchase_order_items.id'), nullable=False)
    part_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('parts.id'))
    part_name: Mapped[str | None] = mapped_column(Text)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    condition: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)


class JobOrder(Base):
    __tablename__ = 'job_orders'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(String(32), ForeignKey('customers.id'), nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    motorcycle_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('motorcycles.id'))
    status: Mapped[JobOrderStatus] = mapped_column(
        SQLEnum(JobOrderStatus, name='job_order_status'),
        nullable=False,
        default=JobOrderStatus.PENDING,
    )
    diagnostics: Mapped[str | None] = mapped_column(Text)
    estimated_completion_date: Mapped[date | None] = mapped_column(Date)
    actual_completion_date: Mapped[date | None] = mapped_column(Date)
    labor_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    parts_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name='payment_status'),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )
    created_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class JobOrderServiceLine(Base):
    __tablename__ = 'job_order_service_lines'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    job_order_id: Mapped[str] = mapped_column(String(32), ForeignKey('job_orders.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    service_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('shop_services.id'))
    service_name: Mapped[str] = mapped_column(Text, nullable=False)
    labor_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    assigned_mechanic_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('mechanics.id'))
    notes: Mapped[str | None] = mapped_column(Text)


class JobOrderPartLine(Base):
    __tablename__ = 'job_order_part_lines'
    __table_args__ = (CheckConstraint('quantity >= 1', name='job_order_part_lines_quantity_positive'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    job_order_id: Mapped[str] = mapped_column(String(32), ForeignKey('job_orders.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    part_id: Mapped[str] = mapped_column(String(32), ForeignKey('parts.id'), nullable=False)
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


class SalesOrder(Base):
    __tablename__ = 'sales_orders'

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    customer_id: Mapped[str | None] = mapped_column(String(32), ForeignKey('customers.id'))
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SalesOrderStatus] = mapped_column(
        SQLEnum(SalesOrderStatus, name='sales_order_status'),
        nullable=False,
        default=SalesOrderStatus.COMPLETED,
    )
    items_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name='payment_status'),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SalesOrderLine(Base):
    __tablename__ = 'sales_order_lines'
    __table_args__ = (CheckConstraint('quantity >= 1', name='sales_order_lines_quantity_positive'),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    sales_order_id: Mapped[str] = mapped_column(String(32), ForeignKey('sales_orders.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    part_id: Mapped[str] = mapped_column(String(32), ForeignKey('parts.id'), nullable=False)
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


class Payment(Base):
    __tablename__ = 'payments'
    __table_args__ = (CheckConstraint('amount > 0', name='payments_amount_positive'),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    order_type: Mapped[OrderType] = mapped_column(SQLEnum(OrderType, name='order_type'), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod, name='payment_method'), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    processed_by_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_user_id: Mapped[str | None] = mapped_column(Text)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
