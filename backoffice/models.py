"""Database models for the salon back office."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db

USER_ROLES = ("ADMIN", "MANAGER", "STAFF")

DISCOUNT_TYPES = (
    "SIXTH_VISIT",
    "BIRTHDAY_MONTH",
    "SERVICE_COMBO",
    "PROMOTIONAL",
    "SEASONAL",
    "LOYALTY_POINTS",
)

PAYMENT_METHODS = ("CASH", "MOBILE_MONEY", "MOMO", "BANK_CARD", "BANK_TRANSFER")


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# Services a discount rule is scoped to when it does not apply to all services
discount_rule_services = db.Table(
    "discount_rule_services",
    db.Column(
        "discount_rule_id",
        db.Integer,
        db.ForeignKey("discount_rules.discount_rule_id"),
        primary_key=True,
    ),
    db.Column("service_id", db.Integer, db.ForeignKey("services.service_id"), primary_key=True),
)


class User(db.Model):
    """An operator of the back office (admin, manager or stylist)."""

    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), unique=True, nullable=False)
    email = db.Column(db.String(255))
    role = db.Column(
        db.Enum(
            *USER_ROLES,
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="STAFF",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    auth_account = db.relationship(
        "AuthAccount", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "role": self.role,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "role": self.role,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Customer(db.Model):
    __tablename__ = "customers"

    customer_id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(150), nullable=False)
    gender = db.Column(db.String(20))
    location = db.Column(db.String(150))
    district = db.Column(db.String(100))
    province = db.Column(db.String(100))
    # Only unique among active, non-dependent customers; enforced in the handlers
    phone = db.Column(db.String(30), index=True)
    email = db.Column(db.String(255))
    birth_day = db.Column(db.Integer)
    birth_month = db.Column(db.Integer)
    birth_year = db.Column(db.Integer)
    is_dependent = db.Column(db.Boolean, nullable=False, default=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=True)
    visit_count = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Integer, nullable=False, default=0)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    last_visit = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    parent = db.relationship("Customer", remote_side=[customer_id], backref="dependents")
    visits = db.relationship("Visit", back_populates="customer", lazy="dynamic")
    discounts = db.relationship("CustomerDiscount", back_populates="customer", lazy="dynamic")

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.customer_id,
            "full_name": self.full_name,
            "phone": self.phone,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.customer_id,
            "full_name": self.full_name,
            "gender": self.gender,
            "location": self.location,
            "district": self.district,
            "province": self.province,
            "phone": self.phone,
            "email": self.email,
            "birth_day": self.birth_day,
            "birth_month": self.birth_month,
            "birth_year": self.birth_year,
            "is_dependent": bool(self.is_dependent),
            "parent_id": self.parent_id,
            "visit_count": self.visit_count,
            "total_spent": self.total_spent,
            "loyalty_points": self.loyalty_points,
            "last_visit": _iso(self.last_visit),
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Service(db.Model):
    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    single_price = db.Column(db.Integer, nullable=False)
    combined_price = db.Column(db.Integer)
    child_price = db.Column(db.Integer)
    child_combined_price = db.Column(db.Integer)
    duration = db.Column(db.Integer, nullable=False, default=30)  # minutes
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "category": self.category,
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "single_price": self.single_price,
            "combined_price": self.combined_price,
            "child_price": self.child_price,
            "child_combined_price": self.child_combined_price,
            "duration": self.duration,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class DiscountRule(db.Model):
    """A named promotional policy, either a percentage or a fixed amount."""

    __tablename__ = "discount_rules"

    discount_rule_id = db.Column(db.Integer, primary_key=True)
    # Soft deleted rules are renamed "<name>_deleted_<millis>" to free the name
    name = db.Column(db.String(200), unique=True, nullable=False)
    type = db.Column(
        db.Enum(
            *DISCOUNT_TYPES,
            name="discount_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    value = db.Column(db.Integer, nullable=False)
    is_percentage = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.Text)
    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime)
    apply_to_all_services = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    services = db.relationship("Service", secondary=discount_rule_services, lazy="select")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.discount_rule_id,
            "name": self.name,
            "type": self.type,
            "value": self.value,
            "is_percentage": bool(self.is_percentage),
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "apply_to_all_services": bool(self.apply_to_all_services),
            "is_active": bool(self.is_active),
            "services": [{"id": s.service_id, "name": s.name} for s in self.services],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Visit(db.Model):
    """A single customer transaction (also exposed as a "sale")."""

    __tablename__ = "visits"

    visit_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=False)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    final_amount = db.Column(db.Integer, nullable=False, default=0)
    loyalty_points_earned = db.Column(db.Integer, nullable=False, default=0)
    # Position in the customer's history when recorded (1 = first visit)
    visit_number = db.Column(db.Integer, nullable=False, default=1)
    payment_method = db.Column(db.String(30), nullable=False, default="CASH")
    notes = db.Column(db.Text)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    visit_date = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    customer = db.relationship("Customer", back_populates="visits")
    created_by = db.relationship("User")
    services = db.relationship(
        "VisitService", back_populates="visit", cascade="all, delete-orphan"
    )
    staff = db.relationship("VisitStaff", back_populates="visit", cascade="all, delete-orphan")
    discounts = db.relationship(
        "VisitDiscount", back_populates="visit", cascade="all, delete-orphan"
    )
    payments = db.relationship(
        "VisitPayment", back_populates="visit", cascade="all, delete-orphan"
    )

    def to_dict(self, include_customer: bool = True) -> dict[str, object]:
        payload = {
            "id": self.visit_id,
            "customer_id": self.customer_id,
            "total_amount": self.total_amount,
            "discount_amount": self.discount_amount,
            "final_amount": self.final_amount,
            "loyalty_points_earned": self.loyalty_points_earned,
            "visit_number": self.visit_number,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "is_completed": bool(self.is_completed),
            "visit_date": _iso(self.visit_date),
            "created_by": self.created_by.to_dict_basic() if self.created_by else None,
            "services": [line.to_dict() for line in self.services],
            "staff": [link.to_dict() for link in self.staff],
            "discounts": [link.to_dict() for link in self.discounts],
            "payments": [payment.to_dict() for payment in self.payments],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_customer:
            payload["customer"] = self.customer.to_dict_basic() if self.customer else None
        return payload


class VisitService(db.Model):
    __tablename__ = "visit_services"

    visit_service_id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.Integer, db.ForeignKey("visits.visit_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Integer, nullable=False)
    is_child = db.Column(db.Boolean, nullable=False, default=False)
    is_combined = db.Column(db.Boolean, nullable=False, default=False)

    visit = db.relationship("Visit", back_populates="services")
    service = db.relationship("Service")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.visit_service_id,
            "service_id": self.service_id,
            "service": self.service.to_dict_basic() if self.service else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "is_child": bool(self.is_child),
            "is_combined": bool(self.is_combined),
        }


class VisitStaff(db.Model):
    __tablename__ = "visit_staff"

    visit_staff_id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.Integer, db.ForeignKey("visits.visit_id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)

    visit = db.relationship("Visit", back_populates="staff")
    staff = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "staff_id": self.staff_id,
            "name": self.staff.name if self.staff else None,
        }


class VisitDiscount(db.Model):
    __tablename__ = "visit_discounts"

    visit_discount_id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.Integer, db.ForeignKey("visits.visit_id"), nullable=False)
    discount_rule_id = db.Column(
        db.Integer, db.ForeignKey("discount_rules.discount_rule_id"), nullable=False
    )
    discount_amount = db.Column(db.Integer, nullable=False)

    visit = db.relationship("Visit", back_populates="discounts")
    discount_rule = db.relationship("DiscountRule")

    def to_dict(self) -> dict[str, object]:
        rule = self.discount_rule
        return {
            "discount_rule_id": self.discount_rule_id,
            "type": rule.type if rule else None,
            "name": rule.name if rule else None,
            "discount_amount": self.discount_amount,
        }


class CustomerDiscount(db.Model):
    """Usage ledger: one row each time a customer consumes a discount rule."""

    __tablename__ = "customer_discounts"

    customer_discount_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=False)
    discount_rule_id = db.Column(
        db.Integer, db.ForeignKey("discount_rules.discount_rule_id"), nullable=False
    )
    discount_amount = db.Column(db.Integer, nullable=False)
    used_at = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)

    customer = db.relationship("Customer", back_populates="discounts")
    discount_rule = db.relationship("DiscountRule")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.customer_discount_id,
            "customer_id": self.customer_id,
            "discount_rule_id": self.discount_rule_id,
            "type": self.discount_rule.type if self.discount_rule else None,
            "discount_amount": self.discount_amount,
            "used_at": _iso(self.used_at),
        }


class VisitPayment(db.Model):
    __tablename__ = "visit_payments"

    payment_id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.Integer, db.ForeignKey("visits.visit_id"), nullable=False)
    payment_method = db.Column(
        db.Enum(
            *PAYMENT_METHODS,
            name="payment_method",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="CASH",
    )
    amount = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    visit = db.relationship("Visit", back_populates="payments")

    def to_dict(self) -> dict[str, object]:
        return {
            "payment_method": self.payment_method,
            "amount": self.amount,
        }


class Product(db.Model):
    __tablename__ = "products"

    product_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.product_id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "quantity": self.quantity,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
