"""Account models referenced by reviews and orders: users, addresses, roles."""

from typing import Optional

from libs.db.base import AuditMixin, Base
from services.catalog_service.models.enums import (
    AddressType,
    RoleType,
    UserStatus,
    enum_values,
)
from sqlalchemy import Boolean, Column
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column(
        "user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    ),
    Column(
        "role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    ),
)


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[RoleType] = mapped_column(
        SAEnum(RoleType, values_callable=enum_values, name="role_type_enum"),
        unique=True,
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def __repr__(self):
        return f"<Role {self.name}>"


class User(AuditMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, values_callable=enum_values, name="user_status_enum"),
        default=UserStatus.ACTIVE,
        nullable=False,
    )

    # Relationships
    addresses = relationship(
        "Address", cascade="all, delete-orphan", passive_deletes=True
    )
    roles = relationship("Role", secondary=user_roles)

    def __repr__(self):
        return f"<User {self.username}>"


class Address(AuditMixin, Base):
    __tablename__ = "addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AddressType] = mapped_column(
        SAEnum(AddressType, values_callable=enum_values, name="address_type_enum"),
        default=AddressType.SHIPPING,
        nullable=False,
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )

    def __repr__(self):
        return f"<Address {self.city}, {self.country}>"
