"""SQLAlchemy tables backing the IPAM store"""
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text, TypeDecorator, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class AddressCount(TypeDecorator):
    """Address counts as decimal text; IPv6 totals overflow SQLite integers."""

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class Base(DeclarativeBase):
    pass


class VlanRow(Base):
    __tablename__ = "vlans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    vlan_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(32), default="data")
    color: Mapped[Optional[str]] = mapped_column(String(16))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SubnetRow(Base):
    __tablename__ = "subnets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    ip_version: Mapped[str] = mapped_column(String(4), nullable=False)
    cidr: Mapped[str] = mapped_column(String(43), nullable=False)
    network_address: Mapped[str] = mapped_column(String(39), nullable=False)
    prefix_length: Mapped[int] = mapped_column(Integer, nullable=False)
    gateway_ip: Mapped[Optional[str]] = mapped_column(String(39))
    gateway_name: Mapped[Optional[str]] = mapped_column(String(100))
    broadcast_address: Mapped[Optional[str]] = mapped_column(String(39))
    total_addresses: Mapped[int] = mapped_column(AddressCount, nullable=False)
    usable_addresses: Mapped[int] = mapped_column(AddressCount, nullable=False)
    vlan_uuid: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class IPAddressRow(Base):
    __tablename__ = "ip_addresses"
    __table_args__ = (
        UniqueConstraint("subnet_id", "ip_address", name="uq_ip_subnet_address"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subnet_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(39), nullable=False)
    # Zero-padded hex of the address value so text ordering is numeric
    sort_key: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    ip_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100))
    equipment_id: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
