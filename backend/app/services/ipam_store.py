"""IPAM storage for VLANs, subnets and IP addresses (SQLite via SQLAlchemy)"""
import asyncio
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import create_engine, delete, func, or_, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings
from app.models.cidr import IPAddressRecord, IPStatus, IPType
from app.models.ipam import IPAddress, Subnet, Vlan
from app.models.tables import Base, IPAddressRow, SubnetRow, VlanRow
from app.services.cidr import address_to_int

T = TypeVar("T")


class IPAMStoreError(Exception):
    """Base error for IPAM storage."""


class DuplicateIPError(IPAMStoreError):
    """Address already exists in the subnet."""


class DuplicateVlanError(IPAMStoreError):
    """VLAN number already in use."""


class IPConflictError(IPAMStoreError):
    """Address is not in a state that allows the operation."""


def sort_key(ip_address: str) -> str:
    return format(address_to_int(ip_address), "032x")


def _to_vlan(row: VlanRow) -> Vlan:
    return Vlan.model_validate(row, from_attributes=True)


def _to_subnet(row: SubnetRow) -> Subnet:
    return Subnet.model_validate(row, from_attributes=True)


def _to_ip(row: IPAddressRow) -> IPAddress:
    return IPAddress.model_validate(row, from_attributes=True)


def _ip_values(subnet_id: str, ip: IPAddress) -> dict:
    values = ip.model_dump(mode="json")
    values["subnet_id"] = subnet_id
    values["sort_key"] = sort_key(ip.ip_address)
    return values


class IPAMStore:
    """SQLite-backed IPAM storage.

    Each public call runs in its own transaction on a worker thread, so a
    failing call leaves earlier data untouched and the event loop keeps
    serving requests while the database works. The (subnet_id, ip_address)
    pair is unique at the schema level.
    """

    def __init__(self, file_path: Optional[Path] = None):
        self.file_path = file_path or settings.data_file
        self.engine = create_engine(
            f"sqlite:///{self.file_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    def _call(self, work: Callable[[Session], T]) -> T:
        with self._sessions.begin() as session:
            return work(session)

    async def _run(self, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._call, work)

    # VLANs

    async def list_vlans(self) -> List[Vlan]:
        def query(session: Session) -> List[Vlan]:
            rows = session.scalars(select(VlanRow).order_by(VlanRow.vlan_id))
            return [_to_vlan(row) for row in rows]

        return await self._run(query)

    async def get_vlan(self, vlan_uuid: str) -> Optional[Vlan]:
        def query(session: Session) -> Optional[Vlan]:
            row = session.get(VlanRow, vlan_uuid)
            return _to_vlan(row) if row else None

        return await self._run(query)

    async def is_vlan_id_available(self, vlan_id: int) -> bool:
        def query(session: Session) -> bool:
            found = session.scalar(select(VlanRow.id).where(VlanRow.vlan_id == vlan_id))
            return found is None

        return await self._run(query)

    async def count_subnets_by_vlan(self) -> Dict[str, int]:
        def query(session: Session) -> Dict[str, int]:
            rows = session.execute(
                select(SubnetRow.vlan_uuid, func.count())
                .where(SubnetRow.vlan_uuid.is_not(None))
                .group_by(SubnetRow.vlan_uuid)
            )
            return {vlan_uuid: count for vlan_uuid, count in rows}

        return await self._run(query)

    async def add_vlan(self, vlan: Vlan) -> Vlan:
        def insert(session: Session) -> Vlan:
            session.add(VlanRow(**vlan.model_dump()))
            session.flush()
            return vlan

        try:
            return await self._run(insert)
        except IntegrityError:
            raise DuplicateVlanError(f"VLAN {vlan.vlan_id} already exists")

    async def update_vlan(self, vlan_uuid: str, changes: dict) -> Optional[Vlan]:
        """Apply field changes to a VLAN. The VLAN number is not editable."""
        allowed = {
            k: v for k, v in changes.items()
            if k in ("name", "description", "category", "color", "is_active")
        }

        def apply(session: Session) -> Optional[Vlan]:
            row = session.get(VlanRow, vlan_uuid)
            if row is None:
                return None
            for field, value in allowed.items():
                setattr(row, field, value)
            session.flush()
            return _to_vlan(row)

        return await self._run(apply)

    async def delete_vlan(self, vlan_uuid: str) -> bool:
        """Delete a VLAN. Its subnets are kept and detached."""
        def remove(session: Session) -> bool:
            deleted = session.execute(delete(VlanRow).where(VlanRow.id == vlan_uuid)).rowcount
            if not deleted:
                return False
            session.execute(
                update(SubnetRow).where(SubnetRow.vlan_uuid == vlan_uuid).values(vlan_uuid=None)
            )
            return True

        return await self._run(remove)

    # Subnets

    async def list_subnets(self, vlan_uuid: Optional[str] = None) -> List[Subnet]:
        def query(session: Session) -> List[Subnet]:
            stmt = select(SubnetRow).order_by(SubnetRow.name)
            if vlan_uuid is not None:
                stmt = stmt.where(SubnetRow.vlan_uuid == vlan_uuid)
            return [_to_subnet(row) for row in session.scalars(stmt)]

        return await self._run(query)

    async def get_subnet(self, subnet_id: str) -> Optional[Subnet]:
        def query(session: Session) -> Optional[Subnet]:
            row = session.get(SubnetRow, subnet_id)
            return _to_subnet(row) if row else None

        return await self._run(query)

    async def add_subnet(self, subnet: Subnet) -> Subnet:
        def insert(session: Session) -> Subnet:
            session.add(SubnetRow(**subnet.model_dump(mode="json")))
            return subnet

        return await self._run(insert)

    async def update_subnet(self, subnet: Subnet) -> Optional[Subnet]:
        def apply(session: Session) -> Optional[Subnet]:
            row = session.get(SubnetRow, subnet.id)
            if row is None:
                return None
            for field, value in subnet.model_dump(mode="json").items():
                setattr(row, field, value)
            return subnet

        return await self._run(apply)

    async def delete_subnet(self, subnet_id: str) -> bool:
        """Delete a subnet together with all of its IP addresses."""
        def remove(session: Session) -> bool:
            deleted = session.execute(delete(SubnetRow).where(SubnetRow.id == subnet_id)).rowcount
            if not deleted:
                return False
            session.execute(delete(IPAddressRow).where(IPAddressRow.subnet_id == subnet_id))
            return True

        return await self._run(remove)

    # IP addresses

    async def upsert_ip_addresses(
        self,
        subnet_id: str,
        records: Iterable[IPAddressRecord],
        ignore_duplicates: bool = True,
    ) -> int:
        """Insert address records keyed on (subnet_id, ip_address).

        Existing rows are left untouched when ignore_duplicates is set,
        otherwise their type, status and name are overwritten. The whole
        call is one transaction.

        Returns:
            Number of newly inserted rows
        """
        rows = [
            _ip_values(subnet_id, IPAddress(subnet_id=subnet_id, **record.model_dump()))
            for record in records
        ]
        if not rows:
            return 0

        table = IPAddressRow.__table__
        stmt = sqlite_insert(table)
        if ignore_duplicates:
            stmt = stmt.on_conflict_do_nothing(index_elements=["subnet_id", "ip_address"])
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=["subnet_id", "ip_address"],
                set_={
                    "ip_type": stmt.excluded.ip_type,
                    "status": stmt.excluded.status,
                    "name": stmt.excluded.name,
                },
            )
        count_stmt = select(func.count()).select_from(table).where(table.c.subnet_id == subnet_id)

        def upsert(session: Session) -> int:
            before = session.scalar(count_stmt)
            session.execute(stmt, rows)
            return session.scalar(count_stmt) - before

        return await self._run(upsert)

    async def count_ip_addresses(self, subnet_ids: List[str]) -> int:
        if not subnet_ids:
            return 0

        def query(session: Session) -> int:
            return session.scalar(
                select(func.count())
                .select_from(IPAddressRow)
                .where(IPAddressRow.subnet_id.in_(subnet_ids))
            )

        return await self._run(query)

    async def list_ip_addresses(
        self,
        subnet_ids: Optional[List[str]] = None,
        status: Optional[IPStatus] = None,
        ip_type: Optional[IPType] = None,
        search: Optional[str] = None,
        exclude_types: Iterable[IPType] = (),
        limit: Optional[int] = None,
    ) -> List[IPAddress]:
        """List addresses in numeric order, optionally filtered.

        search matches a case-insensitive substring of the address or name.
        """
        stmt = select(IPAddressRow).order_by(IPAddressRow.sort_key, IPAddressRow.subnet_id)

        if subnet_ids is not None:
            stmt = stmt.where(IPAddressRow.subnet_id.in_(subnet_ids))
        if status:
            stmt = stmt.where(IPAddressRow.status == IPStatus(status).value)
        if ip_type:
            stmt = stmt.where(IPAddressRow.ip_type == IPType(ip_type).value)
        excluded = [IPType(t).value for t in exclude_types]
        if excluded:
            stmt = stmt.where(IPAddressRow.ip_type.not_in(excluded))
        if search:
            stmt = stmt.where(or_(
                IPAddressRow.ip_address.icontains(search, autoescape=True),
                IPAddressRow.name.icontains(search, autoescape=True),
            ))
        if limit is not None:
            stmt = stmt.limit(limit)

        def query(session: Session) -> List[IPAddress]:
            return [_to_ip(row) for row in session.scalars(stmt)]

        return await self._run(query)

    async def search_ip_addresses(self, query: str, limit: int = 50) -> List[IPAddress]:
        return await self.list_ip_addresses(search=query, limit=limit)

    async def list_available_ips(
        self, subnet_ids: Optional[List[str]] = None, limit: int = 200
    ) -> List[IPAddress]:
        """Available addresses that can be handed out (not network/broadcast)."""
        return await self.list_ip_addresses(
            subnet_ids=subnet_ids,
            status=IPStatus.AVAILABLE,
            exclude_types=(IPType.NETWORK, IPType.BROADCAST),
            limit=limit,
        )

    async def get_ip_address(self, ip_id: str) -> Optional[IPAddress]:
        def query(session: Session) -> Optional[IPAddress]:
            row = session.get(IPAddressRow, ip_id)
            return _to_ip(row) if row else None

        return await self._run(query)

    async def create_ip_address(self, ip: IPAddress) -> IPAddress:
        def insert(session: Session) -> IPAddress:
            session.add(IPAddressRow(**_ip_values(ip.subnet_id, ip)))
            session.flush()
            return ip

        try:
            return await self._run(insert)
        except IntegrityError:
            raise DuplicateIPError(f"{ip.ip_address} already exists in this subnet")

    async def update_ip_address(self, ip_id: str, changes: dict) -> Optional[IPAddress]:
        """Apply field changes (name, status, notes) to an address.

        Moving an address out of the used status drops its equipment link.
        An address only becomes used through claim_ip_address.

        Raises:
            IPConflictError: If the change would mark the address as used
        """
        allowed = {k: v for k, v in changes.items() if k in ("name", "status", "notes")}
        if allowed.get("status") is None:
            allowed.pop("status", None)
        else:
            allowed["status"] = IPStatus(allowed["status"]).value
            if allowed["status"] == IPStatus.USED.value:
                raise IPConflictError("addresses are marked as used by claiming them")
            allowed["equipment_id"] = None

        def apply(session: Session) -> Optional[IPAddress]:
            row = session.get(IPAddressRow, ip_id)
            if row is None:
                return None
            for field, value in allowed.items():
                setattr(row, field, value)
            session.flush()
            return _to_ip(row)

        return await self._run(apply)

    async def delete_ip_address(self, ip_id: str) -> bool:
        def remove(session: Session) -> bool:
            return bool(session.execute(delete(IPAddressRow).where(IPAddressRow.id == ip_id)).rowcount)

        return await self._run(remove)

    async def claim_ip_address(
        self, ip_id: str, equipment_id: str, name: Optional[str] = None
    ) -> Optional[IPAddress]:
        """Assign an available address to equipment.

        The status check and the assignment are a single conditional UPDATE.

        Raises:
            IPConflictError: If the address is not currently available
        """
        values = {"status": IPStatus.USED.value, "equipment_id": equipment_id}
        if name:
            values["name"] = name

        def claim(session: Session) -> Optional[IPAddress]:
            claimed = session.execute(
                update(IPAddressRow)
                .where(IPAddressRow.id == ip_id, IPAddressRow.status == IPStatus.AVAILABLE.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            ).rowcount
            row = session.get(IPAddressRow, ip_id)
            if row is None:
                return None
            if not claimed:
                raise IPConflictError(f"{row.ip_address} is {row.status}")
            return _to_ip(row)

        return await self._run(claim)

    async def release_ip_address(self, ip_id: str) -> Optional[IPAddress]:
        """Detach an address from its equipment and make it available."""
        def release(session: Session) -> Optional[IPAddress]:
            row = session.get(IPAddressRow, ip_id)
            if row is None:
                return None
            row.status = IPStatus.AVAILABLE.value
            row.equipment_id = None
            session.flush()
            return _to_ip(row)

        return await self._run(release)


# Global instance
ipam_store = IPAMStore()
