"""
Trial VPN server pool.

A server is handed out while current_users < capacity. The capacity check and
the increment happen in one conditional UPDATE, so two requests can never both
take the last slot. Slots go back to the pool through release().
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import Settings
from app.core.errors import CapacityError, NotFoundError
from app.models.trial_server import TrialAllocation, TrialServer
from app.services import events
from app.services.events import EventObserver, LoggingObserver

_pool_lock = threading.Lock()


@dataclass(frozen=True)
class AllocatedServer:
    server_id: int
    ip: str
    username: str
    password: str
    location: Optional[str]
    tags: List[str]
    expires: datetime

    def as_dict(self) -> dict:
        return {
            "ip": self.ip,
            "username": self.username,
            "password": self.password,
            "location": self.location,
            "tags": list(self.tags),
            "expires": self.expires,
        }


class ServerPool:
    def __init__(self, db: Session, settings: Settings, observer: EventObserver | None = None):
        self.db = db
        self.settings = settings
        self.observer = observer or LoggingObserver()

    def expires_at(self, server: TrialServer) -> datetime:
        return server.created_at + timedelta(hours=self.settings.trial_server_ttl_hours)

    def _to_allocated(self, server: TrialServer) -> AllocatedServer:
        return AllocatedServer(
            server_id=server.id,
            ip=server.ip,
            username=server.username,
            password=server.password,
            location=server.location,
            tags=list(server.tags or []),
            expires=self.expires_at(server),
        )

    def add_server(
        self,
        ip: str,
        username: str,
        password: str,
        location: str | None = None,
        tags: List[str] | None = None,
        capacity: int = 10,
        created_at: datetime | None = None,
    ) -> TrialServer:
        server = TrialServer(
            ip=ip,
            username=username,
            password=password,
            location=location,
            tags=list(tags or []),
            capacity=capacity,
            current_users=0,
            created_at=created_at or utcnow(),
        )
        self.db.add(server)
        self.db.commit()
        self.db.refresh(server)
        return server

    def list_servers(self) -> List[TrialServer]:
        return self.db.query(TrialServer).order_by(TrialServer.id).all()

    def allocate(self, device_id: str | None = None, now: datetime | None = None) -> AllocatedServer:
        """Hand out the first live server with a free slot. Raises CapacityError when the pool is full."""
        now = now or utcnow()
        with _pool_lock:
            if device_id:
                existing = self._active_allocation(device_id)
                if existing is not None:
                    server = self.db.get(TrialServer, existing.server_id)
                    if server is not None and self.expires_at(server) > now:
                        return self._to_allocated(server)
                    # The server it held is gone or expired; return the slot and pick again
                    self._release_allocation(existing, now)
                    self.db.commit()

            cutoff = now - timedelta(hours=self.settings.trial_server_ttl_hours)
            candidates = (
                self.db.query(TrialServer.id)
                .filter(
                    TrialServer.current_users < TrialServer.capacity,
                    TrialServer.created_at > cutoff,
                )
                .order_by(TrialServer.id)
                .all()
            )
            for (server_id,) in candidates:
                result = self.db.execute(
                    update(TrialServer)
                    .where(
                        TrialServer.id == server_id,
                        TrialServer.current_users < TrialServer.capacity,
                    )
                    .values(current_users=TrialServer.current_users + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    # Someone else took the last slot between the read and the update
                    continue
                if device_id:
                    self._record_allocation(device_id, server_id, now)
                self.db.commit()
                server = self.db.get(TrialServer, server_id)
                self.db.refresh(server)
                self.observer.emit(
                    events.ALLOCATION_SUCCEEDED,
                    server_id=server_id, device_id=device_id,
                    current_users=server.current_users, capacity=server.capacity,
                )
                return self._to_allocated(server)

        self.observer.emit(events.ALLOCATION_EXHAUSTED, device_id=device_id)
        raise CapacityError("No trial servers available. Please try again later.")

    def release(self, device_id: str, now: datetime | None = None) -> bool:
        """Return the slot held by a device. False when it holds none."""
        with _pool_lock:
            allocation = self._active_allocation(device_id)
            if allocation is None:
                return False
            self._release_allocation(allocation, now or utcnow())
            self.db.commit()
        return True

    def release_server(self, server_id: int) -> TrialServer:
        """Give back one slot on a server without a tracked device (admin cleanup)."""
        with _pool_lock:
            server = self.db.get(TrialServer, server_id)
            if server is None:
                raise NotFoundError("Server not found.")
            self._decrement(server_id)
            self.db.commit()
            self.db.refresh(server)
        self.observer.emit(events.ALLOCATION_RELEASED, server_id=server_id, current_users=server.current_users)
        return server

    def _active_allocation(self, device_id: str) -> Optional[TrialAllocation]:
        return (
            self.db.query(TrialAllocation)
            .filter(TrialAllocation.device_id == device_id, TrialAllocation.released_at.is_(None))
            .first()
        )

    def _record_allocation(self, device_id: str, server_id: int, now: datetime) -> None:
        allocation = (
            self.db.query(TrialAllocation).filter(TrialAllocation.device_id == device_id).first()
        )
        if allocation is None:
            self.db.add(TrialAllocation(device_id=device_id, server_id=server_id, allocated_at=now))
        else:
            allocation.server_id = server_id
            allocation.allocated_at = now
            allocation.released_at = None
        self.db.flush()

    def _release_allocation(self, allocation: TrialAllocation, now: datetime) -> None:
        allocation.released_at = now
        self._decrement(allocation.server_id)
        self.observer.emit(
            events.ALLOCATION_RELEASED, server_id=allocation.server_id, device_id=allocation.device_id
        )

    def _decrement(self, server_id: int) -> None:
        self.db.execute(
            update(TrialServer)
            .where(TrialServer.id == server_id, TrialServer.current_users > 0)
            .values(current_users=TrialServer.current_users - 1)
            .execution_options(synchronize_session=False)
        )
