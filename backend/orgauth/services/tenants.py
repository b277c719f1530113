from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from orgauth.core.config import settings
from orgauth.core.errors import NotFoundError
from orgauth.core.logging import get_logger
from orgauth.db.session import engine_options
from orgauth.models.organization import Organization
from orgauth.services.principals import SYSTEM_TENANT_ID

logger = get_logger(__name__)

DEFAULT_PLAN = "free"
DEFAULT_MODULES = ["basic"]


@dataclass(frozen=True)
class TenantInfo:
    id: str
    name: str
    db_handle: str
    status: str
    subscription_plan: str
    enabled_modules: list[str] = field(default_factory=list)

    @property
    def is_system(self) -> bool:
        return self.id == SYSTEM_TENANT_ID

    def as_dict(self) -> dict:
        return {
            "organization_id": self.id,
            "name": self.name,
            "db": self.db_handle,
            "status": self.status,
            "subscription_plan": self.subscription_plan,
            "enabled_modules": list(self.enabled_modules),
        }


SYSTEM_TENANT = TenantInfo(
    id=SYSTEM_TENANT_ID,
    name="System Administration",
    db_handle="system",
    status="active",
    subscription_plan="unlimited",
    enabled_modules=["all"],
)


def _from_row(row: Organization) -> TenantInfo:
    return TenantInfo(
        id=row.organization_id,
        name=row.name,
        db_handle=row.organization_db,
        status=row.status,
        subscription_plan=row.subscription_plan,
        enabled_modules=list(row.enabled_modules or []),
    )


def get_tenant(db: Session, tenant_id: str) -> TenantInfo | None:
    if tenant_id == SYSTEM_TENANT_ID:
        return SYSTEM_TENANT
    row = db.get(Organization, tenant_id)
    return _from_row(row) if row else None


def resolve(db: Session, tenant_id: str | None) -> TenantInfo:
    tenant = get_tenant(db, tenant_id) if tenant_id else None
    if tenant is None:
        raise NotFoundError("Organization not found")
    return tenant


def is_active(db: Session, tenant_id: str) -> bool:
    tenant = get_tenant(db, tenant_id)
    return tenant is not None and tenant.status == "active"


def new_store_handle() -> str:
    return f"{settings.TENANT_DB_PREFIX}{uuid4().hex[:16]}"


def create_tenant(db: Session, name: str, created_by: str | None) -> TenantInfo:
    """Stage a new organization row; the caller owns the transaction."""
    row = Organization(
        name=name,
        organization_db=new_store_handle(),
        status="active",
        subscription_plan=DEFAULT_PLAN,
        enabled_modules=list(DEFAULT_MODULES),
        created_by=created_by,
    )
    db.add(row)
    db.flush()
    return _from_row(row)


class TenantStoreCache:
    """Process-wide engines for tenant databases, one per store handle.

    Engines are created on first use and kept until ``dispose``; each engine
    owns its own bounded pool, and callers borrow a session per unit of work.
    """

    def __init__(self, url_template: str | None = None, **engine_overrides):
        self.url_template = url_template or settings.TENANT_DATABASE_URL_TEMPLATE
        self.engine_overrides = engine_overrides
        self._stores: dict[str, tuple[Engine, sessionmaker]] = {}
        self._lock = threading.Lock()

    def url_for(self, handle: str) -> str:
        if not handle or handle == SYSTEM_TENANT_ID:
            raise ValueError("the system tenant has no dedicated store")
        return self.url_template.format(db=handle)

    def _store(self, handle: str) -> tuple[Engine, sessionmaker]:
        # engine and session factory live in one entry
        store = self._stores.get(handle)
        if store is not None:
            return store
        with self._lock:
            store = self._stores.get(handle)
            if store is None:
                url = self.url_for(handle)
                options = engine_options(
                    url,
                    pool_size=settings.TENANT_DB_POOL_SIZE,
                    max_overflow=settings.TENANT_DB_MAX_OVERFLOW,
                )
                options.update(self.engine_overrides)
                eng = sa.create_engine(url, **options)
                store = (eng, sessionmaker(bind=eng, autoflush=False, expire_on_commit=False))
                self._stores[handle] = store
                logger.info("tenant_engine_created", handle=handle)
        return store

    def engine(self, handle: str) -> Engine:
        return self._store(handle)[0]

    @contextmanager
    def session(self, handle: str) -> Iterator[Session]:
        _, factory = self._store(handle)
        db = factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def handles(self) -> list[str]:
        with self._lock:
            return list(self._stores)

    def dispose(self) -> None:
        with self._lock:
            for eng, _ in self._stores.values():
                eng.dispose()
            self._stores.clear()


tenant_stores = TenantStoreCache()
