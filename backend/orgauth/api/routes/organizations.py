import sqlalchemy as sa
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgauth.api.deps import get_tenant_db, require_active_organization
from orgauth.schemas.auth import Envelope
from orgauth.services.tenants import TenantInfo

router = APIRouter()


@router.get("/{organization_id}", response_model=Envelope)
def organization_detail(tenant: TenantInfo = Depends(require_active_organization)):
    return Envelope(success=True, data=tenant.as_dict())


@router.get("/{organization_id}/store/health", response_model=Envelope)
def organization_store_health(tenant_db: Session = Depends(get_tenant_db)):
    tenant_db.execute(sa.text("SELECT 1")).scalar_one()
    return Envelope(success=True, message="Organization store reachable")
