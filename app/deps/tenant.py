from contextvars import ContextVar
from typing import Optional

from fastapi import Request, HTTPException

# Tenant of the request or of the prospect currently being processed; read by
# the logging processor so every record carries it.
tenant_ctx_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


def get_current_tenant() -> Optional[str]:
    """Return the tenant id from the ContextVar.

    Returns None if no tenant is set.
    """
    return tenant_ctx_var.get(None)


async def tenant_dependency(request: Request) -> str:
    """FastAPI dependency that resolves the current tenant.

    Precedence:
      1. X-Tenant-ID header
      2. tenant ContextVar
      3. fallback: 'global' (for global admin access)
    """
    header_tenant = request.headers.get("x-tenant-id")
    if header_tenant is not None and not header_tenant.strip():
        raise HTTPException(status_code=400, detail="Empty X-Tenant-ID header")

    tenant = (header_tenant or get_current_tenant() or "global").strip()[:64]
    tenant_ctx_var.set(tenant)
    return tenant
