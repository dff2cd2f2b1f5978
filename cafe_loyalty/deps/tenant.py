from fastapi import Header, HTTPException, Query


def get_active_tenant(
    tenant_query: str | None = Query(default=None, alias="tenant"),
    x_tenant: str | None = Header(default=None, alias="X-Tenant"),
) -> str:
    active = x_tenant or tenant_query
    if not active:
        raise HTTPException(
            status_code=400,
            detail="Missing tenant context. Provide X-Tenant header or tenant query param.",
        )
    return active
