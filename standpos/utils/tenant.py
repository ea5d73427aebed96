# standpos/utils/tenant.py
from standpos.utils.settings import SyncConfig
from standpos.utils.logging import get_logger

logger = get_logger(__name__)


def resolve_tenant_key(
    config: SyncConfig,
    phone: str | None = None,
    business_id: str | None = None,
) -> str:
    """
    Tenant key comes from the hosting page (query string), it is trusted as-is.
    Scope decides which parameter is used; a missing one falls back to the default.
    """
    if config.tenant_scope == "phone":
        value = (phone or "").strip()
        if not value:
            logger.warning("No phone in request, using fallback tenant")
            return config.default_phone
        return value

    value = (business_id or "").strip()
    if not value:
        logger.warning("No businessId in request, using fallback tenant")
        return config.default_business_id
    return value
