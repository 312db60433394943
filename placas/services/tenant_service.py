"""
services/tenant_service.py
--------------------------
Business logic for tenant (empresa) management.

Service layer is responsible for:
  - Enforcing business rules (unique tax id, admin-only key rotation)
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

from placas.core.exceptions import Conflict
from placas.core.logging import get_logger
from placas.core.security import (
    GeneratedApiKey,
    TenantContext,
    generate_api_key,
    hash_password,
    split_api_key,
    verify_password,
)
from placas.db.gateway import StoreGateway
from placas.models.tenant import Tenant
from placas.models.user import User, UserRole
from placas.schemas.tenant import TenantRegister

logger = get_logger(__name__)


class TenantService:

    @staticmethod
    async def register(gateway: StoreGateway, data: TenantRegister) -> tuple[Tenant, User]:
        """
        Create a tenant together with its first (admin) user.
        Raises Conflict if the tax id, email or username is already taken;
        in that case nothing is persisted.
        """
        tenant = Tenant(name=data.company_name, tax_id=data.tax_id)
        admin = User(
            username=data.username.lower(),
            email=data.email.lower(),
            hashed_password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=UserRole.admin.value,
        )
        try:
            return await gateway.create_tenant_with_admin(tenant, admin)
        except Conflict as exc:
            logger.warning("Tenant registration rejected", tax_id=data.tax_id, error=str(exc))
            raise Conflict(
                "Tax id, email or username is already registered"
            ) from exc

    @staticmethod
    async def rotate_api_key(
        gateway: StoreGateway, admin: User, password: str
    ) -> GeneratedApiKey:
        """
        Replace the tenant's API key after re-checking the admin's password.
        Raises ValueError on a wrong password. The full key is returned once
        and never stored.
        """
        if not verify_password(password, admin.hashed_password):
            logger.warning("API key rotation refused: bad password", user_id=admin.id)
            raise ValueError("Incorrect password")

        tenant = await gateway.get_tenant(admin.tenant_id)
        key = generate_api_key(tenant.name)
        await gateway.update_tenant_api_key(tenant.id, key.prefix, key.secret_hash)
        logger.info(
            "API key rotated",
            tenant_id=tenant.id,
            prefix=key.prefix,
            user_id=admin.id,
        )
        return key

    @staticmethod
    async def validate_api_key(gateway: StoreGateway, api_key: str) -> TenantContext | None:
        """Resolve '<prefix>_<secret>' to the owning tenant, or None."""
        parts = split_api_key(api_key)
        if parts is None:
            logger.warning("API key rejected: malformed")
            return None
        prefix, secret = parts

        tenant = await gateway.find_tenant_by_key_prefix(prefix, include=("api_key_hash",))
        if tenant is None or not tenant.api_key_hash:
            logger.warning("API key rejected: unknown prefix", prefix=prefix)
            return None
        if not verify_password(secret, tenant.api_key_hash):
            logger.warning("API key rejected: secret mismatch", prefix=prefix)
            return None

        return TenantContext(tenant_id=tenant.id, tenant_name=tenant.name)
