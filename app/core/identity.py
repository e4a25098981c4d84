from dataclasses import dataclass

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"


@dataclass(frozen=True)
class Actor:
    """Caller of an engine operation, resolved by the auth layer (never from request bodies)."""
    id: str
    role: str = CUSTOMER_ROLE

    def has_role(self, role: str) -> bool:
        return (self.role or "").lower() == role.lower()

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)
