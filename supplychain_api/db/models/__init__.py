"""
ORM models for users, notifications, integration registrations, inventory
items and warehouses.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

# Re-export commonly used models for convenience and to ensure import side-effects
# register all mapped classes with SQLAlchemy metadata.

from .security import User  # noqa: F401
from .notifications import (  # noqa: F401
    Notification,
    NotificationType,
)
from .integrations import (  # noqa: F401
    INTEGRATION_SERVICES,
    BiDataset,
    UserIntegration,
    WebhookDelivery,
)
from .inventory import InventoryItem  # noqa: F401
from .warehouse import (  # noqa: F401
    Warehouse,
    WarehouseZone,
)
