"""
API route modules.

This package contains subrouters for:
- Notifications: list, unread count, mark read, delete, admin creation
- Integrations: per-user integration configuration
- Webhooks: Shopify, SAP, IoT and Power BI receivers
- Realtime: the /ws/notifications WebSocket (mounted outside /api/v1)

Routers are included from supplychain_api.api.main (HTTP routers under the /api/v1 prefix).
"""
