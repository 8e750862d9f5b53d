"""Supply-chain dashboard backend: integration webhooks and per-user notifications."""
