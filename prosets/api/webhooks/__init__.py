"""Payment processor webhooks."""
