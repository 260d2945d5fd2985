"""ServiceWatch - uptime monitoring for HTTP, TCP and UDP services."""
