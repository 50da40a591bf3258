"""Services wrapping the host: processes, desktop session, notifications, power events."""
