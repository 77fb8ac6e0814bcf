from . import cron, dev, health, prometheus

__all__ = ["cron", "dev", "health", "prometheus"]
