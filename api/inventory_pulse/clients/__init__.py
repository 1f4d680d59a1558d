from inventory_pulse.clients.platform import PlatformClient

__all__ = ["PlatformClient"]
