from ascendant.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
