"""Resource lifecycle management for target and scanner services."""

from .manager import LifecycleManager

__all__ = ["LifecycleManager"]
