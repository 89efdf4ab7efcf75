from .core import Grouping, GroupRegistry

__all__ = ["Grouping", "GroupRegistry"]
