from .rule import RoutingRule

__all__ = [
    "RoutingRule",
]
