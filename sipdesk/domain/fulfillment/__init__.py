"""Fulfillment domain - kitchen and courier state machines for every schedulable unit"""

from .router import router

__all__ = ["router"]
