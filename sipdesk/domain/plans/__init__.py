"""FreshPlan domain - plan sequencing, checkout and day rescheduling"""

from .router import router

__all__ = ["router"]
