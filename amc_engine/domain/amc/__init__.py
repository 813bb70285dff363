"""AMC domain - Contract numbering, visit schedules, renewal and lifecycle"""

from .router import router
from .service import AMCService

__all__ = ["router", "AMCService"]
