"""Request-handling entry points returning response envelopes."""

from .costs import ApiResponse, CostService

__all__ = ["ApiResponse", "CostService"]
