"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .realflow_service import RealflowRepositoryProtocol, RealflowService

__all__ = ["RealflowRepositoryProtocol", "RealflowService"]
