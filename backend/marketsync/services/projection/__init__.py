from marketsync.services.projection.context import Outcome, ProjectionContext, ProjectionResult, ProjectionSummary
from marketsync.services.projection.engine import ProjectionEngine

__all__ = ["Outcome", "ProjectionContext", "ProjectionEngine", "ProjectionResult", "ProjectionSummary"]
