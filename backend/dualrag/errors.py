"""
Error types for the dual-index pipeline.

Every error raised on purpose by dualrag derives from DualRAGError so callers
can catch the family in one place.
"""

from typing import Optional


class DualRAGError(Exception):
    """Base class for all dualrag errors"""
    pass


class ValidationError(DualRAGError, ValueError):
    """Missing or malformed input, rejected before any store write"""
    pass


class DependencyError(DualRAGError):
    """An embedding, extraction, store or GitHub call failed"""

    def __init__(self, service: str, message: str, cause: Optional[BaseException] = None):
        self.service = service
        self.cause = cause
        super().__init__(f"{service}: {message}")


class SourceNotFoundError(DualRAGError):
    """Source is absent or not owned by the caller"""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source not found: {source_id}")


class InvalidTransitionError(DualRAGError):
    """Source status change not allowed by the state machine"""

    def __init__(self, source_id: str, current: str, target: str):
        self.source_id = source_id
        self.current = current
        self.target = target
        super().__init__(
            f"Source {source_id} cannot move from '{current}' to '{target}'"
        )


class QueueFullError(DualRAGError):
    """Graph build pool cannot accept another job"""
    pass
