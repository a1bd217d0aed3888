from .link_service import LinkDataService
from .visit_buffer import PendingBatch, VisitCommitBuffer

__all__ = ["LinkDataService", "PendingBatch", "VisitCommitBuffer"]
