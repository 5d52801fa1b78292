"""Pipeline modules: orchestration layer for the publication pipeline.

  materializer: generated article to stored draft, topic lifecycle
  scheduler: write flow, publish flow and the tick that runs both
"""

from inkpress.pipeline.materializer import DraftMaterializer, PublishAction
from inkpress.pipeline.scheduler import (
    ErrorKind,
    FlowResult,
    Outcome,
    SchedulerOrchestrator,
    TickResult,
)

__all__ = [
    "DraftMaterializer",
    "ErrorKind",
    "FlowResult",
    "Outcome",
    "PublishAction",
    "SchedulerOrchestrator",
    "TickResult",
]
