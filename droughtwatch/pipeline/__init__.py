from droughtwatch.pipeline.cancellation import (  # noqa: F401
    ActiveRunTable,
    CancellationToken,
    PipelineRun,
    PipelineState,
)
from droughtwatch.pipeline.orchestrator import PipelineOrchestrator  # noqa: F401
