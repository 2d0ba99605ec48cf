"""
Service layer: distribution, pipeline, storage and prediction.

CHANGELOG:
- 2026-10-08: Export PredictionClient
- 2026-10-05: Initial creation
"""

from powerpulse.services.distribution import DistributionHub
from powerpulse.services.pipeline import PipelineStats, StreamConsumer, TelemetryPipeline
from powerpulse.services.prediction import PredictionClient
from powerpulse.services.storage import SampleStore

__all__ = [
    "DistributionHub",
    "PipelineStats",
    "PredictionClient",
    "SampleStore",
    "StreamConsumer",
    "TelemetryPipeline",
]
