"""
Pipeline Analytics Module (``commerce_modules.analytics``).

Read-only funnel, conversion-rate, cycle-time, bottleneck and supplier
savings reporting over persisted commercial documents.
"""

from commerce_modules.analytics.service import (
    BottleneckReport,
    PipelineAnalyticsEngine,
    PipelineStats,
    ReportingWindow,
)

__all__ = [
    "BottleneckReport",
    "PipelineAnalyticsEngine",
    "PipelineStats",
    "ReportingWindow",
]
