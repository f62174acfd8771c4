"""Analysis run orchestration.

Modules:
- pipeline: batch classification, per-mode normalization, run results
"""

from .pipeline import (
    AnalysisResult,
    AnalysisRun,
    run_full_pipeline,
)
