"""Perfume recommendation pipeline."""

from .pipeline import PerfumeRecommendationPipeline, PipelineError, PipelineState

__all__ = ["PerfumeRecommendationPipeline", "PipelineError", "PipelineState"]
