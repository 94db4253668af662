"""
Article Generation Pipeline

Request/response orchestration for turning one YouTube video into three
pieces of marketing copy:
  Identity → Entitlement Gate → Video Resolver → Content Synthesizer → Usage Recorder
"""

from .orchestrator import ArticlePipeline
from .routes import account_router, pipeline_router
from .models import PipelineStage

__all__ = [
    "ArticlePipeline",
    "pipeline_router",
    "account_router",
    "PipelineStage",
]
