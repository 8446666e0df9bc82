"""
Services layer for plan generation business logic.
"""

from .openai_service import OpenAIService
from .plan_generation import GenerationOutcome, GenerationState, PlanGenerationService
from .plan_store import PlanStore

__all__ = [
    "GenerationOutcome",
    "GenerationState",
    "OpenAIService",
    "PlanGenerationService",
    "PlanStore",
]
