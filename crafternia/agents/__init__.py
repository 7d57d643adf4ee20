"""
Category agent, its prompt profiles and the dissection model.
"""

from .category_agent import CategoryAgent, build_capabilities, describe_profile
from .dissection import DISSECTION_SCHEMA, DissectionResult, DissectionStep
from .profiles import CategoryPromptProfile, CategoryRegistry, default_registry
from .tasks import CategoryTask, parse_task

__all__ = [
    "CategoryAgent",
    "CategoryPromptProfile",
    "CategoryRegistry",
    "CategoryTask",
    "DISSECTION_SCHEMA",
    "DissectionResult",
    "DissectionStep",
    "build_capabilities",
    "default_registry",
    "describe_profile",
    "parse_task",
]
