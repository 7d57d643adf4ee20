"""
Explicit construction of the Crafternia runtime: limits, backends, agent and dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import replicate

from crafternia.a2a.orchestrator import AgentOrchestrator
from crafternia.agents.category_agent import CategoryAgent
from crafternia.agents.profiles import CategoryRegistry, default_registry
from crafternia.ai_generation.replicate_service import ReplicateImageGenerator, SeedFactory, random_seed
from crafternia.ai_generation.structured_prompt_service import StructuredPromptService
from crafternia.common.llm import CompletionCallable
from crafternia.common.settings import CrafterniaSettings
from crafternia.pipeline.pipeline import CraftBreakdownPipeline
from crafternia.resilience.rate_limiter import AdmissionLimits, Clock
from crafternia.resilience.retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)

AGENT_NAME = "CategoryAgent"
DEFAULT_CATEGORY = "papercraft"


@dataclass
class CrafterniaRuntime:
    settings: CrafterniaSettings
    limits: AdmissionLimits
    registry: CategoryRegistry
    agent: CategoryAgent
    orchestrator: AgentOrchestrator
    pipeline: CraftBreakdownPipeline


def build_runtime(
    settings: CrafterniaSettings | None = None,
    *,
    completion_fn: CompletionCallable | None = None,
    replicate_client: replicate.Client | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.monotonic,
    seed_factory: SeedFactory = random_seed,
    registry: CategoryRegistry | None = None,
    default_category: str = DEFAULT_CATEGORY,
) -> CrafterniaRuntime:
    """
    Build every shared object once and wire them together.

    A single :class:`CategoryAgent` serves all categories in ``registry``; requests pick
    their category through the ``category`` payload field.
    """
    settings = settings or CrafterniaSettings.from_env()
    registry = registry or default_registry()

    limits = AdmissionLimits.build(
        image_limit=settings.image_limit,
        dissection_limit=settings.dissection_limit,
        window_seconds=settings.limit_window,
        clock=clock,
    )
    retry_policy = RetryPolicy(
        retries=settings.retries,
        initial_delay=settings.retry_delay,
        sleep=sleep,
    )

    text_service = StructuredPromptService(
        models=settings.text_models,
        api_key=settings.text_api_key,
        completion_fn=completion_fn,
        retry_policy=retry_policy,
    )
    image_service = ReplicateImageGenerator(
        api_token=settings.replicate_api_token,
        models=settings.image_models,
        edit_models=settings.edit_models,
        client=replicate_client,
        retry_policy=retry_policy,
        seed_factory=seed_factory,
    )

    agent = CategoryAgent(
        registry.get(default_category),
        text_service=text_service,
        image_service=image_service,
        limits=limits,
        registry=registry,
        name=AGENT_NAME,
        description=f"Craft agent serving {len(registry)} categories.",
    )

    orchestrator = AgentOrchestrator()
    orchestrator.register_agent(agent)
    logger.info(
        "Crafternia runtime ready: %d categories, text models %s, image models %s.",
        len(registry),
        ", ".join(settings.text_models),
        ", ".join(settings.image_models),
    )

    return CrafterniaRuntime(
        settings=settings,
        limits=limits,
        registry=registry,
        agent=agent,
        orchestrator=orchestrator,
        pipeline=CraftBreakdownPipeline(orchestrator, registry=registry),
    )
