"""Engine - wires registry, executor, state machine, queue, sync and webhooks over one store."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from core.application.interfaces import IIdempotencyIndex, IWebhookSender
from core.domain.repositories.record_store import RecordStore
from core.infrastructure.adapters.persistence.memory_record_store import InMemoryRecordStore
from core.infrastructure.adapters.services import HttpServiceAdapter, InternalServiceAdapter
from core.infrastructure.adapters.webhooks import AiohttpWebhookSender
from core.infrastructure.bus.idempotency import InMemoryIdempotencyIndex, RedisIdempotencyIndex
from core.settings import AppSettings, load_app_settings
from core.settings.modules.service_settings import ServiceSettings
from pinkflow_sdk.logging import get_logger

from .bus import InMemoryEventBus
from .executor import StepExecutor
from .ingestion import EventIngestionQueue
from .registry import ServiceRegistry
from .state_machine import WorkflowStateMachine
from .sync import SyncCoordinator, routes_from_mapping
from .tasks import TaskSupervisor
from .webhooks import WebhookDispatcher
from .workflow import RetryPolicy

# name -> (display name, integration type)
INTEGRATIONS: dict[str, tuple[str, str]] = {
    "internal": ("PinkFlow Internal", "internal"),
    "business": ("Business Magician", "business-formation"),
    "v4deaf": ("VR4Deaf", "accessibility"),
    "northwest": ("Northwest Registered Agent", "business-formation"),
    "legalshield": ("LegalShield", "legal-services"),
    "mux": ("Mux Video", "video-processing"),
    "pinksync": ("PinkSync Intelligence", "accessibility"),
    "notion": ("Notion", "documentation"),
    "yeoman": ("Yeoman", "business-formation"),
}

IN_PROCESS_SERVICES = ("internal", "business", "v4deaf")


def build_default_registry(services: ServiceSettings) -> ServiceRegistry:
    """In-process adapters for platform modules, HTTP adapters for configured endpoints."""
    registry = ServiceRegistry()
    for name in IN_PROCESS_SERVICES:
        display_name, integration_type = INTEGRATIONS[name]
        registry.register(
            name,
            InternalServiceAdapter(name),
            display_name=display_name,
            integration_type=integration_type,
        )
    for name, base_url in services.endpoints().items():
        display_name, integration_type = INTEGRATIONS.get(name, (name, "external"))
        registry.register(
            name,
            HttpServiceAdapter(
                name,
                base_url,
                api_key=services.api_key,
                timeout_seconds=services.timeout_seconds,
            ),
            display_name=display_name,
            integration_type=integration_type,
        )
    return registry


@dataclass
class Engine:
    """Every engine component plus the background loops' lifecycle."""

    settings: AppSettings
    store: RecordStore
    bus: InMemoryEventBus
    tasks: TaskSupervisor
    registry: ServiceRegistry
    idempotency: IIdempotencyIndex
    executor: StepExecutor
    workflows: WorkflowStateMachine
    webhooks: WebhookDispatcher
    events: EventIngestionQueue
    sync: SyncCoordinator
    _loops: list[asyncio.Task[Any]] = field(default_factory=list)

    async def start(self) -> None:
        """Connect the idempotency index and start the periodic loops."""
        logger = get_logger("orchestration.engine")
        await self.idempotency.connect()

        if self.settings.events.enabled:
            self._loops.append(self.tasks.spawn(self.events.run(), name="loop:events"))

        sync_settings = self.settings.sync
        if sync_settings.auto_sync and sync_settings.scheduled_jobs:
            self._loops.append(
                self.tasks.spawn(
                    self.sync.run_schedule(
                        sync_settings.scheduled_jobs, sync_settings.sync_interval_ms / 1000
                    ),
                    name="loop:sync",
                )
            )
        logger.info(
            "engine_started",
            services=self.registry.names,
            loops=[task.get_name() for task in self._loops],
        )

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop loops, give in-flight work ``timeout`` seconds, then cancel the rest."""
        logger = get_logger("orchestration.engine")
        for task in self._loops:
            task.cancel()
        self._loops.clear()

        drained = await self.tasks.drain(timeout)
        if not drained:
            logger.warning("engine_drain_timeout", pending=self.tasks.pending)
        await self.tasks.shutdown()
        await self.idempotency.disconnect()
        logger.info("engine_stopped")


def create_engine(
    settings: AppSettings | None = None,
    store: RecordStore | None = None,
    registry: ServiceRegistry | None = None,
    idempotency: IIdempotencyIndex | None = None,
    webhook_sender: IWebhookSender | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Engine:
    """Build an engine.

    Args:
        settings: Application settings (loaded from the environment if omitted)
        store: Record store (in-memory if omitted)
        registry: Service registry (default adapters if omitted)
        idempotency: Idempotency index (Redis when configured, else in-memory)
        webhook_sender: Webhook transport (aiohttp if omitted)
        sleep: Awaitable used for backoff and user-action waits

    Returns:
        Engine with every component wired
    """
    settings = settings or load_app_settings()
    store = store if store is not None else InMemoryRecordStore()
    registry = registry if registry is not None else build_default_registry(settings.services)

    if idempotency is None:
        if settings.events.redis_url:
            idempotency = RedisIdempotencyIndex(
                redis_url=settings.events.redis_url,
                retention_seconds=settings.events.dedup_retention_seconds,
            )
        else:
            idempotency = InMemoryIdempotencyIndex(
                retention_seconds=settings.events.dedup_retention_seconds
            )

    bus = InMemoryEventBus()
    tasks = TaskSupervisor()

    executor_settings = settings.executor
    executor = StepExecutor(
        registry,
        timeout_seconds=executor_settings.timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=executor_settings.max_attempts,
            backoff_seconds=executor_settings.backoff_seconds,
            backoff_multiplier=executor_settings.backoff_multiplier,
            max_backoff_seconds=executor_settings.max_backoff_seconds,
        ),
        sleep=sleep,
    )
    workflows = WorkflowStateMachine(
        store,
        executor,
        event_bus=bus,
        tasks=tasks,
        user_action_timeout_seconds=executor_settings.user_action_timeout_seconds,
        sleep=sleep,
    )

    webhook_settings = settings.webhooks
    webhooks = WebhookDispatcher(
        store,
        webhook_sender or AiohttpWebhookSender(),
        retry_policy=RetryPolicy(
            max_attempts=webhook_settings.max_attempts,
            backoff_seconds=webhook_settings.backoff_seconds,
            backoff_multiplier=webhook_settings.backoff_multiplier,
            max_backoff_seconds=webhook_settings.max_backoff_seconds,
        ),
        timeout_seconds=webhook_settings.timeout_seconds,
        sleep=sleep,
    )

    events = EventIngestionQueue(
        store,
        workflows,
        webhooks,
        idempotency,
        tasks=tasks,
        batch_size=settings.events.batch_size,
        processing_interval_seconds=settings.events.processing_interval_ms / 1000,
        dispatch_on_ingest=settings.events.enabled,
    )
    sync = SyncCoordinator(store, workflows, routes_from_mapping(settings.sync.routes))

    sync.attach(bus)
    events.attach(bus)

    return Engine(
        settings=settings,
        store=store,
        bus=bus,
        tasks=tasks,
        registry=registry,
        idempotency=idempotency,
        executor=executor,
        workflows=workflows,
        webhooks=webhooks,
        events=events,
        sync=sync,
    )
