"""
End-to-End Demo: Business Formation Workflow

This demonstrates the complete flow:
1. Register a webhook for business.formation.* events
2. Create and start a formation workflow
3. File the entity through an in-process stand-in for Northwest
4. Approve the filing as a user action
5. Complete the wait step with a business.formation.completed event
6. Notify the accessibility platform and sync the business record

Uses in-process services and a printing webhook sender (no network needed).
"""
import asyncio
import json
import logging
from typing import Any, Dict, Mapping

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from core.application.interfaces import IWebhookSender
from core.infrastructure.adapters.services import InternalServiceAdapter
from core.settings import load_app_settings
from orchestration import ServiceRegistry, create_engine
from pinkflow_sdk.logging import configure_logging


class PrintingWebhookSender(IWebhookSender):
    """Prints webhook deliveries instead of posting them."""

    async def send(self, url: str, body: bytes, headers: Mapping[str, str], timeout: float) -> int:
        payload = json.loads(body)
        print(f"   📬 {url} <- {payload['eventType']} (signed: {'X-PinkFlow-Signature' in headers})")
        return 200


async def _file_entity(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "filingId": f"NW-{parameters.get('state', 'WY')}-0001",
        "entityName": parameters.get("entityName"),
        "status": "submitted",
    }


def build_registry() -> ServiceRegistry:
    registry = ServiceRegistry()
    for name in ("internal", "business", "v4deaf"):
        registry.register(name, InternalServiceAdapter(name))
    registry.register(
        "northwest",
        InternalServiceAdapter("northwest", handlers={"file": _file_entity}),
        display_name="Northwest Registered Agent (demo)",
        integration_type="business-formation",
    )
    return registry


async def wait_for(engine, workflow_id: str, predicate, timeout: float = 5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        workflow = await engine.workflows.get(workflow_id)
        if predicate(workflow) or loop.time() >= deadline:
            return workflow
        await asyncio.sleep(0.05)


async def demo_formation():
    """Demo: LLC formation from filing to accessibility hand-off."""

    print("\n" + "=" * 80)
    print("DEMO: Business Formation Workflow")
    print("=" * 80 + "\n")

    # =========================================================================
    # SETUP
    # =========================================================================
    settings = load_app_settings()
    settings.sync.auto_sync = False
    configure_logging("WARNING")

    engine = create_engine(
        settings=settings,
        registry=build_registry(),
        webhook_sender=PrintingWebhookSender(),
    )
    await engine.start()
    print(f"✅ Engine ready with services: {', '.join(engine.registry.names)}\n")

    await engine.webhooks.register(
        "https://hooks.example.com/formation", ["business.formation.*"], secret="demo-secret"
    )

    # =========================================================================
    # CREATE AND START WORKFLOW
    # =========================================================================
    workflow = await engine.workflows.create(
        "LLC formation",
        [
            {"name": "file", "service": "northwest", "action": "file",
             "parameters": {"state": "WY", "entityName": "Pink Widgets LLC"}},
            {"name": "approve filing", "service": "internal", "action": "noop",
             "isUserActionRequired": True, "userActionDescription": "Review the filing"},
            {"name": "await state approval", "service": "internal", "action": "noop",
             "awaitEvent": "business.formation.completed"},
            {"name": "notify accessibility", "service": "v4deaf", "action": "echo"},
        ],
        owner="demo-user",
    )
    await engine.workflows.start(workflow.id)
    print(f"🚀 Started workflow {workflow.id}")

    workflow = await wait_for(engine, workflow.id, lambda wf: wf.steps[1].awaiting_input)
    print(f"   Filing result: {workflow.steps[0].result}")

    # =========================================================================
    # USER ACTION + EXTERNAL EVENT
    # =========================================================================
    await engine.workflows.advance(workflow.id, "step-2", {"approvedBy": "demo-user"})
    print("✅ Filing approved")

    await engine.events.ingest(
        "business.formation.completed",
        "northwest",
        {"filingId": "NW-WY-0001", "entityId": "llc-0001"},
        idempotency_key="NW-WY-0001-completed",
    )
    workflow = await wait_for(engine, workflow.id, lambda wf: wf.status.is_terminal)

    print("\n📊 RESULTS:")
    print(f"   Status: {workflow.status.value}")
    for step in workflow.steps:
        print(f"   - {step.name}: {step.status.value}")

    # =========================================================================
    # SYNC
    # =========================================================================
    operation = await engine.sync.sync("business-vr", "llc-0001", "vr-0001", owner="demo-user")
    for _ in range(100):
        operation = await engine.sync.get(operation.id)
        if not operation.status.is_running:
            break
        await asyncio.sleep(0.05)
    print(f"\n🔁 Sync {operation.id}: {operation.status.value} -> {operation.synced_data}")

    await engine.shutdown()

    print("\n" + "=" * 80)
    print("✅ Formation demo completed!")
    print("=" * 80 + "\n")
    return workflow


if __name__ == "__main__":
    asyncio.run(demo_formation())
