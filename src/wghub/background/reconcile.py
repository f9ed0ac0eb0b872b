"""
Reconciliation Background Tasks.

startup_reconcile: once, after the interfaces had time to settle, bring
every network up and reconcile it.
periodic_reconcile: repeat the per-network passes forever.

Each network's pass runs in a worker thread, bounded by an optional
deadline, so a hung tool on one interface never delays the others.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from wghub.exceptions import WgHubError
from wghub.models.requests import ReconcileReport
from wghub.services.key_sync import repair_all_hub_keys
from wghub.services.networks import bring_up_networks
from wghub.services.reconciler import PeerReconciler
from wghub.utils.logger import get_logger

if TYPE_CHECKING:
    from wghub.context import HubContext

logger = get_logger(__name__)


# =============================================================================
# Per-Network Pass
# =============================================================================


async def run_network_pass(ctx: HubContext, network_id: str) -> ReconcileReport:
    """Reconcile one network in a worker thread, under the configured deadline."""
    reconciler = PeerReconciler(ctx)
    timeout = ctx.config.NETWORK_PASS_TIMEOUT_SECONDS or None

    try:
        return await asyncio.wait_for(
            asyncio.to_thread(reconciler.reconcile_network, network_id),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error(f"Reconciliation of network {network_id} timed out ({timeout}s)")
        return ReconcileReport(network_id=network_id, error="timed out")
    except WgHubError as e:
        logger.error(f"Reconciliation of network {network_id} failed: {e}")
        return ReconcileReport(network_id=network_id, error=str(e))


async def reconcile_all_networks(ctx: HubContext) -> list[ReconcileReport]:
    """Run every network's pass concurrently."""
    networks = await asyncio.to_thread(ctx.store.list_networks)
    network_ids = [n.id for n in networks if n.interface_name]
    if not network_ids:
        return []
    return list(
        await asyncio.gather(*(run_network_pass(ctx, nid) for nid in network_ids))
    )


# =============================================================================
# Background Tasks
# =============================================================================


async def startup_reconcile(ctx: HubContext) -> list[ReconcileReport]:
    """
    Bring networks up and reconcile them once, after the settle delay.

    Errors are logged; startup of the caller never depends on this task.
    """
    await asyncio.sleep(ctx.config.STARTUP_SETTLE_SECONDS)
    logger.info("Running startup reconciliation")

    try:
        await asyncio.to_thread(bring_up_networks, ctx)
        repaired = await asyncio.to_thread(repair_all_hub_keys, ctx)
        if repaired:
            logger.warning(f"Repaired hub keys of {repaired} network(s)")
        reports = await reconcile_all_networks(ctx)
    except Exception as e:
        logger.error(f"Startup reconciliation failed: {e}")
        return []

    failed = sum(1 for r in reports if r.error)
    logger.info(
        f"Startup reconciliation done: {len(reports)} network(s), {failed} failed"
    )
    return reports


async def periodic_reconcile(ctx: HubContext) -> None:
    """Reconcile every network each RECONCILE_INTERVAL_SECONDS."""
    interval = ctx.config.RECONCILE_INTERVAL_SECONDS
    if interval <= 0:
        logger.info("Periodic reconciliation disabled")
        return

    while True:
        await asyncio.sleep(interval)

        try:
            reports = await reconcile_all_networks(ctx)
            added = sum(r.pushed.added for r in reports)
            imported = sum(r.imported.imported for r in reports)
            if added or imported:
                logger.info(f"Periodic pass: added={added} imported={imported}")
        except Exception as e:
            logger.error(f"Error in periodic reconciliation: {e}")


def start_background_tasks(ctx: HubContext) -> list[asyncio.Task]:
    """Schedule the startup pass and the periodic loop on the running loop."""
    return [
        asyncio.create_task(startup_reconcile(ctx), name="startup-reconcile"),
        asyncio.create_task(periodic_reconcile(ctx), name="periodic-reconcile"),
    ]
