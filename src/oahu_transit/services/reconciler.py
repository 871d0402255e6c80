"""Overlay live arrival predictions onto scheduled transit legs."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from oahu_transit.models.realtime import RealtimeArrival
from oahu_transit.models.responses import Leg
from oahu_transit.services.realtime_service import LiveTransitFeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    leg: Leg
    soft_failure: bool = False

    @property
    def adjusted(self) -> bool:
        return self.leg.realtime


class RealtimeReconciler:
    """Pure matching of legs against predictions, plus a guarded fetch wrapper."""

    def reconcile(self, leg: Leg, live_arrivals: Iterable[RealtimeArrival]) -> ReconcileResult:
        """Adjust one leg using the soonest matching prediction.

        A prediction matches when it is for the leg's boarding stop and route.
        Ties on predicted time go to the lower vehicle id. When nothing
        matches the very same leg object is returned.
        """
        if not leg.is_transit or leg.route_id is None or leg.origin.stop_id is None:
            return ReconcileResult(leg)

        candidates = [
            a for a in live_arrivals
            if a.stop_id == leg.origin.stop_id and a.route_id == leg.route_id
        ]
        if not candidates:
            return ReconcileResult(leg)

        best = min(candidates, key=lambda a: (a.predicted_arrival, a.vehicle_id or ""))

        delay = best.delay_seconds
        if leg.scheduled_departure is not None:
            delay = int((best.predicted_arrival - leg.scheduled_departure).total_seconds())

        update = {
            "predicted_departure": best.predicted_arrival,
            "delay_seconds": delay,
            "vehicle_id": best.vehicle_id,
            "realtime": True,
        }
        # occupancy only when the live feed actually reports it
        if best.occupancy_status is not None:
            update["occupancy_status"] = best.occupancy_status
        return ReconcileResult(leg.model_copy(update=update))

    async def reconcile_from_feed(
        self, leg: Leg, feed: LiveTransitFeed, timeout: float
    ) -> ReconcileResult:
        """Fetch predictions for the boarding stop and reconcile.

        Any error or timeout from the feed yields the original leg flagged
        as a soft failure; the scheduled itinerary stays usable.
        """
        if not leg.is_transit or leg.origin.stop_id is None:
            return ReconcileResult(leg)
        try:
            arrivals = await asyncio.wait_for(feed.arrivals(leg.origin.stop_id), timeout)
        except TimeoutError:
            logger.info(f"Live arrivals for stop {leg.origin.stop_id} timed out after {timeout}s")
            return ReconcileResult(leg, soft_failure=True)
        except Exception as e:
            logger.warning(f"Live arrivals for stop {leg.origin.stop_id} failed: {e}")
            return ReconcileResult(leg, soft_failure=True)
        return self.reconcile(leg, arrivals)
