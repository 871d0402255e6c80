"""Itinerary search over the current feed snapshot.

Search order:
1. stops near each endpoint, widening the radius until something is found
2. direct routes shared by a boarding and an alighting stop
3. one-transfer connections (only when no direct route exists)
4. the regional corridor table (only when the feed produced nothing)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from oahu_transit.data.config import TransitConfig, get_config
from oahu_transit.data.feed_store import FeedState, FeedStore
from oahu_transit.data.geo_index import haversine_distance
from oahu_transit.errors import GeocodingError
from oahu_transit.models.gtfs import Coordinate, Stop, TransitMode
from oahu_transit.models.responses import (
    DirectionsResult,
    Itinerary,
    Leg,
    Place,
    ResolvedLocation,
)
from oahu_transit.services.directions import DirectionsChain
from oahu_transit.services.fares import PassengerType
from oahu_transit.services.geocoding import GeocoderChain
from oahu_transit.services.heuristics import HeuristicPlanner
from oahu_transit.services.itineraries import (
    build_itinerary,
    rank_itineraries,
    ride_seconds,
    transit_leg,
    walk_leg,
    walk_seconds,
)
from oahu_transit.services.realtime_service import LiveTransitFeed
from oahu_transit.services.reconciler import RealtimeReconciler

logger = logging.getLogger(__name__)

MAX_WALKING_TRANSFER_METERS = 400
MAX_TRANSFER_STOPS_PER_POINT = 10


@dataclass(frozen=True)
class TransferPoint:
    """Where the first route is left and the second boarded (possibly the same stop)."""

    alight: Stop
    board: Stop
    walk_meters: float


@dataclass(frozen=True)
class Candidate:
    """A feed connection between one boarding and one alighting stop."""

    boarding: Stop
    alighting: Stop
    route_ids: tuple[str, ...]
    transfer: TransferPoint | None = None


@dataclass
class PlanTripResult:
    origin: ResolvedLocation
    destination: ResolvedLocation
    itineraries: list[Itinerary] = field(default_factory=list)
    alternatives: list[DirectionsResult] = field(default_factory=list)
    used_heuristic: bool = False
    feed_version: str | None = None


class TripPlanner:
    """Plans itineraries against whatever FeedState is current when a request starts."""

    def __init__(
        self,
        store: FeedStore,
        geocoder: GeocoderChain | None = None,
        live_feed: LiveTransitFeed | None = None,
        directions: DirectionsChain | None = None,
        config: TransitConfig | None = None,
        heuristics: HeuristicPlanner | None = None,
        reconciler: RealtimeReconciler | None = None,
    ):
        self._store = store
        self._geocoder = geocoder
        self._live_feed = live_feed
        self._directions = directions
        self._config = config or get_config()
        self._heuristics = heuristics or HeuristicPlanner()
        self._reconciler = reconciler or RealtimeReconciler()

    async def plan_trip(
        self,
        origin: Coordinate | str,
        destination: Coordinate | str,
        departure_time: datetime | None = None,
        passenger_type: PassengerType = PassengerType.ADULT,
        has_transfer_pass: bool = False,
        include_realtime: bool = False,
        include_alternatives: bool = False,
        limit: int = 3,
    ) -> PlanTripResult:
        """Plan ranked itineraries, best first.

        An empty itinerary list is a valid answer (no coverage).

        Raises:
            GeocodingError: If a text endpoint cannot be resolved.
        """
        origin_loc, destination_loc = await asyncio.gather(
            self._resolve(origin), self._resolve(destination)
        )
        start = origin_loc.coordinate
        end = destination_loc.coordinate
        if include_realtime and departure_time is None:
            departure_time = datetime.now(UTC)

        # one state reference for the whole request
        state = self._store.state
        itineraries: list[Itinerary] = []
        if state is not None and not state.snapshot.is_empty:
            candidates = self.find_candidates(state, start, end)
            itineraries = [
                self._itinerary_from_candidate(
                    state, c, origin_loc, destination_loc,
                    passenger_type, has_transfer_pass, departure_time,
                )
                for c in candidates
            ]
            itineraries = _dedupe_by_route(rank_itineraries(itineraries))[:limit]

        used_heuristic = False
        if not itineraries:
            itineraries = rank_itineraries(
                self._heuristics.plan(
                    start,
                    end,
                    passenger_type=passenger_type,
                    has_transfer_pass=has_transfer_pass,
                    departure_time=departure_time,
                    origin_name=origin_loc.name or "Origin",
                    destination_name=destination_loc.name or "Destination",
                )
            )[:limit]
            used_heuristic = bool(itineraries)
            if used_heuristic:
                logger.info("No feed connection found, using regional corridor estimates")

        # live data and non-transit alternatives are independent, fetch together
        itineraries, alternatives = await asyncio.gather(
            self._with_realtime(itineraries, include_realtime),
            self._alternatives(start, end, include_alternatives),
        )

        return PlanTripResult(
            origin=origin_loc,
            destination=destination_loc,
            itineraries=itineraries,
            alternatives=alternatives,
            used_heuristic=used_heuristic,
            feed_version=state.snapshot.feed_version if state else None,
        )

    async def _resolve(self, location: Coordinate | str) -> ResolvedLocation:
        if isinstance(location, Coordinate):
            return ResolvedLocation(coordinate=location, resolved=True)

        text = location.strip()
        if not text:
            raise GeocodingError("Empty location")
        if self._geocoder is None:
            raise GeocodingError(f"No geocoder available to resolve {text!r}")

        results = await self._geocoder.resolve(text)
        if not results:
            raise GeocodingError(f"Could not resolve location {text!r}")
        best = results[0]
        return ResolvedLocation(
            query=text,
            name=best.name,
            coordinate=best.coordinate,
            resolved=True,
            resolved_by=best.source,
        )

    def nearby_served_stops(self, state: FeedState, point: Coordinate) -> list[tuple[Stop, float]]:
        """Nearest stops with at least one route, widening the radius until some are found."""
        limit = self._config.max_candidate_stops
        for radius in self._config.search_radii_meters:
            found = [
                (stop, distance)
                for stop, distance in state.geo_index.nearest_with_distance(
                    point.lat, point.lon, radius, limit * 4
                )
                if stop.route_ids
            ]
            if found:
                return found[:limit]
        return []

    def find_candidates(
        self, state: FeedState, origin: Coordinate, destination: Coordinate
    ) -> list[Candidate]:
        """Direct connections, or one-transfer connections when there are none."""
        boarding = self.nearby_served_stops(state, origin)
        alighting = self.nearby_served_stops(state, destination)
        if not boarding or not alighting:
            logger.debug(
                f"No served stops near {'origin' if not boarding else 'destination'}"
            )
            return []

        direct: list[Candidate] = []
        for b, _ in boarding:
            for a, _ in alighting:
                if b.stop_id == a.stop_id:
                    continue
                for route_id in sorted(set(b.route_ids) & set(a.route_ids)):
                    direct.append(Candidate(b, a, (route_id,)))
        if direct:
            return direct

        return self._find_transfer_candidates(state, boarding, alighting)

    def _find_transfer_candidates(
        self,
        state: FeedState,
        boarding: list[tuple[Stop, float]],
        alighting: list[tuple[Stop, float]],
    ) -> list[Candidate]:
        snapshot = state.snapshot
        alight_by_route: dict[str, list[Stop]] = {}
        for a, _ in alighting:
            for route_id in a.route_ids:
                alight_by_route.setdefault(route_id, []).append(a)

        best: dict[tuple[str, str], tuple[float, Candidate]] = {}
        examined = 0
        cap = self._config.max_transfer_candidates

        for b, _ in boarding:
            for first_route in b.route_ids:
                for x in snapshot.stops_for_route(first_route):
                    if x.stop_id == b.stop_id:
                        continue
                    nearby = state.geo_index.nearest_with_distance(
                        x.stop_lat, x.stop_lon,
                        MAX_WALKING_TRANSFER_METERS, MAX_TRANSFER_STOPS_PER_POINT,
                    )
                    for y, walk_meters in nearby:
                        for second_route in y.route_ids:
                            if second_route == first_route:
                                continue
                            for a in alight_by_route.get(second_route, ()):
                                if a.stop_id == y.stop_id:
                                    continue
                                examined += 1
                                candidate = Candidate(
                                    b, a, (first_route, second_route),
                                    TransferPoint(alight=x, board=y, walk_meters=walk_meters),
                                )
                                estimate = self._estimate_seconds(snapshot, candidate)
                                key = (first_route, second_route)
                                if key not in best or estimate < best[key][0]:
                                    best[key] = (estimate, candidate)
                                if examined >= cap:
                                    logger.debug(f"Transfer search capped at {cap} candidates")
                                    return [c for _, c in best.values()]
        return [c for _, c in best.values()]

    def _estimate_seconds(self, snapshot, candidate: Candidate) -> float:
        transfer = candidate.transfer
        first_mode = self._route_mode(snapshot, candidate.route_ids[0])
        second_mode = self._route_mode(snapshot, candidate.route_ids[-1])
        return (
            ride_seconds(_distance(candidate.boarding, transfer.alight), first_mode)
            + walk_seconds(transfer.walk_meters)
            + ride_seconds(_distance(transfer.board, candidate.alighting), second_mode)
        )

    @staticmethod
    def _route_mode(snapshot, route_id: str) -> TransitMode:
        route = snapshot.get_route(route_id)
        return route.mode if route else TransitMode.BUS

    def _itinerary_from_candidate(
        self,
        state: FeedState,
        candidate: Candidate,
        origin: ResolvedLocation,
        destination: ResolvedLocation,
        passenger_type: PassengerType,
        has_transfer_pass: bool,
        departure_time: datetime | None,
    ) -> Itinerary:
        snapshot = state.snapshot
        start = Place(name=origin.name or "Origin", coordinate=origin.coordinate)
        end = Place(name=destination.name or "Destination", coordinate=destination.coordinate)

        first_route = candidate.route_ids[0]
        legs: list[Leg] = [walk_leg(start, _stop_place(candidate.boarding))]
        transfer = candidate.transfer
        if transfer is None:
            legs.append(self._ride(snapshot, candidate.boarding, candidate.alighting, first_route))
        else:
            second_route = candidate.route_ids[1]
            legs.append(self._ride(snapshot, candidate.boarding, transfer.alight, first_route))
            if transfer.alight.stop_id != transfer.board.stop_id:
                legs.append(walk_leg(_stop_place(transfer.alight), _stop_place(transfer.board)))
            legs.append(self._ride(snapshot, transfer.board, candidate.alighting, second_route))
        legs.append(walk_leg(_stop_place(candidate.alighting), end))

        return build_itinerary(
            legs,
            passenger_type=passenger_type,
            has_transfer_pass=has_transfer_pass,
            departure_time=departure_time,
        )

    def _ride(self, snapshot, board: Stop, alight: Stop, route_id: str) -> Leg:
        route = snapshot.get_route(route_id)
        return transit_leg(
            _stop_place(board),
            _stop_place(alight),
            route_id=route_id,
            route_name=route.display_name if route else route_id,
            mode=route.mode if route else TransitMode.BUS,
        )

    async def _alternatives(
        self, start: Coordinate, end: Coordinate, enabled: bool
    ) -> list[DirectionsResult]:
        if not enabled or self._directions is None:
            return []
        return await self._directions.route_all_modes(start, end)

    async def _with_realtime(self, itineraries: list[Itinerary], enabled: bool) -> list[Itinerary]:
        """Reconcile every transit leg concurrently; failures leave scheduled times."""
        if not enabled or self._live_feed is None or not itineraries:
            return itineraries
        timeout = self._config.collaborator_timeout_seconds
        jobs = [
            (i, j, self._reconciler.reconcile_from_feed(leg, self._live_feed, timeout))
            for i, itinerary in enumerate(itineraries)
            for j, leg in enumerate(itinerary.legs)
            if leg.is_transit and leg.origin.stop_id is not None
        ]
        if not jobs:
            return itineraries

        results = await asyncio.gather(*(job for _, _, job in jobs))

        legs = [list(itinerary.legs) for itinerary in itineraries]
        soft_failures = [False] * len(itineraries)
        for (i, j, _), result in zip(jobs, results):
            legs[i][j] = result.leg
            soft_failures[i] = soft_failures[i] or result.soft_failure

        return [
            itinerary.model_copy(
                update={
                    "legs": legs[i],
                    "realtime_applied": any(leg.realtime for leg in legs[i]),
                    "realtime_soft_failure": soft_failures[i],
                }
            )
            for i, itinerary in enumerate(itineraries)
        ]


def _distance(a: Stop, b: Stop) -> float:
    return haversine_distance(a.stop_lat, a.stop_lon, b.stop_lat, b.stop_lon)


def _stop_place(stop: Stop) -> Place:
    return Place(name=stop.stop_name, stop_id=stop.stop_id, coordinate=stop.coordinate)


def _dedupe_by_route(itineraries: list[Itinerary]) -> list[Itinerary]:
    """Keep the best itinerary per route sequence (input must already be ranked)."""
    seen: set[tuple[str, ...]] = set()
    unique: list[Itinerary] = []
    for itinerary in itineraries:
        signature = itinerary.route_signature
        if signature in seen:
            continue
        seen.add(signature)
        unique.append(itinerary)
    return unique
