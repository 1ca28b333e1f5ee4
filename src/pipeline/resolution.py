import time
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from src.geocoding.resolver import GeocodeResolver
from src.models.shelter import Coordinate, Entity, ResolvedEntity
from src.proximity.filter import ProximityFilter

logger = logging.getLogger(__name__)


@dataclass
class EntityOutcome:
    """Result of processing one shelter: either resolved or skipped with a reason."""

    entity_id: Any
    resolved: Optional[ResolvedEntity] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.resolved is None


class ResolutionPipeline:
    """
    Filters the catalog around a reference point, then resolves addresses one
    shelter at a time in catalog order.

    Resolution is sequential on purpose: it is what keeps the shared rate limiter
    honest without further coordination.
    """

    def __init__(self, proximity_filter: ProximityFilter, resolver: GeocodeResolver):
        self.proximity_filter = proximity_filter
        self.resolver = resolver

    def run(self, catalog: Iterable[Any], reference: Coordinate, radius_km: Optional[float] = None) -> List[ResolvedEntity]:
        outcomes = self.run_with_outcomes(catalog, reference, radius_km)
        return [outcome.resolved for outcome in outcomes if not outcome.skipped]

    def run_with_outcomes(self, catalog: Iterable[Any], reference: Coordinate, radius_km: Optional[float] = None) -> List[EntityOutcome]:
        catalog = list(catalog)
        radius = self.proximity_filter.default_radius_km if radius_km is None else radius_km

        if not catalog:
            logger.info("No shelter data available.")
            return []

        start_time = time.time()
        nearby = self.proximity_filter.filter(catalog, reference, radius)
        logger.info(f"Found {len(nearby)} of {len(catalog)} shelters within {radius} km of ({reference.lat}, {reference.lon})")

        if not nearby:
            logger.info(f"No shelters found within {radius} km of ({reference.lat}, {reference.lon}).")
            return []

        outcomes = [self._process(entity) for entity in nearby]

        skipped = sum(1 for outcome in outcomes if outcome.skipped)
        duration = time.time() - start_time
        logger.info(f"Resolved {len(outcomes) - skipped} shelters in {duration:.2f} seconds ({skipped} skipped)")
        return outcomes

    def _process(self, entity: Entity) -> EntityOutcome:
        try:
            address = self.resolver.resolve(entity.coordinate)
            return EntityOutcome(entity_id=entity.id, resolved=ResolvedEntity.from_entity(entity, address))
        except Exception as e:
            logger.error(f"Error processing shelter {entity.id}: {e}", exc_info=True)
            return EntityOutcome(entity_id=entity.id, error=str(e))
