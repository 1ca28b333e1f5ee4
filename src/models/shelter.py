from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

BOMB_SHELTER = "Bomb Shelter"
SOCIAL_SHELTER = "Social Shelter"
GENERIC_SHELTER = "Shelter"


class Coordinate(BaseModel):
    """A WGS84 latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(ge=-180, le=180, allow_inf_nan=False)

    @classmethod
    def of(cls, lat, lon) -> "Coordinate":
        return cls(lat=lat, lon=lon)


class Entity(BaseModel):
    """A shelter record as normalized by catalog ingestion."""

    model_config = ConfigDict(frozen=True)

    id: Union[str, int]
    coordinate: Coordinate
    attributes: Dict[str, str] = Field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.attributes.get("name") or None

    @property
    def kind(self) -> str:
        if self.attributes.get("bunker_type") == "bomb_shelter":
            return BOMB_SHELTER
        if self.attributes.get("social_facility") == "shelter":
            return SOCIAL_SHELTER
        return GENERIC_SHELTER


class ResolvedEntity(Entity):
    """An entity together with its human-readable address."""

    address: str

    @classmethod
    def from_entity(cls, entity: Entity, address: str) -> "ResolvedEntity":
        return cls(
            id=entity.id,
            coordinate=entity.coordinate,
            attributes=dict(entity.attributes),
            address=address,
        )


def cache_key(coordinate: Coordinate, precision: int = 4) -> str:
    """
    Build the address cache key for a coordinate.

    Coordinates that round to the same key share one cached address, which trades
    a few meters of precision for a much higher hit rate on the same site.
    """
    # + 0.0 turns -0.0 into 0.0 so both sides of the equator/meridian share a key
    lat = round(coordinate.lat, precision) + 0.0
    lon = round(coordinate.lon, precision) + 0.0
    return f"{lat:.{precision}f},{lon:.{precision}f}"
