"""
Data Models Module
----------------
Contains Pydantic models for data validation and serialization.
Defines coordinates, shelter entities and their address-resolved counterparts.
"""
from src.models.shelter import Coordinate, Entity, ResolvedEntity, cache_key

__all__ = ["Coordinate", "Entity", "ResolvedEntity", "cache_key"]
