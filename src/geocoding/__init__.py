"""
Geocoding Module
--------------
Handles reverse geocoding operations to convert geographic coordinates to human-readable addresses.
Uses OpenStreetMap's Nominatim API with caching, rate limiting and retries for efficient processing.
"""
