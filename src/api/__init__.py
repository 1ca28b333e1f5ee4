"""
API Module
---------
Provides RESTful API endpoints for the shelter data using FastAPI.
Features include:
- Refreshing the shelter catalog from OpenStreetMap
- Listing stored shelters
- Finding shelters near a location, with resolved addresses
- Reverse geocoding single coordinates
"""
