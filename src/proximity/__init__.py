"""
Proximity Module
--------------
Great-circle (haversine) distances and radius filtering of the shelter catalog.
"""
