"""
Scraper Module
------------
Fetches civil shelters from the OpenStreetMap Overpass API and maintains the local catalog.
"""
