"""
Pipeline Module
-------------
Combines proximity filtering and reverse geocoding into presentation-ready shelter records.
"""
