"""
Database Module
-------------
Handles database connections, ORM models, and database operations.
Uses SQLAlchemy to persist the shelter catalog and the reverse geocoding cache.
"""
