from sqlalchemy import create_engine, Column, String, Float, DateTime, JSON
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func
import logging

from src.config import DATABASE_URL

# Get logger
logger = logging.getLogger(__name__)

Base = declarative_base()

# Shelter catalog as delivered by the Overpass scraper
class ShelterDB(Base):
    __tablename__ = "shelters"
    id = Column(String, primary_key=True, index=True)  # "<osm type>/<osm id>"
    osm_type = Column(String)
    name = Column(String, nullable=True)
    latitude = Column(Float)
    longitude = Column(Float)
    tags = Column(JSON, default=dict)
    fetched_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

# Reverse geocoding results keyed by rounded coordinates
class AddressCacheDB(Base):
    __tablename__ = "address_cache"
    key = Column(String, primary_key=True)
    address = Column(String, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

engine = create_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def create_tables(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created (if they didn't exist previously).")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
