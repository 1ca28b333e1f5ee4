from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks, Query
from sqlalchemy.orm import Session
from functools import lru_cache
import logging

from src.config import DEFAULT_RADIUS_KM, OVERPASS_AREA_ID, configure_logging
from src.db.database import get_db, ShelterDB
from src.geocoding.resolver import GeocodeResolver, build_default_resolver
from src.models.shelter import Coordinate
from src.pipeline.resolution import ResolutionPipeline
from src.proximity.filter import ProximityFilter
from src.scraper.overpass_scraper import load_catalog, refresh_catalog

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Shelter Finder API",
    description="Nearby civil shelters with resolved street addresses",
    version="1.0.0"
)


@lru_cache(maxsize=1)
def get_resolver() -> GeocodeResolver:
    # one resolver, hence one rate limiter, per process
    return build_default_resolver()


def get_catalog():
    return load_catalog()


def get_pipeline(resolver: GeocodeResolver = Depends(get_resolver)) -> ResolutionPipeline:
    return ResolutionPipeline(ProximityFilter(DEFAULT_RADIUS_KM), resolver)


# Background task for refreshing the shelter catalog
def refresh_catalog_task(area_id=OVERPASS_AREA_ID):
    try:
        logger.info(f"Starting: Refreshing shelters for area {area_id}")
        fetched, inserted, updated, removed, errors = refresh_catalog(area_id)
        logger.info(f"Completed: Fetched {fetched} shelters, inserted {inserted}, updated {updated}, removed {removed}, errors {errors}")
    except Exception as e:
        logger.error(f"Error occurred: {str(e)}")


def shelter_payload(shelter):
    return {
        "id": shelter.id,
        "name": shelter.name,
        "type": shelter.kind,
        "latitude": shelter.coordinate.lat,
        "longitude": shelter.coordinate.lon,
        "address": shelter.address,
    }


@app.get("/")
def read_root():
    return {"message": "Welcome to the Shelter Finder API"}


@app.post("/refresh")
async def refresh_shelters(background_tasks: BackgroundTasks, area_id: int = OVERPASS_AREA_ID):
    try:
        background_tasks.add_task(refresh_catalog_task, area_id)
        return {
            "message": f"Shelter catalog refresh started for area {area_id}",
            "status": "processing"
        }
    except Exception as e:
        logger.error(f"Error starting refresh: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/shelters")
def get_shelters(db: Session = Depends(get_db), limit: int = 20):
    try:
        shelters = db.query(ShelterDB).order_by(ShelterDB.id).limit(limit).all()
        return [
            {
                "id": shelter.id,
                "name": shelter.name,
                "latitude": shelter.latitude,
                "longitude": shelter.longitude,
            }
            for shelter in shelters
        ]
    except Exception as e:
        logger.error(f"Error retrieving shelters: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/shelters/nearby")
def get_nearby_shelters(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(DEFAULT_RADIUS_KM, gt=0),
    catalog=Depends(get_catalog),
    pipeline: ResolutionPipeline = Depends(get_pipeline),
):
    """
    Shelters within ``radius_km`` of the given location, in catalog order, each with
    its street address. Addresses that cannot be resolved fall back to coordinates.
    """
    try:
        if not catalog:
            return {
                "status": "no_data",
                "message": "No shelter data available. Please try again later.",
                "shelters": []
            }

        reference = Coordinate(lat=lat, lon=lon)
        resolved = pipeline.run(catalog, reference, radius_km)

        if not resolved:
            return {
                "status": "no_results",
                "message": f"No shelters found within {radius_km:g} km of your location.",
                "shelters": []
            }

        return {
            "status": "ok",
            "count": len(resolved),
            "shelters": [shelter_payload(shelter) for shelter in resolved]
        }
    except Exception as e:
        logger.error(f"Error finding nearby shelters: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/geocode")
def geocode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    resolver: GeocodeResolver = Depends(get_resolver),
):
    """Resolve a single coordinate to an address"""
    return {"latitude": lat, "longitude": lon, "address": resolver.resolve(Coordinate(lat=lat, lon=lon))}
