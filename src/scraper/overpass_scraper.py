import requests
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
import time
import logging

from src.config import OVERPASS_URL, OVERPASS_AREA_ID, OVERPASS_TIMEOUT, USER_AGENT
from src.db.database import SessionLocal, ShelterDB
from src.models.shelter import Entity

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json",
}

# Tag filters selecting civil shelters
SHELTER_FILTERS = [
    '["amenity"="shelter"]',
    '["social_facility"="shelter"]',
    '["bunker_type"="bomb_shelter"]',
]


def build_query(area_id=OVERPASS_AREA_ID, timeout=OVERPASS_TIMEOUT):
    """Overpass QL query for every shelter node, way and relation inside an area."""
    selectors = "\n".join(
        f"  {element}{tag_filter}(area.searchArea);"
        for tag_filter in SHELTER_FILTERS
        for element in ("node", "way", "relation")
    )
    return (
        f"[out:json][timeout:{timeout}];\n"
        f"area({area_id})->.searchArea;\n"
        f"(\n{selectors}\n);\n"
        "out center;"
    )


def get_shelters(area_id=OVERPASS_AREA_ID, max_retries=3):
    query = build_query(area_id)
    retries = 0

    while retries < max_retries:
        try:
            logger.info(f"Overpass request for area {area_id}")
            response = requests.post(OVERPASS_URL, data={"data": query}, headers=DEFAULT_HEADERS, timeout=OVERPASS_TIMEOUT + 10)

            if response.status_code == 200:
                elements = response.json().get("elements", [])
                logger.info(f"Retrieved {len(elements)} OSM elements")
                return elements

            retries += 1
            wait_time = 2 * retries

            if response.status_code == 429:
                logger.warning(f"Rate limit exceeded. Waiting {wait_time} seconds... (Attempt {retries}/{max_retries})")
            elif 500 <= response.status_code < 600:
                logger.warning(f"Server error: HTTP {response.status_code}. Retrying in {wait_time} seconds... (Attempt {retries}/{max_retries})")
            else:
                logger.error(f"Client error: HTTP {response.status_code} - {response.text}")
                return []

            time.sleep(wait_time)

        except requests.exceptions.RequestException as e:
            retries += 1
            wait_time = 2 * retries
            logger.warning(f"Connection error: {e}. Retrying in {wait_time} seconds... (Attempt {retries}/{max_retries})")
            time.sleep(wait_time)
        except ValueError as e:
            logger.error(f"Malformed Overpass response: {e}")
            return []

    logger.error(f"Failed to fetch shelters after {max_retries} attempts.")
    return []


def process_element(element):
    """
    Normalize one Overpass element into an Entity.

    Nodes carry their own coordinates, ways and relations use their computed center.
    Returns None for elements without usable coordinates.
    """
    element_type = element.get("type")
    if element_type == "node":
        lat, lon = element.get("lat"), element.get("lon")
    else:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")

    if lat is None or lon is None:
        logger.debug(f"Skipping {element_type}/{element.get('id')} without coordinates")
        return None

    try:
        return Entity(
            id=f"{element_type}/{element.get('id')}",
            coordinate={"lat": lat, "lon": lon},
            attributes={str(k): str(v) for k, v in (element.get("tags") or {}).items()},
        )
    except ValidationError as e:
        logger.error(f"Validation error for element {element_type}/{element.get('id')}: {e.errors()}")
        return None


def fetch_catalog(area_id=OVERPASS_AREA_ID):
    raw_elements = get_shelters(area_id)
    shelters = []
    for element in raw_elements:
        shelter = process_element(element)
        if shelter:
            shelters.append(shelter)
    logger.info(f"Processed {len(shelters)} shelters from {len(raw_elements)} elements")
    return shelters


def save_to_database(shelters, session_factory=SessionLocal, remove_missing=False):
    """
    Upsert shelters into the catalog table.

    Args:
        shelters: Entities to insert or update
        session_factory: SQLAlchemy session factory
        remove_missing: Also delete stored shelters absent from ``shelters``,
            making the table mirror this batch

    Returns:
        Tuple of (inserted, updated, removed, errors) counts
    """
    logger.info(f"Saving {len(shelters)} shelters to database")

    db = session_factory()
    inserted_count = 0
    updated_count = 0
    removed_count = 0
    error_count = 0

    try:
        for shelter in shelters:
            try:
                existing = db.get(ShelterDB, str(shelter.id))
                osm_type = str(shelter.id).split("/", 1)[0]

                if existing:
                    existing.osm_type = osm_type
                    existing.name = shelter.name
                    existing.latitude = shelter.coordinate.lat
                    existing.longitude = shelter.coordinate.lon
                    existing.tags = dict(shelter.attributes)
                    updated_count += 1
                else:
                    db.add(ShelterDB(
                        id=str(shelter.id),
                        osm_type=osm_type,
                        name=shelter.name,
                        latitude=shelter.coordinate.lat,
                        longitude=shelter.coordinate.lon,
                        tags=dict(shelter.attributes),
                    ))
                    inserted_count += 1

                # Commit each record individually to avoid losing all on a single error
                db.commit()

            except SQLAlchemyError as e:
                db.rollback()
                error_count += 1
                logger.error(f"Database error for shelter {shelter.id}: {str(e)}")

        if remove_missing:
            removed_count = remove_stale_shelters(db, {str(shelter.id) for shelter in shelters})
    finally:
        db.close()

    logger.info(f"Catalog saved: {inserted_count} inserted, {updated_count} updated, {removed_count} removed, {error_count} errors")
    return inserted_count, updated_count, removed_count, error_count


def remove_stale_shelters(db, keep_ids, batch_size=500):
    stored_ids = {row_id for (row_id,) in db.query(ShelterDB.id).all()}
    stale_ids = sorted(stored_ids - set(keep_ids))
    if not stale_ids:
        return 0

    try:
        # batched to stay under the database's bound-parameter limit
        for start in range(0, len(stale_ids), batch_size):
            batch = stale_ids[start:start + batch_size]
            db.query(ShelterDB).filter(ShelterDB.id.in_(batch)).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not remove {len(stale_ids)} stale shelters: {str(e)}")
        return 0

    logger.info(f"Removed {len(stale_ids)} shelters no longer present upstream")
    return len(stale_ids)


def load_catalog(session_factory=SessionLocal):
    db = session_factory()
    try:
        rows = db.query(ShelterDB).order_by(ShelterDB.id).all()
        catalog = []
        for row in rows:
            try:
                catalog.append(Entity(
                    id=row.id,
                    coordinate={"lat": row.latitude, "lon": row.longitude},
                    attributes=row.tags or {},
                ))
            except ValidationError as e:
                logger.warning(f"Skipping stored shelter {row.id} with invalid coordinates: {e.errors()}")
        return catalog
    finally:
        db.close()


def refresh_catalog(area_id=OVERPASS_AREA_ID, session_factory=SessionLocal):
    """
    Fetch the current shelter catalog and store it.

    Returns:
        Tuple of (fetched, inserted, updated, removed, errors) counts
    """
    start_time = time.time()
    shelters = fetch_catalog(area_id)
    if not shelters:
        logger.warning(f"No shelters retrieved for area {area_id}; keeping the stored catalog.")
        return 0, 0, 0, 0, 0

    inserted, updated, removed, errors = save_to_database(shelters, session_factory, remove_missing=True)
    logger.info(f"Catalog refresh finished in {time.time() - start_time:.2f} seconds")
    return len(shelters), inserted, updated, removed, errors
