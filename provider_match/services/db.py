import os

import motor.motor_asyncio
from dotenv import load_dotenv
from pymongo import ASCENDING
from pymongo.errors import OperationFailure

from provider_match.utils.logging_config import get_logger

logger = get_logger(__name__)

# Load environment variables from .env
load_dotenv()

MONGO_DETAILS = os.getenv("MONGO_DETAILS", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "home_services")

logger.info(f"Initializing MongoDB connection to database: {DB_NAME}")

# Motor connects lazily, so building the client never blocks import
client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_DETAILS, serverSelectionTimeoutMS=5000)
db = client[DB_NAME]

# Collections shared with the marketplace backend
users_coll = db["users"]
provider_services_coll = db["providerservices"]
bookings_coll = db["bookings"]


async def init_indexes():
    """Index initialization for the collections the matching engine reads and writes."""
    logger.info("Starting database index initialization")

    # One auto-generated listing per (provider, category): concurrent synthesis
    # requests race on this index and the loser re-reads the winner's listing.
    try:
        await provider_services_coll.create_index(
            [("providerId", ASCENDING), ("category", ASCENDING)],
            name="uniq_auto_listing_provider_category",
            unique=True,
            partialFilterExpression={"autoGenerated": True},
        )
        logger.debug("Created unique partial index on providerservices.(providerId, category)")
    except OperationFailure as e:
        if "already exists" in str(e).lower():
            logger.debug("Unique index on providerservices.(providerId, category) already exists")
        else:
            logger.warning(f"Could not create unique synthetic listing index: {e}")

    try:
        await provider_services_coll.create_index([("category", ASCENDING), ("isActive", ASCENDING)])
        await bookings_coll.create_index(
            [("provider", ASCENDING), ("scheduledDate", ASCENDING), ("status", ASCENDING)]
        )
        await users_coll.create_index([("userType", ASCENDING), ("providerStatus", ASCENDING)])
        logger.debug("Created lookup indexes for listings, bookings and providers")
    except OperationFailure as e:
        logger.warning(f"Could not create some lookup indexes: {e}")

    logger.info("Database index initialization completed")
