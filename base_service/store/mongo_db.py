import os

from pymongo import MongoClient
from pymongo.database import Database

from ..utilities.setup_error import SetupError

# Module-level cache for the database instance
_mongo_db = None

def create_mongo_db() -> Database:
    global _mongo_db
    if _mongo_db is not None:
        return _mongo_db
    
    MONGO_URL = os.environ.get("MONGO_URL")
    if not MONGO_URL: raise SetupError("Please set MONGO_URL in your environment variables.")

    MONGO_DB_NAME = os.environ.get("MONGO_DB_NAME")
    if not MONGO_DB_NAME: raise SetupError("Please set MONGO_DB_NAME in your environment variables.")

    # tz_aware so stored timestamps come back as UTC datetimes, equal to the ones we wrote
    mongo_client = MongoClient(MONGO_URL, tz_aware=True)
    _mongo_db = mongo_client[MONGO_DB_NAME]
    return _mongo_db

def reset_mongo_db() -> None:
    """ Drops the cached database so the next create_mongo_db() reads the environment again. """
    global _mongo_db
    _mongo_db = None
