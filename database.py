# database.py
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import BaseModel, ValidationError
from typing import List, Type, TypeVar
import logging

import config

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGODB_URI)
db = client[config.MONGODB_DB]

ModelT = TypeVar("ModelT", bound=BaseModel)


class DocumentDecodeError(Exception):
    """Raised when a stored document does not match its schema."""

    def __init__(self, collection: str, doc_id, errors):
        self.collection = collection
        self.doc_id = doc_id
        self.errors = errors
        super().__init__(f"Malformed document in '{collection}' (id={doc_id}): {errors}")


def get_db():
    return db


async def init_db(database=None):
    database = database if database is not None else db
    await database.users.create_index("id", unique=True)
    await database.users.create_index("email", unique=True)
    await database.questions.create_index("id", unique=True)
    await database.tests.create_index("id", unique=True)
    await database.results.create_index("id", unique=True)
    await database.results.create_index([("userId", 1), ("completedAt", -1)])
    await database.exam_sessions.create_index("id", unique=True)


def decode(model: Type[ModelT], doc: dict, collection: str) -> ModelT:
    """Parse a raw document into ``model``, raising DocumentDecodeError on mismatch."""
    if doc is None:
        raise DocumentDecodeError(collection, None, "document is missing")
    data = {k: v for k, v in doc.items() if k != "_id"}
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DocumentDecodeError(collection, data.get("id"), e.errors()) from e


def decode_many(model: Type[ModelT], docs: List[dict], collection: str, skip_invalid: bool = False) -> List[ModelT]:
    items = []
    for doc in docs:
        try:
            items.append(decode(model, doc, collection))
        except DocumentDecodeError as e:
            if not skip_invalid:
                raise
            logger.warning(f"Skipping {e}")
    return items


def to_document(model: BaseModel) -> dict:
    return model.model_dump(mode="json")
