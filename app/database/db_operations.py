"""
Database operations - document get/set keyed by string ids
"""
from typing import Dict, Optional
from datetime import datetime, timezone
from bson import ObjectId
from app.config.database import db_config


def server_timestamp() -> datetime:
    """Timestamp stamped by the data layer at write time"""
    return datetime.now(timezone.utc)


class DBOperations:
    """Document operations for MongoDB collections, addressed by document id"""
    
    @staticmethod
    async def get_by_id(collection_name: str, doc_id: str) -> Optional[Dict]:
        """Get a single document by ID (string keys first, ObjectId keys as fallback)"""
        collection = db_config.get_collection(collection_name)
        document = await collection.find_one({"_id": doc_id})
        if document is None and ObjectId.is_valid(doc_id):
            document = await collection.find_one({"_id": ObjectId(doc_id)})
        return document
    
    @staticmethod
    async def get_one(collection_name: str, filter_query: Dict) -> Optional[Dict]:
        """Get a single document by filter query"""
        collection = db_config.get_collection(collection_name)
        document = await collection.find_one(filter_query)
        return document
    
    @staticmethod
    async def insert(collection_name: str, doc_id: str, document: Dict) -> Dict:
        """Insert a new document under doc_id; raises DuplicateKeyError on unique index clashes"""
        collection = db_config.get_collection(collection_name)
        document = {**document, "_id": doc_id}
        await collection.insert_one(document)
        return document
    
    @staticmethod
    async def set_by_id(collection_name: str, doc_id: str, document: Dict) -> Dict:
        """Write the whole document under doc_id, replacing any previous version"""
        collection = db_config.get_collection(collection_name)
        document = {**document, "_id": doc_id, "updated_at": server_timestamp()}
        await collection.replace_one({"_id": doc_id}, document, upsert=True)
        return document
    
    @staticmethod
    async def create_if_absent(collection_name: str, doc_id: str, document: Dict) -> bool:
        """Write document only when doc_id does not exist yet. Returns True if it was written."""
        collection = db_config.get_collection(collection_name)
        result = await collection.update_one(
            {"_id": doc_id},
            {"$setOnInsert": document},
            upsert=True
        )
        return result.upserted_id is not None
    
    @staticmethod
    async def update(collection_name: str, doc_id: str, update_data: Dict) -> bool:
        """Update fields of a document by ID"""
        collection = db_config.get_collection(collection_name)
        update_data["updated_at"] = server_timestamp()
        result = await collection.update_one({"_id": doc_id}, {"$set": update_data})
        return result.matched_count > 0

db_ops = DBOperations()
