"""
Database Service - thin wrapper over Firestore.

Every call returns a tuple whose first element is a success flag and whose
last element is an error message (None on success), so callers decide how
to surface failures instead of handling Firestore exceptions themselves.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from google.cloud.firestore_v1 import FieldFilter, Query

from .collections import COLLECTIONS, COLLECTION_SCHEMAS
from .firestore_client import get_firestore_client

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]


class DatabaseService:
    def __init__(self, client=None):
        self._client = client

    @property
    def db(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    # ===== Helpers =====

    def _schema_for(self, collection: str) -> Optional[Dict[str, Any]]:
        # Subcollection paths ("chats/<id>/messages") validate against their leaf name
        leaf = collection.rsplit('/', 1)[-1]
        for key, name in COLLECTIONS.items():
            if name == leaf:
                return COLLECTION_SCHEMAS.get(key)
        return None

    def _validate(self, collection: str, data: Dict[str, Any]) -> Optional[str]:
        schema = self._schema_for(collection)
        if not schema:
            return None
        missing = [field for field in schema['required'] if data.get(field) in (None, '')]
        if missing:
            return f"Missing required fields for {collection}: {', '.join(missing)}"
        return None

    @staticmethod
    def _to_dict(doc) -> Dict[str, Any]:
        data = doc.to_dict() or {}
        data['id'] = doc.id
        return data

    # ===== CRUD =====

    async def create_document(
        self,
        collection: str,
        data: Dict[str, Any],
        document_id: Optional[str] = None,
        validate: bool = True,
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        """Create a document; returns (success, document_id, error)"""
        try:
            if validate:
                error = self._validate(collection, data)
                if error:
                    logger.warning(error)
                    return False, None, error

            collection_ref = self.db.collection(collection)
            doc_ref = collection_ref.document(document_id) if document_id else collection_ref.document()
            doc_ref.set(data)
            logger.debug(f"Created {collection}/{doc_ref.id}")
            return True, doc_ref.id, None

        except Exception as e:
            logger.error(f"Error creating document in {collection}: {str(e)}")
            return False, None, str(e)

    async def get_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """Fetch one document; a missing document is (False, None, error)"""
        try:
            doc = self.db.collection(collection).document(document_id).get()
            if not doc.exists:
                return False, None, f"Document {document_id} not found in {collection}"
            return True, self._to_dict(doc), None

        except Exception as e:
            logger.error(f"Error getting {collection}/{document_id}: {str(e)}")
            return False, None, str(e)

    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
        merge: bool = False,
    ) -> Tuple[bool, Optional[str]]:
        """Overwrite (or merge into) a document with a known id"""
        try:
            self.db.collection(collection).document(document_id).set(data, merge=merge)
            return True, None
        except Exception as e:
            logger.error(f"Error setting {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
        validate: bool = False,
    ) -> Tuple[bool, Optional[str]]:
        """Partial update; dotted keys address nested map fields"""
        try:
            if validate:
                schema = self._schema_for(collection)
                if schema:
                    unknown = [k for k in data if k.split('.', 1)[0] not in schema['fields']]
                    if unknown:
                        return False, f"Unknown fields for {collection}: {', '.join(unknown)}"

            self.db.collection(collection).document(document_id).update(data)
            return True, None

        except Exception as e:
            logger.error(f"Error updating {collection}/{document_id}: {str(e)}")
            return False, str(e)

    async def delete_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[str]]:
        try:
            self.db.collection(collection).document(document_id).delete()
            return True, None
        except Exception as e:
            logger.error(f"Error deleting {collection}/{document_id}: {str(e)}")
            return False, str(e)

    # ===== Queries =====

    async def query_documents(
        self,
        collection: str,
        filters: Optional[List[Filter]] = None,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        """
        Run a filtered query.

        Args:
            collection: Collection name or subcollection path
            filters: list of (field, operator, value) tuples, ANDed together
            limit: maximum number of documents
            order_by: field to order by
            descending: order direction when order_by is given

        Returns:
            (success, documents, error) where each document carries its id
        """
        try:
            query = self.db.collection(collection)
            for field, op, value in filters or []:
                query = query.where(filter=FieldFilter(field, op, value))

            if order_by:
                direction = Query.DESCENDING if descending else Query.ASCENDING
                query = query.order_by(order_by, direction=direction)

            if limit:
                query = query.limit(limit)

            return True, [self._to_dict(doc) for doc in query.stream()], None

        except Exception as e:
            logger.error(f"Error querying {collection}: {str(e)}")
            return False, [], str(e)

    async def get_all_documents(self, collection: str) -> List[Dict[str, Any]]:
        success, documents, error = await self.query_documents(collection)
        if not success:
            logger.error(f"Error fetching all documents from {collection}: {error}")
            return []
        return documents


database_service = DatabaseService()
