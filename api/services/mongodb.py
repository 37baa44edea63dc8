# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB vote store with connection pooling and a unique vote index.

Collections:
    voting_items: one document per voting item (no cached vote total)
    votes: one document per vote record, unique on (voterId, itemId)
"""

import os
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace
from pydantic import ValidationError

from models.entities import VotingItem, VoteRecord
from models.enums import VotingStatus
from services.store import VoteStore, StoreError, DuplicateVoteError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ITEMS_COLLECTION = "voting_items"
VOTES_COLLECTION = "votes"
UNIQUE_VOTE_INDEX = "uniq_voter_item"


class MongoVoteStore(VoteStore):
    """Vote store backed by MongoDB."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB store settings; the connection is opened lazily."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/civic_voting'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'civic_voting')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None
        self._indexes_ready = False

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB vote store initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    tz_aware=True,
                    retryWrites=True,
                    retryReads=True
                )
                logger.info("MongoDB client created")
            except PyMongoError as e:
                logger.error(f"Failed to create MongoDB client: {e}")
                raise StoreError(f"MongoDB unavailable: {e}") from e

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database, creating indexes on first use."""
        if self._database is None:
            self._database = self.client[self.database_name]
        if not self._indexes_ready:
            self.create_indexes()
        return self._database

    @property
    def items(self) -> Collection:
        return self.database[ITEMS_COLLECTION]

    @property
    def votes(self) -> Collection:
        return self.database[VOTES_COLLECTION]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            self._indexes_ready = False
            logger.info("MongoDB connection closed")

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        """Translate driver failures into StoreError."""
        try:
            yield
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            logger.error(f"MongoDB {operation} failed: {e}", extra={"operation": operation})
            raise StoreError(f"MongoDB {operation} failed: {e}") from e

    def create_indexes(self) -> None:
        """Create the unique vote index and query indexes."""
        with self._store_errors("create_indexes"):
            database = self._database if self._database is not None else self.client[self.database_name]
            votes = database[VOTES_COLLECTION]
            votes.create_index(
                [("voterId", ASCENDING), ("itemId", ASCENDING)],
                unique=True,
                name=UNIQUE_VOTE_INDEX
            )
            votes.create_index([("itemId", ASCENDING), ("optionId", ASCENDING)])
            votes.create_index([("voterId", ASCENDING), ("timestamp", DESCENDING)])

            items = database[ITEMS_COLLECTION]
            items.create_index([("status", ASCENDING), ("startDate", ASCENDING), ("endDate", ASCENDING)])

            self._indexes_ready = True
            logger.info("MongoDB voting indexes ensured")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'backend': 'mongodb',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name
            }
        except (PyMongoError, StoreError) as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'backend': 'mongodb',
                'error': str(e),
                'database': self.database_name
            }

    # Document mapping

    @staticmethod
    def _object_id(item_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(item_id)
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _item_to_document(item: VotingItem) -> Dict[str, Any]:
        document = item.model_dump(by_alias=True, exclude={"id", "total_votes"})
        document["_id"] = ObjectId(item.id)
        return document

    @staticmethod
    def _document_to_item(document: Dict[str, Any], total_votes: int) -> VotingItem:
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        data["totalVotes"] = total_votes
        try:
            return VotingItem.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed voting item document {data['id']}: {e}")
            raise StoreError(f"Malformed voting item document {data['id']}") from e

    @staticmethod
    def _document_to_vote(document: Dict[str, Any]) -> VoteRecord:
        data = {key: value for key, value in document.items() if key != "_id"}
        try:
            return VoteRecord.model_validate(data)
        except ValidationError as e:
            raise StoreError(f"Malformed vote document {document.get('_id')}") from e

    def _totals_for(self, item_ids: List[str]) -> Dict[str, int]:
        pipeline = [
            {"$match": {"itemId": {"$in": item_ids}}},
            {"$group": {"_id": "$itemId", "count": {"$sum": 1}}}
        ]
        return {row["_id"]: row["count"] for row in self.votes.aggregate(pipeline)}

    # Voting items

    def insert_item(self, item: VotingItem) -> str:
        with tracer.start_as_current_span("store.insert_item") as span:
            span.set_attribute("voting.item_id", item.id)
            try:
                with self._store_errors("insert_item"):
                    self.items.insert_one(self._item_to_document(item))
            except DuplicateKeyError as e:
                raise StoreError(f"Voting item {item.id} already exists") from e

            logger.info(f"Created voting item {item.id}")
            return item.id

    def get_item(self, item_id: str) -> Optional[VotingItem]:
        object_id = self._object_id(item_id)
        if object_id is None:
            logger.debug(f"Invalid voting item id: {item_id}")
            return None

        with self._store_errors("get_item"):
            document = self.items.find_one({"_id": object_id})
            if document is None:
                return None
            total = self.votes.count_documents({"itemId": item_id})

        return self._document_to_item(document, total)

    def get_items(self, item_ids: Iterable[str]) -> Dict[str, VotingItem]:
        object_ids = [oid for oid in (self._object_id(item_id) for item_id in set(item_ids)) if oid]
        if not object_ids:
            return {}

        with self._store_errors("get_items"):
            documents = list(self.items.find({"_id": {"$in": object_ids}}))
            totals = self._totals_for([str(document["_id"]) for document in documents])

        return {
            str(document["_id"]): self._document_to_item(document, totals.get(str(document["_id"]), 0))
            for document in documents
        }

    def list_items_open_at(self, now: datetime) -> List[VotingItem]:
        query = {
            "status": {"$ne": VotingStatus.ENDED.value},
            "startDate": {"$lte": now},
            "endDate": {"$gt": now}
        }
        with self._store_errors("list_items_open_at"):
            documents = list(self.items.find(query).sort("endDate", ASCENDING))
            totals = self._totals_for([str(document["_id"]) for document in documents])

        logger.debug(f"Found {len(documents)} open voting items")
        return [self._document_to_item(document, totals.get(str(document["_id"]), 0)) for document in documents]

    def mark_ended(self, item_id: str, ended_at: datetime) -> bool:
        object_id = self._object_id(item_id)
        if object_id is None:
            return False

        with self._store_errors("mark_ended"):
            result = self.items.update_one(
                {"_id": object_id, "status": {"$ne": VotingStatus.ENDED.value}},
                {"$set": {"status": VotingStatus.ENDED.value, "endedAt": ended_at}}
            )
            if result.matched_count:
                logger.info(f"Voting ended for item {item_id}")
                return True
            return self.items.count_documents({"_id": object_id}, limit=1) > 0

    # Vote records

    def insert_vote(self, record: VoteRecord) -> VoteRecord:
        with tracer.start_as_current_span("store.insert_vote") as span:
            span.set_attributes({
                "voting.item_id": record.item_id,
                "voting.option_id": record.option_id
            })

            committed = record.model_copy(update={"verified": True})
            document = committed.model_dump(by_alias=True)

            try:
                with self._store_errors("insert_vote"):
                    self.votes.insert_one(document)
            except DuplicateKeyError as e:
                span.set_attribute("voting.duplicate", True)
                raise DuplicateVoteError(record.voter_id, record.item_id) from e

            return committed

    def has_vote(self, voter_id: str, item_id: str) -> bool:
        with self._store_errors("has_vote"):
            return self.votes.count_documents({"voterId": voter_id, "itemId": item_id}, limit=1) > 0

    def voted_item_ids(self, voter_id: str, item_ids: Iterable[str]) -> Set[str]:
        item_ids = list(item_ids)
        if not item_ids:
            return set()
        with self._store_errors("voted_item_ids"):
            cursor = self.votes.find({"voterId": voter_id, "itemId": {"$in": item_ids}}, {"itemId": 1})
            return {document["itemId"] for document in cursor}

    def count_votes_by_option(self, item_id: str) -> Dict[str, int]:
        pipeline = [
            {"$match": {"itemId": item_id}},
            {"$group": {"_id": "$optionId", "votes": {"$sum": 1}}}
        ]
        with tracer.start_as_current_span("store.count_votes_by_option") as span:
            span.set_attribute("voting.item_id", item_id)
            with self._store_errors("count_votes_by_option"):
                return {row["_id"]: row["votes"] for row in self.votes.aggregate(pipeline)}

    def find_votes_by_voter(self, voter_id: str, limit: int) -> List[VoteRecord]:
        with self._store_errors("find_votes_by_voter"):
            cursor = self.votes.find({"voterId": voter_id}).sort("timestamp", DESCENDING).limit(limit)
            documents = list(cursor)
        return [self._document_to_vote(document) for document in documents]
