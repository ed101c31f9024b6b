from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from pymongo import MongoClient

from pawpath.core.schemas import LearnedPreference
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)


class DraftOwnershipError(PermissionError):
    """A draft id was reused by a user who does not own it."""


class MongoDBRepo:
    def __init__(self, mongodb_uri: str | None = None, database_name: str | None = None):
        settings = get_settings()
        mongodb_uri = mongodb_uri or settings.mongodb_uri
        database_name = database_name or settings.database_name
        if not mongodb_uri:
            raise ValueError("MONGODB_URI environment variable is required")

        self.client = MongoClient(
            mongodb_uri,
            serverSelectionTimeoutMS=5000,  # 5 second timeout
            connectTimeoutMS=10000,
            socketTimeoutMS=20000,
            retryWrites=True,
            retryReads=True,
        )
        self.db = self.client[database_name]

        # Collections
        self.pet_policies_collection = self.db.pet_policies
        self.users_collection = self.db.users
        self.trip_drafts_collection = self.db.trip_drafts

        try:
            self.client.admin.command("ping")
            logger.info("[MongoDB] Connected to database %s", database_name)
            self.pet_policies_collection.create_index("slug", unique=True)
            self.pet_policies_collection.create_index("country_name")
            self.users_collection.create_index("user_id", unique=True)
            self.trip_drafts_collection.create_index("id", unique=True)
            self.trip_drafts_collection.create_index("user_id")
        except Exception as e:
            # Lookups still work once the server becomes reachable
            logger.warning("[MongoDB] Startup check failed, continuing: %s", str(e)[:200])

    # Pet policies
    def get_pet_policy(self, country_name: str) -> dict | None:
        """Find a policy record by country name (case-insensitive exact match)."""
        pattern = re.compile(f"^{re.escape(country_name.strip())}$", re.IGNORECASE)
        policy_doc = self.pet_policies_collection.find_one({"country_name": pattern})
        if policy_doc:
            policy_doc.pop("_id", None)  # Remove MongoDB ObjectId
        return policy_doc

    def get_pet_policy_by_slug(self, slug: str) -> dict | None:
        policy_doc = self.pet_policies_collection.find_one({"slug": slug})
        if policy_doc:
            policy_doc.pop("_id", None)
        return policy_doc

    def list_pet_policies(self, page: int = 1, limit: int = 20) -> list[dict]:
        skip = max(0, (page - 1) * limit)
        cursor = (
            self.pet_policies_collection.find({}, {"_id": 0})
            .sort("country_name", 1)
            .skip(skip)
            .limit(limit)
        )
        return list(cursor)

    def count_pet_policies(self) -> int:
        return self.pet_policies_collection.count_documents({})

    # User profiles
    def get_learned_preferences(self, user_id: str) -> list[LearnedPreference]:
        user_doc = self.users_collection.find_one({"user_id": user_id}, {"learned_preferences": 1})
        if not user_doc:
            return []
        return [LearnedPreference(**pref) for pref in user_doc.get("learned_preferences") or []]

    def update_learned_preferences(self, user_id: str, prefs: list[LearnedPreference]) -> bool:
        """Replace the stored learned preferences for a user, creating the profile if needed."""
        result = self.users_collection.update_one(
            {"user_id": user_id},
            {
                "$set": {
                    "learned_preferences": [p.model_dump(mode="json") for p in prefs],
                    "updated_at": datetime.now(timezone.utc),
                },
            },
            upsert=True,
        )
        return result.acknowledged

    # Trip drafts
    def save_trip_draft(
        self, user_id: str, trip_data: dict[str, Any], draft_id: str | None = None
    ) -> str:
        """Upsert a draft trip for a user and return its id."""
        if draft_id:
            existing = self.trip_drafts_collection.find_one({"id": draft_id}, {"user_id": 1})
            if existing and existing.get("user_id") != user_id:
                raise DraftOwnershipError(f"Draft {draft_id} belongs to another user")
        draft_id = draft_id or f"draft_{uuid.uuid4().hex[:12]}"
        self.trip_drafts_collection.update_one(
            {"id": draft_id, "user_id": user_id},
            {
                "$set": {"trip_data": trip_data, "updated_at": datetime.now(timezone.utc)},
            },
            upsert=True,
        )
        return draft_id


@lru_cache(maxsize=1)
def get_repo() -> MongoDBRepo:
    """Shared repository instance, created on first use."""
    return MongoDBRepo()
