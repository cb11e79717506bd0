"""Key-value store for small JSON records, the server side of localStorage."""

import json
import logging
from typing import Any

from databases import Database
from pydantic import ValidationError

from cooksmart.models import GenerationRequest


logger = logging.getLogger(__name__)


MEAL_PREFERENCES_KEY = "cooksmart_meal_preferences"


CREATE_KEY_VALUES_TABLE = """
CREATE TABLE IF NOT EXISTS KeyValues (record_key VARCHAR(128) PRIMARY KEY, record_value TEXT NOT NULL)
"""


SET_VALUE = """
INSERT INTO KeyValues(record_key, record_value) VALUES (:key, :value)
ON CONFLICT(record_key) DO UPDATE SET record_value = excluded.record_value
"""


GET_VALUE = "SELECT record_value FROM KeyValues WHERE record_key = :key"


DELETE_VALUE = "DELETE FROM KeyValues WHERE record_key = :key"


class KeyValueRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def connect(self) -> None:
        if not self.db.is_connected:
            await self.db.connect()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_KEY_VALUES_TABLE
        )

    async def disconnect(self) -> None:
        if self.db.is_connected:
            await self.db.disconnect()

    async def get(self, key: str, default: Any = None) -> Any:
        result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_VALUE, values={"key": key}
        )
        if result is None:
            return default
        return json.loads(result["record_value"])

    async def set(self, key: str, value: Any) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            SET_VALUE, values={"key": key, "value": json.dumps(value)}
        )

    async def delete(self, key: str) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            DELETE_VALUE, values={"key": key}
        )


class PreferencesRepository(KeyValueRepository):
    """Last-used meal preferences for the single local user."""

    async def get_meal_preferences(self) -> GenerationRequest:
        data = await self.get(MEAL_PREFERENCES_KEY)
        if data is None:
            return GenerationRequest()
        try:
            return GenerationRequest.model_validate(data)
        except ValidationError:
            logger.warning("Stored meal preferences are invalid, using defaults.")
            return GenerationRequest()

    async def save_meal_preferences(self, preferences: GenerationRequest) -> None:
        await self.set(MEAL_PREFERENCES_KEY, preferences.to_dict())
