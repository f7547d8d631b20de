from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class MongoModel(BaseModel):
    id: str = Field(alias="_id", serialization_alias="id", default_factory=lambda: uuid4().hex)

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_serialization_defaults_required=True,
    )

    def to_mongo(self) -> dict[str, Any]:
        """Convert the model to a dictionary for MongoDB storage with _id field."""
        data = self.model_dump()
        if "id" in data:
            data["_id"] = data.pop("id")  # Rename id → _id for MongoDB
        return data
