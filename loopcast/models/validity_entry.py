from pydantic import BaseModel, Field


class ValidityCacheEntry(BaseModel):
    """
    Last known verdict for one file content, keyed by its SHA-256.
    Serialized as {"hash": ..., "corrupted": ...} in cache.json.
    """
    content_hash: str = Field(..., alias="hash", description="Hex SHA-256 of the file contents")
    is_corrupted: bool = Field(..., alias="corrupted", description="Verdict from the validator")

    class Config:
        populate_by_name = True
        frozen = True
        extra = "ignore"  # Robustness against cache mismatch
