from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Optional


class CacheEntry(BaseModel):
    """Envelope stored at every cache key written by KVClient."""

    data: str
    compressed: bool
    timestamp: str


class Job(BaseModel):
    name: str
    payload: Any = None


class EnqueueOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delay: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("delay", "delaySeconds")
    )  # seconds
    not_before: Optional[int] = Field(default=None, alias="notBefore")  # unix seconds
    retries: Optional[int] = Field(default=None, ge=0)
    queue: Optional[str] = None
    deduplication_id: Optional[str] = Field(default=None, alias="deduplicationId")


class Schedule(BaseModel):
    id: str
    # None when the broker holds a schedule whose body is not a job document
    name: Optional[str] = None
    cron: str
    payload: Any = None
    queue: Optional[str] = None
    retries: Optional[int] = None
    destination: Optional[str] = None
    created_at: Optional[int] = None
    paused: bool = False


# Admin request bodies. Required fields are optional here so a missing
# value gets its own 400 message instead of the generic invalid-body one.

class EnqueueRequest(BaseModel):
    name: Optional[str] = None
    payload: Any = None
    options: Optional[EnqueueOptions] = None


class ScheduleCreate(BaseModel):
    name: Optional[str] = None
    cron: Optional[str] = None
    payload: Any = None
    queue: Optional[str] = None
    retries: Optional[int] = Field(default=None, ge=0)
