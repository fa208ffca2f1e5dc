"""
cars/models.py -- Domain dataclasses for car listings.

These are pure data containers with zero logic. Ownership rules live in
cars/service.py; persistence lives in cars/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Car:
    """A car listing owned by exactly one account.

    owner_id is stamped from the caller at creation and has no update path.
    images holds blob references returned by storage.blobs.BlobStore.save().

    id is None before the record is written to the database.
    """

    title: str
    description: str
    owner_id: str
    tags: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class CarUpdate:
    """A partial update. None means "field omitted, leave it alone".

    An empty tags list is a real value: it clears the tags. images is only
    set by the service when new files were uploaded.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[list[str]] = None
    images: Optional[list[str]] = None


@dataclass(frozen=True)
class DeleteResult:
    """Confirmation for a delete. deleted is False when nothing matched."""

    car_id: str
    deleted: bool


@dataclass(frozen=True)
class ImageUpload:
    """One uploaded image as received from the client, before it is stored."""

    filename: Optional[str]
    content: bytes
