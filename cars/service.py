"""
cars/service.py -- Owner-scoped operations over car listings.

Every public method takes the CallerIdentity produced by the token gate and
passes caller.user_id to the store as the owner filter. A car owned by
someone else behaves exactly like a car that does not exist.

Contract for the edge cases:
  detail / update on an id the caller does not own -> NotFound.
  delete on an id the caller does not own -> DeleteResult(deleted=False),
      not an error, so deleting twice is safe.
  search with an empty or missing keyword -> every car the caller owns.

Uploads are checked (count and size) before anything is written. Blobs are
stored before the car row; if the row write then fails, the files stay on
disk.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from auth.models import CallerIdentity
from cars.models import Car, CarUpdate, DeleteResult, ImageUpload
from cars.store import CarStore
from core.errors import NotFound, ValidationError
from storage.blobs import BlobStore

logger = logging.getLogger("carvault.cars")


def _require_text(name: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


class CarService:
    def __init__(
        self,
        store: CarStore,
        blobs: BlobStore,
        max_files: int = 10,
        max_file_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._max_files = max_files
        self._max_file_bytes = max_file_bytes

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _check_uploads(self, uploads: Sequence[ImageUpload]) -> None:
        if len(uploads) > self._max_files:
            raise ValidationError(f"at most {self._max_files} images may be uploaded")
        for upload in uploads:
            if len(upload.content) > self._max_file_bytes:
                raise ValidationError(f"image '{upload.filename}' exceeds {self._max_file_bytes} bytes")

    def _store_uploads(self, uploads: Sequence[ImageUpload]) -> list[str]:
        return [self._blobs.save(u.content, u.filename) for u in uploads]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(
        self,
        caller: CallerIdentity,
        title: Optional[str],
        description: Optional[str],
        tags: Optional[list[str]],
        uploads: Sequence[ImageUpload] = (),
    ) -> Car:
        """Create a car owned by caller. title, description and tags are required."""
        title = _require_text("title", title)
        description = _require_text("description", description)
        if tags is None:
            raise ValidationError("tags is required")
        self._check_uploads(uploads)

        car = Car(
            title=title,
            description=description,
            owner_id=caller.user_id,
            tags=list(tags),
            images=self._store_uploads(uploads),
        )
        car_id = self._store.create_car(car)
        logger.info("Car %s created by %s with %d image(s)", car_id, caller.user_id, len(car.images))
        created = self._store.get_car(car_id, caller.user_id)
        if created is None:
            raise NotFound(message="Car not found")
        return created

    def list_cars(self, caller: CallerIdentity) -> list[Car]:
        """Every car caller owns, in insertion order."""
        return self._store.list_cars(caller.user_id)

    def search(self, caller: CallerIdentity, keyword: Optional[str]) -> list[Car]:
        """Case-insensitive substring search over title, description and tags."""
        if not keyword:
            return self._store.list_cars(caller.user_id)
        return self._store.search_cars(caller.user_id, keyword)

    def detail(self, caller: CallerIdentity, car_id: str) -> Car:
        car = self._store.get_car(car_id, caller.user_id)
        if car is None:
            raise NotFound(message="Car not found")
        return car

    def update(
        self,
        caller: CallerIdentity,
        car_id: str,
        update: CarUpdate,
        uploads: Sequence[ImageUpload] = (),
    ) -> Car:
        """Apply a partial update to one of caller's cars.

        Provided title/description must be non-blank. images is replaced
        only when new files are uploaded; otherwise the existing list stays.
        """
        if update.title is not None:
            _require_text("title", update.title)
        if update.description is not None:
            _require_text("description", update.description)
        self._check_uploads(uploads)

        # Look the car up before writing any blobs so a wrong id leaves no files behind.
        self.detail(caller, car_id)
        if uploads:
            update.images = self._store_uploads(uploads)

        updated = self._store.update_car(car_id, caller.user_id, update)
        if updated is None:
            # Deleted between the lookup and the write.
            raise NotFound(message="Car not found")
        logger.info("Car %s updated by %s", car_id, caller.user_id)
        return updated

    def delete(self, caller: CallerIdentity, car_id: str) -> DeleteResult:
        deleted = self._store.delete_car(car_id, caller.user_id)
        if deleted:
            logger.info("Car %s deleted by %s", car_id, caller.user_id)
        return DeleteResult(car_id=car_id, deleted=deleted)
