"""
api/routes/v1/cars.py -- Owner-scoped car listing routes.

Routes:
  POST   /cars/create        -- multipart form + up to 10 images; 201 Car
  GET    /cars/list          -- every car the caller owns
  GET    /cars/search        -- ?keyword= substring match on title/description/tags
  GET    /cars/detail/{id}   -- one car; 404 if missing or not the caller's
  PUT    /cars/update/{id}   -- partial multipart update; 404 if not the caller's
  DELETE /cars/delete/{id}   -- hard delete; 200 even when nothing matched

Every route depends on get_caller_identity, so a request without a valid
bearer token is rejected with 401 before the handler body runs. The
resulting CallerIdentity is passed to CarService, which uses it as the owner
filter on every query.

Form fields:
  tags may be sent as one comma-separated value ("sedan, red"), as repeated
  fields, or both. Values are split on commas, stripped, and blanks dropped.
  On update, an absent field is left unchanged; tags="" clears the tags.

The upload routes are async so file reads do not hold a worker thread; the
blocking service call is pushed to the thread pool with run_in_threadpool.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from api.models import CarResponse, DeleteResponse
from auth.dependencies import get_caller_identity
from auth.models import CallerIdentity
from cars.models import CarUpdate, ImageUpload
from cars.service import CarService
from core.errors import ValidationError, error_context

# Router-level dependency applies the token gate to every route registered
# here, including any added later without an explicit caller parameter.
router = APIRouter(prefix="/cars", dependencies=[Depends(get_caller_identity)])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(request: Request) -> CarService:
    return request.app.state.cars


def _split_tags(values: Optional[list[str]]) -> Optional[list[str]]:
    if values is None:
        return None
    tags: list[str] = []
    for value in values:
        tags.extend(t.strip() for t in value.split(",") if t.strip())
    return tags


async def _read_uploads(
    files: Optional[list[UploadFile]], max_files: int, max_bytes: int
) -> list[ImageUpload]:
    """Read uploaded files into memory, at most max_bytes + 1 bytes each.

    A request carrying more than max_files files is rejected before any of
    them is read.

    The extra byte lets CarService tell "exactly at the limit" from "over
    it" without buffering an arbitrarily large body. Empty file inputs
    (no filename, no content) are skipped.
    """
    files = files or []
    if len(files) > max_files:
        raise ValidationError(f"at most {max_files} images may be uploaded")
    uploads: list[ImageUpload] = []
    for f in files:
        content = await f.read(max_bytes + 1)
        if not f.filename and not content:
            continue
        uploads.append(ImageUpload(filename=f.filename, content=content))
    return uploads


# ---------------------------------------------------------------------------
# POST /cars/create
# ---------------------------------------------------------------------------


@router.post("/create", response_model=CarResponse, status_code=201)
async def create_car(
    request: Request,
    caller: CallerIdentity = Depends(get_caller_identity),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[list[str]] = Form(None),
    images: Optional[list[UploadFile]] = File(None),
) -> CarResponse:
    """Create a car owned by the caller. Uploaded images become its images list."""
    service = _service(request)
    settings = request.app.state.settings
    with error_context("Error creating car"):
        uploads = await _read_uploads(images, settings.max_upload_files, settings.max_upload_bytes)
        car = await run_in_threadpool(service.create, caller, title, description, _split_tags(tags), uploads)
    return CarResponse.from_car(car)


# ---------------------------------------------------------------------------
# GET /cars/list and /cars/search
# ---------------------------------------------------------------------------


@router.get("/list", response_model=list[CarResponse])
def list_cars(
    request: Request,
    caller: CallerIdentity = Depends(get_caller_identity),
) -> list[CarResponse]:
    """Return every car the caller owns. No pagination."""
    with error_context("Error fetching cars"):
        cars = _service(request).list_cars(caller)
    return [CarResponse.from_car(c) for c in cars]


@router.get("/search", response_model=list[CarResponse])
def search_cars(
    request: Request,
    keyword: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
) -> list[CarResponse]:
    """Case-insensitive substring search. An empty keyword returns every car."""
    with error_context("Error searching cars"):
        cars = _service(request).search(caller, keyword)
    return [CarResponse.from_car(c) for c in cars]


# ---------------------------------------------------------------------------
# GET /cars/detail/{car_id}
# ---------------------------------------------------------------------------


@router.get("/detail/{car_id}", response_model=CarResponse)
def car_detail(
    request: Request,
    car_id: str,
    caller: CallerIdentity = Depends(get_caller_identity),
) -> CarResponse:
    """Return one car. Another owner's car is reported as not found."""
    with error_context("Error fetching car details"):
        car = _service(request).detail(caller, car_id)
    return CarResponse.from_car(car)


# ---------------------------------------------------------------------------
# PUT /cars/update/{car_id}
# ---------------------------------------------------------------------------


@router.put("/update/{car_id}", response_model=CarResponse)
async def update_car(
    request: Request,
    car_id: str,
    caller: CallerIdentity = Depends(get_caller_identity),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[list[str]] = Form(None),
    images: Optional[list[UploadFile]] = File(None),
) -> CarResponse:
    """Partially update a car. images is replaced only when new files are sent."""
    service = _service(request)
    settings = request.app.state.settings
    update = CarUpdate(title=title, description=description, tags=_split_tags(tags))
    with error_context("Error updating car"):
        uploads = await _read_uploads(images, settings.max_upload_files, settings.max_upload_bytes)
        car = await run_in_threadpool(service.update, caller, car_id, update, uploads)
    return CarResponse.from_car(car)


# ---------------------------------------------------------------------------
# DELETE /cars/delete/{car_id}
# ---------------------------------------------------------------------------


@router.delete("/delete/{car_id}", response_model=DeleteResponse)
def delete_car(
    request: Request,
    car_id: str,
    caller: CallerIdentity = Depends(get_caller_identity),
) -> DeleteResponse:
    """Delete a car. Succeeds with deleted=false when no car of the caller matched."""
    with error_context("Error deleting car"):
        result = _service(request).delete(caller, car_id)
    return DeleteResponse(message="Car deleted", id=result.car_id, deleted=result.deleted)
