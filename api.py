from __future__ import annotations

import csv
import io
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Path, Query, status
from fastapi.responses import FileResponse, Response

from models import (
    BookingIn,
    BookingOut,
    BookingUpdate,
    LoginIn,
    LoginOut,
    Record,
    ResourceIn,
    ResourceOut,
    ResourceUpdate,
    UserIn,
    UserOut,
    UserUpdate,
)
from repository import CsvRecordStore
from services import (
    AuthService,
    BookingConflictError,
    BookingService,
    RecordNotFoundError,
    RecordService,
    RecordValidationError,
)


def _public(name: str, records: List[Record]) -> List[Record]:
    if name == "admins":
        return [{"username": a.get("username", ""), "name": a.get("name", "")} for a in records]
    return records


def create_router(store: CsvRecordStore, poll_interval_ms: int = 5000) -> APIRouter:
    router = APIRouter(prefix="/api")
    bookings = BookingService(store)
    users = RecordService(store, "users")
    resources = RecordService(store, "resources")
    auth = AuthService(store)

    def require_collection(name: str) -> None:
        if not store.is_known(name):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid data type",
            )

    # -----------------------------
    # Read-only views
    # -----------------------------
    @router.get("/data")
    def get_all_data() -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": True}
        for name in store.collections():
            data[name] = _public(name, store.load(name))
        return data

    @router.get("/export/{name}")
    def export_collection(name: str = Path(..., min_length=1)) -> Response:
        path = store.path_for(name) if store.is_known(name) else None
        if path is None or not path.exists():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="File not found",
            )
        if name != "admins":
            return FileResponse(path, media_type="text/csv", filename=f"{name}.csv")

        # Credentials never leave the server; export admins without the password column.
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["username", "name"])
        writer.writerows([a["username"], a["name"]] for a in _public(name, store.load(name)))
        return Response(
            content=buf.getvalue(),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{name}.csv"'},
        )

    @router.get("/updates/{timestamp}")
    def poll_updates(timestamp: str) -> Dict[str, Any]:
        # Placeholder for push delivery: clients poll with their last sync time (ms).
        try:
            client_time = int(timestamp)
        except ValueError:
            client_time = 0
        server_time = int(time.time() * 1000)

        if server_time - client_time <= poll_interval_ms:
            return {"updated": False, "timestamp": server_time}
        return {
            "updated": True,
            "timestamp": server_time,
            "data": {name: store.load(name) for name in ("users", "bookings", "resources")},
        }

    @router.get("/resources/{resource_id}/bookings", response_model=List[BookingOut])
    def list_bookings_for_resource(
        resource_id: str = Path(..., min_length=1),
        date: Optional[str] = Query(None),
    ) -> List[Record]:
        try:
            return bookings.list_for_resource(resource_id, date)
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )

    @router.get("/{name}")
    def get_collection(name: str) -> Dict[str, Any]:
        require_collection(name)
        return {"success": True, "data": _public(name, store.load(name))}

    @router.post("/login", response_model=LoginOut)
    def login(payload: LoginIn) -> LoginOut:
        user = auth.login(payload.username, payload.password)
        if user is None:
            return LoginOut(success=False, error="Invalid credentials")
        return LoginOut(success=True, user=user)

    # -----------------------------
    # Bookings
    # -----------------------------
    @router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
    def create_booking(payload: BookingIn) -> Record:
        try:
            return bookings.create(payload.model_dump(by_alias=True))
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )
        except BookingConflictError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time slot conflicts with existing booking",
            )

    @router.put("/bookings/{booking_id}", response_model=BookingOut)
    def update_booking(payload: BookingUpdate, booking_id: str = Path(..., min_length=1)) -> Record:
        try:
            return bookings.update(booking_id, payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True))
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Booking not found",
            )
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )
        except BookingConflictError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Time slot conflicts with existing booking",
            )

    @router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_booking(booking_id: str = Path(..., min_length=1)) -> None:
        try:
            bookings.delete(booking_id)
            return None
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Booking not found",
            )

    # -----------------------------
    # Users
    # -----------------------------
    @router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
    def create_user(payload: UserIn) -> Record:
        try:
            return users.create(payload.model_dump())
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )

    @router.put("/users/{user_id}", response_model=UserOut)
    def update_user(payload: UserUpdate, user_id: str = Path(..., min_length=1)) -> Record:
        try:
            return users.update(user_id, payload.model_dump(exclude_unset=True, exclude_none=True))
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )

    @router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: str = Path(..., min_length=1)) -> None:
        try:
            users.delete(user_id)
            return None
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )

    # -----------------------------
    # Resources
    # -----------------------------
    @router.post("/resources", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
    def create_resource(payload: ResourceIn) -> Record:
        try:
            return resources.create(payload.model_dump())
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )

    @router.put("/resources/{resource_id}", response_model=ResourceOut)
    def update_resource(payload: ResourceUpdate, resource_id: str = Path(..., min_length=1)) -> Record:
        try:
            return resources.update(resource_id, payload.model_dump(exclude_unset=True, exclude_none=True))
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Resource not found",
            )
        except RecordValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail=str(exc),
            )

    @router.delete("/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_resource(resource_id: str = Path(..., min_length=1)) -> None:
        try:
            resources.delete(resource_id)
            return None
        except RecordNotFoundError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Resource not found",
            )

    return router
