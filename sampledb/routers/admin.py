"""Administrator routes for account approval, grants, groups and equipment."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.core.sessions import Identity, SessionManager, get_session_manager
from sampledb.dependencies import get_database_session, require_admin
from sampledb.models.user import User
from sampledb.schemas.admin import (
    AddEquipmentRequest,
    AddGroupRequest,
    AdminOverviewResponse,
    AdminUserResponse,
    GroupResponse,
    SetAdminRequest,
    UpdateAccessRequest,
)
from sampledb.schemas.booking import EquipmentResponse
from sampledb.services.equipment_service import (
    EquipmentService,
    EquipmentServiceError,
    get_equipment_service,
)
from sampledb.services.group_service import GroupService, GroupServiceError, get_group_service
from sampledb.services.user_service import UserService, UserServiceError, get_user_service

router = APIRouter(prefix="/admin", tags=["admin"])


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    """Build standardized API error response payload."""
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def _user_response(user: User, equipment_ids: list[int] | None = None) -> AdminUserResponse:
    if equipment_ids is None:
        equipment_ids = sorted(grant.equipment_id for grant in user.permissions)
    return AdminUserResponse(
        id=user.id,
        username=user.username,
        is_approved=user.is_approved,
        is_admin=user.is_admin,
        group_name=user.group_name,
        equipment_ids=equipment_ids,
        created_at=user.created_at,
    )


@router.get("/users", response_model=list[AdminUserResponse])
async def list_users(
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> list[AdminUserResponse]:
    """List active accounts with approval state and grants."""
    users = await user_service.list_users(db_session=db_session)
    return [_user_response(user) for user in users]


@router.get("/overview", response_model=AdminOverviewResponse)
async def overview(
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    group_service: Annotated[GroupService, Depends(get_group_service)],
    equipment_service: Annotated[EquipmentService, Depends(get_equipment_service)],
) -> AdminOverviewResponse:
    """Return accounts, the group catalogue and equipment for the admin console."""
    users = await user_service.list_users(db_session=db_session)
    groups = await group_service.list_groups(db_session=db_session)
    equipment = await equipment_service.list_equipment(db_session=db_session)
    return AdminOverviewResponse(
        users=[_user_response(user) for user in users],
        groups=[GroupResponse.model_validate(group) for group in groups],
        equipment=[EquipmentResponse.model_validate(item) for item in equipment],
    )


@router.put("/users/{user_id}/access", response_model=AdminUserResponse)
async def update_access(
    user_id: int,
    payload: UpdateAccessRequest,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> AdminUserResponse | JSONResponse:
    """Set approval, group label and equipment grants together."""
    try:
        user = await user_service.update_access(
            db_session=db_session,
            user_id=user_id,
            approved=payload.approved,
            group_name=payload.group_name,
            equipment_ids=payload.equipment_ids,
        )
        granted = await user_service.granted_equipment_ids(db_session=db_session, user_id=user_id)
    except UserServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return _user_response(user, equipment_ids=sorted(granted))


@router.put("/users/{user_id}/admin", response_model=AdminUserResponse)
async def set_admin(
    user_id: int,
    payload: SetAdminRequest,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> AdminUserResponse | JSONResponse:
    """Grant or withdraw admin rights."""
    try:
        user = await user_service.set_admin(
            db_session=db_session, user_id=user_id, is_admin=payload.is_admin
        )
        granted = await user_service.granted_equipment_ids(db_session=db_session, user_id=user_id)
    except UserServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return _user_response(user, equipment_ids=sorted(granted))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> Response:
    """Soft-delete an account and end its sessions."""
    try:
        await user_service.delete_user(
            db_session=db_session,
            actor_id=admin.user_id,
            user_id=user_id,
            session_manager=session_manager,
        )
    except UserServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return Response(status_code=204)


@router.post("/equipment", status_code=201, response_model=EquipmentResponse)
async def add_equipment(
    payload: AddEquipmentRequest,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    equipment_service: Annotated[EquipmentService, Depends(get_equipment_service)],
) -> EquipmentResponse | JSONResponse:
    """Register a new bookable equipment item."""
    try:
        equipment = await equipment_service.add_equipment(
            db_session=db_session,
            name=payload.name,
            description=payload.description,
            location=payload.location,
        )
    except EquipmentServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return EquipmentResponse.model_validate(equipment)


@router.delete("/equipment/{equipment_id}", status_code=204)
async def delete_equipment(
    equipment_id: int,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    equipment_service: Annotated[EquipmentService, Depends(get_equipment_service)],
) -> Response:
    """Remove equipment together with its bookings and grants."""
    try:
        await equipment_service.delete_equipment(db_session=db_session, equipment_id=equipment_id)
    except EquipmentServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return Response(status_code=204)


@router.get("/groups", response_model=list[GroupResponse])
async def list_groups(
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    group_service: Annotated[GroupService, Depends(get_group_service)],
) -> list[GroupResponse]:
    groups = await group_service.list_groups(db_session=db_session)
    return [GroupResponse.model_validate(group) for group in groups]


@router.post("/groups", status_code=201, response_model=GroupResponse)
async def add_group(
    payload: AddGroupRequest,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    group_service: Annotated[GroupService, Depends(get_group_service)],
) -> GroupResponse | JSONResponse:
    """Add a group to the catalogue; an existing name is returned unchanged."""
    try:
        group = await group_service.add_group(db_session=db_session, name=payload.name)
    except GroupServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return GroupResponse.model_validate(group)


@router.delete("/groups/{group_id}", status_code=204)
async def delete_group(
    group_id: int,
    admin: Annotated[Identity, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    group_service: Annotated[GroupService, Depends(get_group_service)],
) -> Response:
    """Remove a group and clear it from the accounts labelled with it."""
    try:
        await group_service.delete_group(db_session=db_session, group_id=group_id)
    except GroupServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return Response(status_code=204)
