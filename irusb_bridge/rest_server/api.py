#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
REST API routes for the IR-USB bridge server.

Each discovered bridge is a device with the properties "power", "playing"
(both writable) and "app" (read-only), and the actions "launch",
"remoteShort", "remoteLong" and "cancelKeys".
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..internal_types import *
from ..exceptions import (
    IrUsbError,
    UnknownKeyError,
    UnknownDeviceError,
    NotConnectedError,
    DeviceConnectionError,
    CommandTimeoutError,
  )
from ..adapter import IrUsbAdapter
from ..client import DeviceSession
from .logger import logger

router = APIRouter()

error_status_map: List[Tuple[Type[IrUsbError], int]] = [
    (UnknownDeviceError, 404),
    (UnknownKeyError, 400),
    (NotConnectedError, 503),
    (DeviceConnectionError, 503),
    (CommandTimeoutError, 504),
    (IrUsbError, 400),
  ]
"""HTTP status for each package exception. The first matching class wins."""

class PropertyValue(BaseModel):
    value: bool

class ActionInput(BaseModel):
    input: Optional[str] = None

class RawCommand(BaseModel):
    command: str

class CommandResult(BaseModel):
    result: str

class DeviceSummary(BaseModel):
    id: str
    host: str
    port: int
    state: str
    properties: Dict[str, Union[bool, str]]

class RemoveResult(BaseModel):
    id: str
    removed: bool

def error_status(exc: IrUsbError) -> int:
    for cls, status in error_status_map:
        if isinstance(exc, cls):
            return status
    return 500

async def irusb_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, IrUsbError)
    status = error_status(exc)
    logger.debug(f"{request.method} {request.url.path} failed with {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)})

def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IrUsbError, irusb_error_handler)

def get_request_adapter(request: Request) -> IrUsbAdapter:
    return request.app.state.adapter

def device_summary(session: DeviceSession) -> DeviceSummary:
    return DeviceSummary(
        id=session.device_id,
        host=session.host,
        port=session.port,
        state=session.state.value,
        properties=session.properties,
      )

@router.get("/devices")
async def list_devices(request: Request) -> List[DeviceSummary]:
    adapter = get_request_adapter(request)
    return [device_summary(session) for session in adapter.devices]

@router.get("/devices/{device_id}")
async def get_device(device_id: str, request: Request) -> DeviceSummary:
    session = get_request_adapter(request).get_device(device_id)
    return device_summary(session)

@router.put("/devices/{device_id}/properties/{name}")
async def set_property(device_id: str, name: str, body: PropertyValue, request: Request) -> CommandResult:
    session = get_request_adapter(request).get_device(device_id)
    result = await session.set_property(name, body.value)
    return CommandResult(result=result)

@router.post("/devices/{device_id}/actions/{name}")
async def perform_action(device_id: str, name: str, body: ActionInput, request: Request) -> CommandResult:
    session = get_request_adapter(request).get_device(device_id)
    result = await session.perform_action(name, body.input)
    return CommandResult(result=result)

@router.post("/devices/{device_id}/command")
async def send_command(device_id: str, body: RawCommand, request: Request) -> CommandResult:
    session = get_request_adapter(request).get_device(device_id)
    result = await session.send_raw_command(body.command)
    return CommandResult(result=result)

@router.delete("/devices/{device_id}")
async def remove_device(device_id: str, request: Request) -> RemoveResult:
    await get_request_adapter(request).remove_device(device_id)
    return RemoveResult(id=device_id, removed=True)
