"""API routes controlling the listening session."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from hey_india.errors import DetectionError, DevicePermissionError, UnsupportedError
from webapp.services.assistant import assistant_service

router = APIRouter()


class ContinuousRequest(BaseModel):
    """Request body for the continuous-listening toggle."""

    enabled: bool


class StatusResponse(BaseModel):
    """Current session status."""

    state: str
    status: str
    last_response: str
    running: bool
    continuous: bool


@router.post("/start", response_model=StatusResponse)
async def start():
    """Open camera and microphone and start listening for the wake phrase."""
    try:
        await assistant_service.start()
    except DevicePermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except UnsupportedError as e:
        raise HTTPException(status_code=501, detail=str(e))
    except DetectionError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return StatusResponse(**assistant_service.status())


@router.post("/stop", response_model=StatusResponse)
async def stop():
    """Stop listening and release devices."""
    assistant_service.stop()
    return StatusResponse(**assistant_service.status())


@router.post("/continuous", response_model=StatusResponse)
async def continuous(request: ContinuousRequest):
    """Toggle continuous wake listening."""
    assistant_service.set_continuous(request.enabled)
    return StatusResponse(**assistant_service.status())


@router.get("/status", response_model=StatusResponse)
async def status():
    """Report state, status line and the last spoken response."""
    return StatusResponse(**assistant_service.status())
