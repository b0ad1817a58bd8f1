from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from api.dependencies import get_pipeline, get_storage
from syllabus_sync.importing import EventItem, ImportPipeline, LocalImportStorage

router = APIRouter(prefix="/imports", tags=["imports"])


async def _wait_for_import(task: "asyncio.Task[bool]") -> None:
    # Keeps the request alive until the import reaches a terminal state.
    await task


@router.post("/upload", status_code=202)
async def upload_syllabus(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    pipeline: ImportPipeline = Depends(get_pipeline),
    storage: LocalImportStorage = Depends(get_storage),
):
    if pipeline.is_running:
        raise HTTPException(status_code=409, detail="An import is already running")
    if file.content_type not in ("application/pdf", "application/octet-stream"):
        raise HTTPException(status_code=400, detail="Only PDF uploads are supported")
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    upload_id = uuid.uuid4().hex
    pdf_path = storage.save_upload(upload_id, payload)

    task = pipeline.launch(pdf_path)
    if task is None:
        pdf_path.unlink(missing_ok=True)
        raise HTTPException(status_code=409, detail="An import is already running")
    background_tasks.add_task(_wait_for_import, task)
    return {"upload_id": upload_id, "source": str(pdf_path)}


@router.get("/session")
async def get_session(pipeline: ImportPipeline = Depends(get_pipeline)):
    return pipeline.session.snapshot().to_dict()


@router.get("/session/preview")
async def get_preview(pipeline: ImportPipeline = Depends(get_pipeline)):
    preview = pipeline.session.preview
    if not preview:
        raise HTTPException(status_code=404, detail="No preview available")
    return Response(content=preview, media_type="image/png")


@router.post("/cancel")
async def cancel_import(pipeline: ImportPipeline = Depends(get_pipeline)):
    return {"cancelled": pipeline.cancel_import()}


@router.post("/retry", status_code=202)
async def retry_import(background_tasks: BackgroundTasks, pipeline: ImportPipeline = Depends(get_pipeline)):
    if pipeline.is_running:
        raise HTTPException(status_code=409, detail="An import is already running")
    source = pipeline.session.last_source
    if source is None:
        raise HTTPException(status_code=404, detail="Nothing to retry")
    task = pipeline.launch(source)
    if task is None:
        raise HTTPException(status_code=409, detail="An import is already running")
    background_tasks.add_task(_wait_for_import, task)
    return {"source": str(source)}


@router.delete("/results")
async def clear_results(pipeline: ImportPipeline = Depends(get_pipeline)):
    if pipeline.is_running:
        raise HTTPException(status_code=409, detail="Cannot clear results while an import is running")
    pipeline.clear_results()
    return pipeline.session.snapshot().to_dict()


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    payload: Dict[str, Any] = Body(...),
    pipeline: ImportPipeline = Depends(get_pipeline),
):
    try:
        event = EventItem.from_dict(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid event: {exc}")
    if event.id != event_id:
        raise HTTPException(status_code=400, detail="Event id does not match the path")
    replaced = await pipeline.apply_edited_event(event)
    return {"event": event.to_dict(), "inSession": replaced}
