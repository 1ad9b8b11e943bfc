import argparse
import base64
import binascii
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from describer.config import resolve_settings
from describer.exceptions import BatchInProgress, ConfigurationError, EmptyResultSet
from describer.export import export_filename
from describer.models import (
    BatchRequest,
    BatchSnapshot,
    DescribeRequest,
    GenerationOutcome,
    HistoryEntry,
    ResultRecord,
    ServiceStatus,
    Settings,
    SettingsUpdate,
    WorkItem,
)
from describer.persistence import LocalStore, default_path
from describer.service import DescriberService
from describer.state import AppState

logger = logging.getLogger(__name__)


def create_app(service: DescriberService) -> FastAPI:
    app = FastAPI(title="Image Describer")
    app.state.service = service

    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(EmptyResultSet)
    async def empty_result_set(request: Request, exc: EmptyResultSet):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BatchInProgress)
    async def batch_in_progress(request: Request, exc: BatchInProgress):
        return JSONResponse(status_code=409, content={"status": ServiceStatus.BUSY.value, "detail": str(exc)})

    @app.get("/settings", response_model=Settings)
    def get_settings():
        return service.state.settings

    @app.put("/settings", response_model=Settings)
    def put_settings(update: SettingsUpdate):
        return service.state.update_settings(**update.model_dump())

    @app.post("/describe", response_model=GenerationOutcome)
    def describe(req: DescribeRequest):
        image = req.image_url or None
        if image is None and req.image_base64:
            try:
                image = base64.b64decode(req.image_base64, validate=True)
            except (binascii.Error, ValueError):
                raise HTTPException(status_code=422, detail="image_base64 is not valid base64")
        return service.describe_one(image, req.note)

    @app.post("/batch", response_model=BatchSnapshot, status_code=202)
    def start_batch(req: BatchRequest):
        items = [WorkItem(image_url=i.image_url, note=i.note, file_name=i.file_name) for i in req.items]
        service.start_batch(items)
        return service.snapshot()

    @app.get("/batch", response_model=BatchSnapshot)
    def get_batch():
        return service.snapshot()

    @app.delete("/batch", response_model=BatchSnapshot)
    def reset_batch():
        service.reset_batch()
        return service.snapshot()

    @app.post("/batch/cancel")
    def cancel_batch():
        return {"cancelled": service.cancel()}

    @app.post("/batch/retry-failed", response_model=BatchSnapshot, status_code=202)
    def retry_failed():
        service.retry_failed()
        return service.snapshot()

    @app.post("/batch/retry/{item_id}", response_model=ResultRecord)
    def retry_one(item_id: str):
        event = service.retry_one(item_id)
        if event is None:
            record = service.state.batch.get_result(item_id)
            if record is None:
                raise HTTPException(status_code=404, detail=f"Unknown item {item_id}")
            return record
        return event.record

    @app.get("/batch/export/csv")
    def export_csv():
        content = service.export_csv()
        headers = {"Content-Disposition": f'attachment; filename="{export_filename()}"'}
        return Response(content=content.encode("utf-8"), media_type="text/csv; charset=utf-8", headers=headers)

    @app.get("/batch/export/table", response_class=PlainTextResponse)
    def export_table():
        return service.export_table()

    @app.get("/history", response_model=List[HistoryEntry])
    def get_history():
        return service.history()

    @app.delete("/history")
    def clear_history():
        service.clear_history()
        return {"status": ServiceStatus.OK.value}

    return app


def main(argv: Optional[list[str]] = None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    parser = argparse.ArgumentParser(description="Image Describer Server")
    parser.add_argument("--storage", type=str, default=str(default_path()), help="Settings/history file path")
    parser.add_argument("--delay", type=float, default=1.0, help="Seconds between batch items")
    parser.add_argument("--timeout", type=float, default=120, help="Provider request timeout in seconds")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host")
    parser.add_argument("--port", type=int, default=8000, help="Port")
    args = parser.parse_args(argv)

    storage = LocalStore(args.storage)
    state = AppState(settings=resolve_settings(storage), storage=storage)
    service = DescriberService(state, delay=args.delay, request_timeout=args.timeout)
    logging.info("Server starting with storage=%s, model=%s, delay=%.1f",
                 args.storage, state.settings.model, args.delay)

    uvicorn.run(
        create_app(service),
        host=args.host,
        port=args.port,
        log_level="warning",
        access_log=False,
    )


if __name__ == "__main__":
    main()
