import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from config import Settings, get_settings, settings
from exceptions import SalaryServiceError
from extraction import JobDataExtractor
from relay import SalaryStreamRelay

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("salary_estimator")

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    **CORS_HEADERS,
}


# Pydantic models
class ExtractRequest(BaseModel):
    url: Optional[str] = None


class EstimateRequest(BaseModel):
    jobData: Optional[Any] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI"""
    logger.info("Starting application...")
    # Shared connection pool for upstream calls; timeouts are set per request
    app.state.http_client = httpx.AsyncClient()
    yield
    logger.info("Shutting down application...")
    await app.state.http_client.aclose()


app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION, lifespan=lifespan)

# CORS for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=CORS_ALLOW_HEADERS,
)


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=CORS_HEADERS,
    )


def preflight() -> PlainTextResponse:
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request body for {request.url.path}: {exc.errors()}")
    return error_response(400, "Invalid request body")


@app.get("/health")
async def health():
    return JSONResponse({"status": "ok", "version": settings.API_VERSION}, headers=CORS_HEADERS)


@app.options("/extract-job-data")
@app.options("/estimate-salary")
@app.options("/estimate-salary-stream")
async def options_handler():
    return preflight()


@app.post("/extract-job-data")
async def extract_job_data(
    payload: ExtractRequest,
    cfg: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    url = (payload.url or "").strip()
    if not url:
        return error_response(400, "Job posting URL is required")
    try:
        extractor = JobDataExtractor.from_settings(cfg, client)
        job_data = await extractor.extract(url)
    except SalaryServiceError as e:
        return error_response(500, str(e))
    return JSONResponse({"success": True, "data": job_data}, headers=CORS_HEADERS)


@app.post("/estimate-salary")
async def estimate_salary(
    payload: EstimateRequest,
    cfg: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not payload.jobData:
        return error_response(400, "Job data is required")
    try:
        relay = SalaryStreamRelay.from_settings(cfg, client)
        estimate = await relay.estimate(payload.jobData)
    except (SalaryServiceError, httpx.HTTPError) as e:
        logger.error(f"Salary estimate failed: {e}")
        return error_response(500, str(e) or type(e).__name__)
    return JSONResponse({"success": True, "data": estimate.to_json()}, headers=CORS_HEADERS)


@app.post("/estimate-salary-stream")
async def estimate_salary_stream(
    payload: EstimateRequest,
    cfg: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not payload.jobData:
        return error_response(400, "Job data is required")
    # Everything up to the first upstream byte can still become an HTTP error
    try:
        relay = SalaryStreamRelay.from_settings(cfg, client)
        stream = await relay.open_stream(payload.jobData)
    except (SalaryServiceError, httpx.HTTPError) as e:
        logger.error(f"Salary stream could not start: {e}")
        return error_response(500, str(e) or type(e).__name__)

    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
        # Runs after the body is sent or the client disconnects
        background=BackgroundTask(stream.aclose),
    )


def main(host: Optional[str] = None, port: Optional[int] = None) -> None:
    uvicorn.run(app, host=host or settings.HOST, port=port or settings.PORT)


if __name__ == "__main__":
    main()
