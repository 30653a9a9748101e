"""Hook API: trigger deployments and poll their outcome."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import AnyUrl, BaseModel, field_validator

from hodor.api.badge import render_badge
from hodor.core.exceptions import HodorError, NotFoundError
from hodor.deploy.engine import FileDeployer
from hodor.deploy.models import JobStatus
from hodor.utils.logging import bind_request_context


router = APIRouter()
logger = structlog.get_logger()

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


_deployer: FileDeployer | None = None


def init_deployer(deployer: FileDeployer) -> FileDeployer:
    global _deployer
    _deployer = deployer
    return _deployer


def get_deployer() -> FileDeployer:
    if _deployer is None:
        raise RuntimeError("Deployer not initialized")
    return _deployer


ALLOWED_SCHEMES = ("http", "https", "s3")


class HookRequest(BaseModel):
    browser_download_url: AnyUrl
    tag: Optional[str] = ""

    @field_validator("browser_download_url")
    @classmethod
    def supported_scheme(cls, v: AnyUrl) -> AnyUrl:
        if v.scheme not in ALLOWED_SCHEMES:
            raise ValueError(f"unsupported url scheme {v.scheme!r}")
        return v


class HookAccepted(BaseModel):
    jobID: str


@router.post("/api/hook/{release_id}", response_model=HookAccepted)
async def hook_endpoint(release_id: str, payload: HookRequest, response: Response) -> HookAccepted:
    response.headers.update(CORS_HEADERS)
    bind_request_context(release_id=release_id)

    deployer = get_deployer()
    try:
        # sqlite write happens here, keep it off the event loop
        job_id = await run_in_threadpool(
            deployer.deploy, release_id, str(payload.browser_download_url), payload.tag or ""
        )
    except HodorError as exc:
        logger.warning("Deploy rejected", error=str(exc), code=exc.code)
        raise HTTPException(status_code=500, detail=f"failed to deploy: {exc}", headers=CORS_HEADERS)

    return HookAccepted(jobID=job_id)


@router.get("/api/status/{job_id}", response_model=JobStatus)
async def status_endpoint(job_id: str, response: Response) -> JobStatus:
    response.headers.update(CORS_HEADERS)

    deployer = get_deployer()
    try:
        return await run_in_threadpool(deployer.get_status, job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"failed to get status: {exc}", headers=CORS_HEADERS)
    except HodorError as exc:
        raise HTTPException(status_code=500, detail=f"failed to get status: {exc}", headers=CORS_HEADERS)


@router.get("/api/tags/{release_id}")
async def tags_endpoint(release_id: str, format: Optional[str] = Query(default=None)) -> Response:
    deployer = get_deployer()
    try:
        tag = await run_in_threadpool(deployer.get_latest_tag, release_id)
    except HodorError as exc:
        raise HTTPException(status_code=500, detail=f"failed to get tag: {exc}", headers=CORS_HEADERS)

    if format == "svg":
        return Response(
            content=render_badge("Deployed", tag),
            media_type="image/svg+xml;charset=utf-8",
            headers=CORS_HEADERS,
        )
    return Response(content=tag, media_type="text/plain", headers=CORS_HEADERS)
