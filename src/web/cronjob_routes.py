"""HTTP routes for job definitions and the live scheduler."""

from __future__ import annotations

import logging

from aiohttp import web
from pydantic import ValidationError

from src.scheduler.models import JobDefinition, make_job_id
from src.scheduler.payloads import PayloadError, validate_job_data
from src.web.context import json_error, read_json, services_of
from src.web.schemas import CreateJobRequest, UpdateJobRequest, error_message

logger = logging.getLogger(__name__)

_NOT_FOUND = "Cron job not found"

# Columns that cannot be cleared through an update.
_NOT_NULL = ("name", "description", "cron_expression", "job_type", "is_active")


async def _list(request: web.Request) -> web.Response:
    """GET /cronjobs: newest first."""
    jobs = await services_of(request).jobs.list_jobs()
    return web.json_response({"cronJobs": [job.to_dict() for job in jobs]})


async def _get(request: web.Request) -> web.Response:
    """GET /cronjobs/{id}"""
    job = await services_of(request).jobs.get_job(request.match_info["id"])
    if job is None:
        return json_error(_NOT_FOUND, 404)
    return web.json_response({"cronJob": job.to_dict()})


async def _create(request: web.Request) -> web.Response:
    """POST /cronjobs: persist a definition and schedule it when active."""
    body = await read_json(request)
    if body is None:
        return json_error("invalid JSON", 400)
    try:
        data = CreateJobRequest.model_validate(body)
    except ValidationError as exc:
        return json_error(error_message(exc), 400)

    services = services_of(request)
    job = await services.jobs.add_job(
        JobDefinition(
            id=make_job_id(),
            name=data.name,
            description=data.description,
            cron_expression=data.cron_expression,
            job_type=data.job_type,
            job_data=data.job_data,
            is_active=data.is_active,
            created_by=data.created_by,
        )
    )
    if job.is_active:
        await services.engine.add_job(job)

    state = "started" if job.is_active else "created as inactive"
    await services.notifications.notify_job_status(
        job.id, "started", f'Cron job "{job.name}" created and {state}'
    )
    # add_job may have deactivated an already-expired one-time job
    job = await services.jobs.get_job(job.id) or job
    return web.json_response({"cronJob": job.to_dict()}, status=201)


async def _update(request: web.Request) -> web.Response:
    """PUT /cronjobs/{id}: partial update, then reschedule."""
    job_id = request.match_info["id"]
    services = services_of(request)
    existing = await services.jobs.get_job(job_id)
    if existing is None:
        return json_error(_NOT_FOUND, 404)

    body = await read_json(request)
    if body is None:
        return json_error("invalid JSON", 400)
    try:
        data = UpdateJobRequest.model_validate(body)
    except ValidationError as exc:
        return json_error(error_message(exc), 400)

    changes = {
        key: value
        for key, value in data.changes().items()
        if value is not None or key not in _NOT_NULL
    }
    if "job_type" in changes or "job_data" in changes:
        error = validate_job_data(
            changes.get("job_type", existing.job_type),
            changes.get("job_data", existing.job_data),
        )
        if error:
            return json_error(f"Invalid jobData: {error}", 400)

    job = await services.jobs.update_job(job_id, **changes) if changes else existing
    if job is None:
        return json_error(_NOT_FOUND, 404)
    await services.engine.update_job(job_id, job)
    job = await services.jobs.get_job(job_id) or job
    return web.json_response({"cronJob": job.to_dict()})


async def _delete(request: web.Request) -> web.Response:
    """DELETE /cronjobs/{id}"""
    job_id = request.match_info["id"]
    services = services_of(request)
    if await services.jobs.get_job(job_id) is None:
        return json_error(_NOT_FOUND, 404)

    await services.engine.remove_job(job_id)
    await services.jobs.delete_job(job_id)
    return web.json_response({"message": "Cron job deleted successfully"})


async def _start(request: web.Request) -> web.Response:
    """POST /cronjobs/{id}/start: activate and schedule."""
    job_id = request.match_info["id"]
    services = services_of(request)
    job = await services.jobs.set_active(job_id, True)
    if job is None:
        return json_error(_NOT_FOUND, 404)

    await services.engine.add_job(job)
    await services.notifications.notify_job_status(
        job.id, "started", f'Cron job "{job.name}" started successfully'
    )
    job = await services.jobs.get_job(job_id) or job
    return web.json_response(
        {"cronJob": job.to_dict(), "message": "Cron job started successfully"}
    )


async def _stop(request: web.Request) -> web.Response:
    """POST /cronjobs/{id}/stop: deactivate and unschedule."""
    job_id = request.match_info["id"]
    services = services_of(request)
    job = await services.jobs.set_active(job_id, False)
    if job is None:
        return json_error(_NOT_FOUND, 404)

    await services.engine.remove_job(job_id)
    await services.notifications.notify_job_status(
        job.id, "stopped", f'Cron job "{job.name}" stopped successfully'
    )
    return web.json_response(
        {"cronJob": job.to_dict(), "message": "Cron job stopped successfully"}
    )


async def _execute(request: web.Request) -> web.Response:
    """POST /cronjobs/{id}/execute: run the body once, now."""
    job_id = request.match_info["id"]
    services = services_of(request)
    job = await services.jobs.get_job(job_id)
    if job is None:
        return json_error(_NOT_FOUND, 404)

    try:
        await services.engine.execute_direct(job.job_type, job.job_data)
    except PayloadError as exc:
        return json_error(f"Invalid jobData: {exc}", 400)
    except Exception:
        logger.exception("Direct execution failed: '%s' (%s)", job.name, job_id)
        await services.notifications.notify_job_status(
            job.id, "failed", f'Cron job "{job.name}" failed'
        )
        return json_error("Failed to execute cron job", 500)

    await services.notifications.notify_job_status(
        job.id, "executed", f'Cron job "{job.name}" executed'
    )
    return web.json_response({"message": f'Cron job "{job.name}" executed successfully'})


async def _active_in_memory(request: web.Request) -> web.Response:
    """GET /cronjobs/active-in-memory"""
    active = services_of(request).engine.list_active()
    return web.json_response({"activeJobsInMemory": active})


def register_routes(app: web.Application) -> None:
    # Static paths first so they win over /cronjobs/{id}.
    app.router.add_get("/cronjobs/active-in-memory", _active_in_memory)
    app.router.add_get("/cronjobs", _list)
    app.router.add_post("/cronjobs", _create)
    app.router.add_get("/cronjobs/{id}", _get)
    app.router.add_put("/cronjobs/{id}", _update)
    app.router.add_delete("/cronjobs/{id}", _delete)
    app.router.add_post("/cronjobs/{id}/start", _start)
    app.router.add_post("/cronjobs/{id}/stop", _stop)
    app.router.add_post("/cronjobs/{id}/execute", _execute)
