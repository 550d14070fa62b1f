from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from offerflow.application import AdvanceResult, get_offer_coordinator
from offerflow.core.presentation import DEFAULT_STATUS_COLOR, STATUS_COLORS
from offerflow.core.schema import step_payload_adapter
from offerflow.domain import STEP_LABELS, WORKFLOW_STEPS, OfferWorkflow

router = APIRouter(prefix="/offers", tags=["offers"])


def _serialise_workflow(workflow: OfferWorkflow) -> dict[str, Any]:
    coordinator = get_offer_coordinator()
    data = asdict(workflow)
    badge = coordinator.candidate_workflow_status(workflow)
    data["step_number"] = workflow.step_number
    data["step_label"] = STEP_LABELS[workflow.current_step]
    data["status_color"] = coordinator.status_color(workflow.status)
    data["candidate_status"] = asdict(badge)
    data["busy"] = coordinator.is_busy(workflow.id)
    return data


async def _load(workflow_id: str) -> OfferWorkflow:
    workflow = await get_offer_coordinator().get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="workflow not found")
    return workflow


async def _outcome(result: AdvanceResult) -> dict[str, Any]:
    workflow = None
    if result.workflow_id:
        workflow = await get_offer_coordinator().get_workflow(result.workflow_id)
    return {
        "success": result.success,
        "message": result.message,
        "workflow": _serialise_workflow(workflow) if workflow else None,
    }


@router.get("")
async def list_workflows() -> dict:
    coordinator = get_offer_coordinator()
    workflows = await coordinator.list_workflows()
    return {"items": [_serialise_workflow(item) for item in workflows]}


@router.post("")
async def initiate_workflow(payload: dict) -> dict:
    application_id = payload.get("job_application_id")
    if not application_id:
        raise HTTPException(status_code=400, detail="job_application_id is required")
    coordinator = get_offer_coordinator()
    workflow = await coordinator.initiate_workflow(str(application_id), created_by=payload.get("created_by"))
    if workflow is None:
        raise HTTPException(status_code=409, detail="offer workflow could not be created")
    return _serialise_workflow(workflow)


@router.get("/steps")
async def list_steps() -> dict:
    return {
        "items": [
            {"id": step, "name": STEP_LABELS[step], "step": index}
            for index, step in enumerate(WORKFLOW_STEPS, start=1)
        ]
    }


@router.get("/status-colors")
async def get_status_colors() -> dict:
    return {"colors": dict(STATUS_COLORS), "default": DEFAULT_STATUS_COLOR}


@router.get("/pending")
async def list_pending_records() -> dict:
    coordinator = get_offer_coordinator()
    return {"items": [record.to_dict() for record in coordinator.pending_records()]}


@router.get("/email-status/{request_id}")
async def get_email_status(request_id: str) -> dict:
    status = await get_offer_coordinator().check_email_status(request_id)
    if status is None:
        raise HTTPException(status_code=502, detail="email status unavailable")
    return status.model_dump()


@router.get("/{workflow_id}")
async def get_workflow(workflow_id: str) -> dict:
    workflow = await _load(workflow_id)
    return _serialise_workflow(workflow)


@router.post("/{workflow_id}/advance")
async def advance_workflow(workflow_id: str, payload: dict[str, Any]) -> dict:
    try:
        step_payload = step_payload_adapter.validate_python(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False)) from exc
    await _load(workflow_id)
    result = await get_offer_coordinator().advance(workflow_id, step_payload)
    return await _outcome(result)


@router.post("/{workflow_id}/background-check")
async def run_background_check(workflow_id: str) -> dict:
    workflow = await _load(workflow_id)
    result = await get_offer_coordinator().run_background_check(workflow)
    return await _outcome(result)


@router.post("/{workflow_id}/generate")
async def generate_offer(workflow_id: str, payload: dict | None = None) -> dict:
    amount = str((payload or {}).get("amount") or "")
    workflow = await _load(workflow_id)
    result = await get_offer_coordinator().generate_offer(workflow, amount)
    return await _outcome(result)


@router.post("/{workflow_id}/approve")
async def approve_offer(workflow_id: str, payload: dict | None = None) -> dict:
    comments = str((payload or {}).get("comments") or "")
    workflow = await _load(workflow_id)
    result = await get_offer_coordinator().approve_offer(workflow, comments)
    return await _outcome(result)


@router.post("/{workflow_id}/send")
async def send_to_candidate(workflow_id: str) -> dict:
    workflow = await _load(workflow_id)
    result = await get_offer_coordinator().send_to_candidate(workflow)
    return await _outcome(result)


@router.post("/{workflow_id}/response")
async def record_response(workflow_id: str, payload: dict) -> dict:
    response = payload.get("response")
    if not response:
        raise HTTPException(status_code=400, detail="response is required")
    workflow = await _load(workflow_id)
    result = await get_offer_coordinator().record_response(
        workflow,
        str(response),
        comment=payload.get("comment"),
        final_amount=payload.get("final_offer_amount"),
        currency=payload.get("final_offer_currency"),
    )
    return await _outcome(result)


@router.post("/{workflow_id}/retry")
async def retry_pending(workflow_id: str) -> dict:
    await _load(workflow_id)
    result = await get_offer_coordinator().retry_pending(workflow_id)
    return await _outcome(result)
