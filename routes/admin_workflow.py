from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from app.workflow.automation import run_auto_workflow
from app.workflow.factory import Workflow
from deps.admin import require_admin
from deps.workflow import workflow_dep
from schemas import AutoWorkflowRequest
from services.reconcile import run_reconcile

router = APIRouter(prefix="/v1/admin/workflow", tags=["admin_workflow"])


@router.post("/run")
def run_workflow_sweep(
    body: Optional[AutoWorkflowRequest] = None,
    _admin=Depends(require_admin),
    wf: Workflow = Depends(workflow_dep),
):
    return run_auto_workflow(wf.service, wf.store, body.today if body else None)


@router.post("/reconcile")
def run_payment_reconcile(
    _admin=Depends(require_admin),
    wf: Workflow = Depends(workflow_dep),
):
    return run_reconcile(wf.reconciler)
