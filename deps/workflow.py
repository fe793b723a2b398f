# deps/workflow.py
from app.workflow.factory import Workflow, get_workflow


def workflow_dep() -> Workflow:
    return get_workflow()
