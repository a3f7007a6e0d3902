# helpdesk_console/workflow/services.py
from typing import Any, Protocol

from helpdesk_console.core.errors import RemoteError
from helpdesk_console.core.http import RemoteClient, normalize, normalize_all, unwrap_list
from helpdesk_console.workflow.schemas import (
    Execution,
    Workflow,
    WorkflowCreate,
    WorkflowStatistics,
    WorkflowStatus,
)

# console filter name -> query parameter of the workflow service
EXECUTION_PARAMS = {
    "workflow_id": "workflow_id",
    "status": "status",
    "date_from": "start_date",
    "date_to": "end_date",
}


class WorkflowService(Protocol):
    async def list_workflows(self) -> list[Workflow]: ...

    async def get_workflow(self, workflow_id: str) -> Workflow: ...

    async def create_workflow(self, payload: WorkflowCreate) -> Workflow: ...

    async def set_workflow_status(self, workflow_id: str, status: WorkflowStatus) -> Workflow: ...

    async def list_executions(self, filters: dict[str, Any]) -> list[Execution]: ...

    async def get_execution(self, execution_id: str) -> Execution: ...

    async def trigger_execution(
        self, workflow_id: str, context: dict[str, Any] | None = None
    ) -> Execution: ...

    async def cancel_execution(self, execution_id: str) -> None: ...

    async def get_statistics(self) -> WorkflowStatistics: ...


class HttpWorkflowService(RemoteClient):
    """Client for the workflow service.

    Responses come wrapped as ``{"success": bool, "data": ..., "message": str}``;
    a false ``success`` is a failure even on a 2xx status.
    """

    service_name = "workflow service"

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        payload = await self._request(method, path, **kwargs)
        if isinstance(payload, dict) and "success" in payload:
            if not payload["success"]:
                raise RemoteError(payload.get("message") or "Workflow service request failed")
            return payload.get("data")
        return payload

    async def list_workflows(self):
        items, _ = unwrap_list(await self._call("GET", "/workflows"))
        return normalize_all(Workflow, items)

    async def get_workflow(self, workflow_id):
        return normalize(Workflow, await self._call("GET", f"/workflows/{workflow_id}"))

    async def create_workflow(self, payload):
        body = payload.model_dump(mode="json")
        body["steps"] = [{"name": s["name"], "type": s["kind"]} for s in body["steps"]]
        return normalize(Workflow, await self._call("POST", "/workflows", json=body))

    async def set_workflow_status(self, workflow_id, status):
        body = {"status": WorkflowStatus(status).value}
        return normalize(Workflow, await self._call("PATCH", f"/workflows/{workflow_id}/status", json=body))

    async def list_executions(self, filters):
        params = {EXECUTION_PARAMS[k]: v for k, v in filters.items() if k in EXECUTION_PARAMS and v}
        items, _ = unwrap_list(await self._call("GET", "/executions", params=params))
        return normalize_all(Execution, items)

    async def get_execution(self, execution_id):
        return normalize(Execution, await self._call("GET", f"/executions/{execution_id}"))

    async def trigger_execution(self, workflow_id, context=None):
        payload = await self._call("POST", f"/workflows/{workflow_id}/execute", json={"context": context or {}})
        if isinstance(payload, dict):
            payload = {"workflow_id": workflow_id, **payload}
        return normalize(Execution, payload)

    async def cancel_execution(self, execution_id):
        await self._call("POST", f"/executions/{execution_id}/cancel")

    async def get_statistics(self):
        return normalize(WorkflowStatistics, await self._call("GET", "/workflows/statistics"))
