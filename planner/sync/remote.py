"""
Remote data API used by the sync core.

``RemoteApi`` is the narrow contract the executor and the query loaders
depend on; ``HttpRemoteApi`` implements it against the planner's HTTP routes
with httpx. All calls assume an already-authenticated caller: the bearer
token is attached to every request.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

from ..api.schemas import NoteOut, TaskOut, WeeklySummaryOut, WeekSettingsOut
from ..domain.errors import RemoteCallFailed, TaskNotFound

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteApi(Protocol):
    """Entity/verb operations of the remote data store."""

    async def get_tasks_for_week(self, start_date: str, end_date: str) -> List[TaskOut]:
        ...

    async def create_task(
        self, content: str, date: str, time_block: str, sort_order: Optional[int] = None
    ) -> TaskOut:
        ...

    async def update_task(self, task_id: int, **changes: Any) -> TaskOut:
        """Raises TaskNotFound if the task vanished."""
        ...

    async def delete_task(self, task_id: int) -> bool:
        """False when the task was already gone."""
        ...

    async def get_note(self, week_id: str) -> Optional[NoteOut]:
        ...

    async def upsert_note(self, week_id: str, content: Optional[str]) -> NoteOut:
        ...

    async def get_weekly_summary(self, week_id: str) -> Optional[WeeklySummaryOut]:
        ...

    async def upsert_weekly_summary(self, week_id: str, **fields: Any) -> WeeklySummaryOut:
        ...

    async def get_week_settings(self, week_id: str) -> Optional[WeekSettingsOut]:
        ...

    async def update_column_widths(
        self, week_id: str, column_widths: Dict[int, int]
    ) -> WeekSettingsOut:
        ...

    async def update_custom_content(self, week_id: str, **fields: Any) -> WeekSettingsOut:
        ...

    async def upload_custom_image(
        self, week_id: str, image_base64: str, mime_type: str
    ) -> str:
        ...


class HttpRemoteApi:
    """RemoteApi over the planner HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise RemoteCallFailed(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {detail}")
            raise RemoteCallFailed(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response.json()

    # --- Tasks ---

    async def get_tasks_for_week(self, start_date: str, end_date: str) -> List[TaskOut]:
        data = await self._request(
            "GET", "/api/tasks", params={"start_date": start_date, "end_date": end_date}
        )
        return [TaskOut.model_validate(item) for item in data]

    async def create_task(
        self, content: str, date: str, time_block: str, sort_order: Optional[int] = None
    ) -> TaskOut:
        body: Dict[str, Any] = {"content": content, "date": date, "time_block": time_block}
        if sort_order is not None:
            body["sort_order"] = sort_order
        return TaskOut.model_validate(await self._request("POST", "/api/tasks", json=body))

    async def update_task(self, task_id: int, **changes: Any) -> TaskOut:
        try:
            data = await self._request("PATCH", f"/api/tasks/{task_id}", json=changes)
        except RemoteCallFailed as e:
            if e.status_code == 404:
                raise TaskNotFound(task_id) from e
            raise
        return TaskOut.model_validate(data)

    async def delete_task(self, task_id: int) -> bool:
        data = await self._request("DELETE", f"/api/tasks/{task_id}")
        return bool(data.get("deleted"))

    # --- Notes ---

    async def get_note(self, week_id: str) -> Optional[NoteOut]:
        data = await self._request("GET", f"/api/notes/{week_id}")
        return NoteOut.model_validate(data) if data else None

    async def upsert_note(self, week_id: str, content: Optional[str]) -> NoteOut:
        data = await self._request("PUT", f"/api/notes/{week_id}", json={"content": content})
        return NoteOut.model_validate(data)

    # --- Weekly summary ---

    async def get_weekly_summary(self, week_id: str) -> Optional[WeeklySummaryOut]:
        data = await self._request("GET", f"/api/weekly-summary/{week_id}")
        return WeeklySummaryOut.model_validate(data) if data else None

    async def upsert_weekly_summary(self, week_id: str, **fields: Any) -> WeeklySummaryOut:
        data = await self._request("PUT", f"/api/weekly-summary/{week_id}", json=fields)
        return WeeklySummaryOut.model_validate(data)

    # --- Week settings ---

    async def get_week_settings(self, week_id: str) -> Optional[WeekSettingsOut]:
        data = await self._request("GET", f"/api/week-settings/{week_id}")
        return WeekSettingsOut.model_validate(data) if data else None

    async def update_column_widths(
        self, week_id: str, column_widths: Dict[int, int]
    ) -> WeekSettingsOut:
        body = {"column_widths": {str(k): v for k, v in column_widths.items()}}
        data = await self._request(
            "PUT", f"/api/week-settings/{week_id}/column-widths", json=body
        )
        return WeekSettingsOut.model_validate(data)

    async def update_custom_content(self, week_id: str, **fields: Any) -> WeekSettingsOut:
        data = await self._request(
            "PUT", f"/api/week-settings/{week_id}/custom-content", json=fields
        )
        return WeekSettingsOut.model_validate(data)

    async def upload_custom_image(
        self, week_id: str, image_base64: str, mime_type: str
    ) -> str:
        data = await self._request(
            "POST",
            f"/api/week-settings/{week_id}/custom-image",
            json={"image_base64": image_base64, "mime_type": mime_type},
        )
        return data["url"]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("detail"):
            return str(body["detail"])
    return str(body)[:200]
