"""
MCP Host Bridge

Capture and execution collaborators backed by the Playwright MCP host's
``/execute`` endpoint. One browser session on the host per exploration session.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import requests

from compass.src.explorer.models import (
    ActionKind,
    ActionProposal,
    CapturedState,
    ElementDescriptor,
    ExecutionOutcome,
    FormDescriptor,
    SessionContext,
)
from compass.src.utils.config import CONFIG, MCPConfig

CLICKABLE_TYPES = ("clickable", "link", "button")
INPUT_TAGS = ("input", "textarea", "select")

# Host action names for each proposal kind
HOST_ACTIONS = {
    ActionKind.CLICK: "click",
    ActionKind.TYPE: "fill",
    ActionKind.HOVER: "hover",
    ActionKind.SCROLL: "scroll",
    ActionKind.NAVIGATE: "goto",
    ActionKind.BACK: "evaluate",
}


class McpHostError(RuntimeError):
    """The MCP host answered, but with an error payload."""


def element_from_payload(raw: Dict[str, Any]) -> ElementDescriptor:
    attrs = {str(k): str(v) for k, v in (raw.get("attributes") or {}).items() if v is not None}
    tag = str(raw.get("tag", "")).lower()
    element_type = raw.get("element_type", "")
    return ElementDescriptor(
        element_id=attrs.get("id", ""),
        tag=tag,
        role=attrs.get("role"),
        type=attrs.get("type"),
        text=str(raw.get("text", ""))[:100],
        href=attrs.get("href"),
        selector=str(raw.get("selector", "")),
        name=attrs.get("name"),
        placeholder=attrs.get("placeholder"),
        aria_label=attrs.get("aria-label"),
        class_name=attrs.get("class", ""),
        attributes=attrs,
        is_clickable=element_type in CLICKABLE_TYPES or tag in ("a", "button"),
        is_inputable=element_type == "input" or tag in INPUT_TAGS,
    )


def infer_forms(elements: List[ElementDescriptor]) -> List[FormDescriptor]:
    """The host reports a flat element list; group text-like inputs and the first submit into one form."""
    inputs = [
        e for e in elements if e.tag in ("input", "textarea") and (e.type or "text").lower() not in ("submit", "button")
    ]
    if not inputs:
        return []
    submit = next(
        (e for e in elements if (e.type or "").lower() == "submit" or (e.tag == "button" and e.attributes.get("type") == "submit")),
        None,
    )
    return [FormDescriptor(form_id="page-form", inputs=inputs, submit=submit)]


class McpHostBridge:
    """Implements both the state-capture and action-execution collaborators."""

    def __init__(self, config: MCPConfig | None = None, session_prefix: str = "compass") -> None:
        self.config = config or CONFIG.mcp
        self.session_prefix = session_prefix

    def _host_session(self, context: SessionContext) -> str:
        return f"{self.session_prefix}-{context.session_id}"

    def _post(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        response = requests.post(
            f"{self.config.host_url}/execute",
            json={"action": action, "params": params},
            timeout=self.config.request_timeout,
        )
        response.raise_for_status()
        data = response.json() if response.content else {}
        return data if isinstance(data, dict) else {}

    def capture_state_sync(self, context: SessionContext) -> CapturedState:
        params: Dict[str, Any] = {"session_id": self._host_session(context)}
        if context.navigate_to:
            params["url"] = context.navigate_to

        data = self._post("analyze_page", params)
        if data.get("error"):
            raise McpHostError(f"analyze_page failed: {data['error']}")

        raw_elements = data.get("elements") or data.get("dom_elements") or []
        elements = [element_from_payload(raw) for raw in raw_elements if isinstance(raw, dict)]
        url = data.get("url") or context.current_url or context.start_url
        return CapturedState(
            url=url,
            title=str(data.get("title", "")),
            elements=elements,
            forms=infer_forms(elements),
        )

    def execute_sync(self, action: ActionProposal, context: SessionContext) -> ExecutionOutcome:
        params: Dict[str, Any] = {
            "session_id": self._host_session(context),
            "action": HOST_ACTIONS[action.kind],
            "url": context.current_url or "",
            "selector": action.target.selector if action.target else "",
        }
        if action.kind is ActionKind.BACK:
            params["value"] = "history.back()"
        elif action.value:
            params["value"] = action.value

        try:
            data = self._post("execute_action", params)
        except requests.RequestException as exc:
            return ExecutionOutcome(success=False, error_message=str(exc))

        if data.get("success"):
            return ExecutionOutcome(success=True)
        error = data.get("error") or data.get("detail") or f"Unknown error (response: {data})"
        return ExecutionOutcome(success=False, error_message=str(error))

    async def capture_state(self, context: SessionContext) -> CapturedState:
        return await asyncio.to_thread(self.capture_state_sync, context)

    async def execute(self, action: ActionProposal, context: SessionContext) -> ExecutionOutcome:
        return await asyncio.to_thread(self.execute_sync, action, context)
