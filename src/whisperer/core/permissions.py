"""Write-permission gate for tool calls."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from loguru import logger

from whisperer.errors import PermissionDenied

WRITE_TOOLS: frozenset[str] = frozenset({
    "jira_create_issue",
    "jira_batch_create_issues",
    "jira_update_issue",
    "jira_delete_issue",
    "jira_add_comment",
    "jira_add_worklog",
    "jira_link_to_epic",
    "jira_create_issue_link",
    "jira_remove_issue_link",
    "jira_transition_issue",
    "jira_create_sprint",
    "jira_update_sprint",
    "confluence_add_label",
    "confluence_create_page",
    "confluence_update_page",
    "confluence_delete_page",
})


class Decision(StrEnum):
    ALLOWED = "allowed"
    DENIED = "denied"


class PermissionGate:
    """Deny mutating tools to users without a personal token."""

    def __init__(self, write_tools: Iterable[str] = WRITE_TOOLS) -> None:
        self._write_tools = frozenset(write_tools)

    @property
    def write_tools(self) -> frozenset[str]:
        return self._write_tools

    def is_mutating(self, tool_name: str) -> bool:
        return tool_name in self._write_tools

    def check(self, tool_name: str, credential: str | None) -> Decision:
        if self.is_mutating(tool_name) and not credential:
            return Decision.DENIED
        return Decision.ALLOWED

    def enforce(self, tool_name: str, credential: str | None) -> None:
        if self.check(tool_name, credential) is Decision.DENIED:
            logger.warning("permission.denied tool={}", tool_name)
            raise PermissionDenied(tool_name)
