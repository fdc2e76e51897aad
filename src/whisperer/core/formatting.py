"""Human-readable narration for tool calls."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from loguru import logger

# tool name -> (success title, failure title)
_TITLES: dict[str, tuple[str, str]] = {
    "jira_get_issue": ("Retrieved details for issue {issue_key}", "Failed to retrieve details for issue {issue_key}"),
    "jira_search": ("Search {limit} results for JQL '{jql}'", "Failed to search with JQL '{jql}'"),
    "jira_search_fields": ("Retrieved {limit} fields matching '{keyword}'", "Failed to find fields matching '{keyword}'"),
    "jira_get_project_issues": (
        "Retrieved {limit} issues for project {project_key}",
        "Failed to retrieve issues for project {project_key}",
    ),
    "jira_get_epic_issues": (
        "Retrieved {limit} issues linked to epic {epic_key}",
        "Failed to retrieve issues linked to epic {epic_key}",
    ),
    "jira_get_transitions": ("Available status transitions for {issue_key}", "Failed to get transitions for {issue_key}"),
    "jira_get_worklog": ("Worklog entries for {issue_key}", "Failed to get worklog for {issue_key}"),
    "jira_download_attachments": (
        "Downloaded attachments from {issue_key} to {target_dir}",
        "Failed to download attachments from {issue_key}",
    ),
    "jira_get_agile_boards": ("Retrieved {limit} agile boards", "Failed to retrieve agile boards"),
    "jira_get_board_issues": (
        "Retrieved {limit} issues from board {board_id} (JQL: '{jql}')",
        "Failed to retrieve issues from board {board_id}",
    ),
    "jira_get_sprints_from_board": (
        "Retrieved {limit} sprints from board {board_id}",
        "Failed to retrieve sprints from board {board_id}",
    ),
    "jira_create_sprint": (
        "Created new sprint '{sprint_name}' for board {board_id}",
        "Failed to create sprint '{sprint_name}'",
    ),
    "jira_get_sprint_issues": (
        "Retrieved {limit} issues from sprint {sprint_id}",
        "Failed to retrieve issues from sprint {sprint_id}",
    ),
    "jira_update_sprint": ("Updated sprint {sprint_id}", "Failed to update sprint {sprint_id}"),
    "jira_create_issue": (
        "Created new {issue_type} in project {project_key}: '{summary}'",
        "Failed to create {issue_type} in project {project_key}",
    ),
    "jira_batch_create_issues": ("Created issues", "Failed to create issues"),
    "jira_update_issue": ("Updated issue {issue_key} with fields", "Failed to update issue {issue_key}"),
    "jira_delete_issue": ("Deleted issue {issue_key}", "Failed to delete issue {issue_key}"),
    "jira_add_comment": ("Added comment to {issue_key}: {comment}", "Failed to add comment to {issue_key}"),
    "jira_add_worklog": ("Added worklog ({time_spent}) to {issue_key}", "Failed to add worklog to {issue_key}"),
    "jira_link_to_epic": (
        "Linked issue {issue_key} to epic {epic_key}",
        "Failed to link issue {issue_key} to epic {epic_key}",
    ),
    "jira_create_issue_link": (
        "Created {link_type} link between {inward_issue_key} and {outward_issue_key}",
        "Failed to create {link_type} link between {inward_issue_key} and {outward_issue_key}",
    ),
    "jira_remove_issue_link": ("Removed issue link {link_id}", "Failed to remove issue link {link_id}"),
    "jira_get_link_types": ("Available link types", "Failed to get link types"),
    "jira_transition_issue": (
        "Transitioned issue {issue_key} (transition ID: {transition_id})",
        "Failed to transition issue {issue_key}",
    ),
}


class _Args(dict[str, Any]):
    def __missing__(self, key: str) -> str:
        return ""


def _display(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def compact_json(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        logger.error("format.json.error value_type={}", type(value).__name__)
        return repr(value)


def quote_result(text: str) -> str:
    return "\n".join(f">_{line}_" for line in text.split("\n"))


class ToolMessageFormatter:
    """Formats tool progress lines for the chat surface."""

    def title(self, tool_name: str, arguments: Mapping[str, Any], *, failed: bool = False) -> str:
        templates = _TITLES.get(tool_name)
        if templates is None:
            return "Operation failed" if failed else "Operation completed"
        args = _Args({key: _display(value) for key, value in arguments.items()})
        title = templates[1 if failed else 0].format_map(args)
        if not failed and tool_name in {"jira_add_worklog", "jira_transition_issue"} and args["comment"]:
            title += f" with comment: {args['comment']}"
        return title

    def calling_line(self, tool_name: str, arguments: Mapping[str, Any]) -> str:
        line = f"🔄 _Calling Tool *{tool_name}*_"
        if arguments:
            line += f"\n>_{compact_json(dict(arguments))}_"
        return line

    def result_block(self, tool_name: str, arguments: Mapping[str, Any], content: str, *, failed: bool = False) -> str:
        emoji = "❌" if failed else "✅️"
        title = self.title(tool_name, arguments, failed=failed)
        return f"{emoji} _{title}_\n{quote_result(content)}"
