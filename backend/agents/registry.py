"""
Tool registry for the Slack assistant.

Every tool is a GitHub operation exposed to the assistant as an OpenAI
function tool. Categories:
- READ: fetch pull requests, reviews, comments, contents
- WRITE: merge, review, comment, label - permanent actions on GitHub
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ToolCategory(Enum):
    """Categories of tools based on their side effects."""

    READ = "read"
    """Read-only GitHub calls."""

    WRITE = "write"
    """Calls that change state on GitHub."""


@dataclass
class ToolDefinition:
    """Definition of a tool available to the assistant."""

    name: str
    """Unique identifier for the tool; also the GitHubConnector method name."""

    description: str
    """Description shown to the model explaining when/how to use the tool."""

    parameters: dict[str, Any]
    """JSON Schema for the tool's arguments."""

    category: ToolCategory


TOOL_DEFINITIONS: dict[str, ToolDefinition] = {}


def register_tool(
    name: str,
    description: str,
    properties: dict[str, Any],
    required: list[str],
    category: ToolCategory,
) -> None:
    """Register a repository-scoped tool (``owner``/``repo`` are always added)."""
    TOOL_DEFINITIONS[name] = ToolDefinition(
        name=name,
        description=description,
        parameters={
            "type": "object",
            "properties": {**_REPO_PROPERTIES, **properties},
            "required": ["owner", "repo", *required],
        },
        category=category,
    )


_REPO_PROPERTIES: dict[str, Any] = {
    "owner": {
        "type": "string",
        "description": "The account owner of the repository. The name is not case sensitive.",
    },
    "repo": {
        "type": "string",
        "description": "The name of the repository without the .git extension. The name is not case sensitive.",
    },
}

_PULL_NUMBER: dict[str, Any] = {
    "pull_number": {
        "type": "integer",
        "description": "The number that identifies the pull request.",
    },
}

_ISSUE_NUMBER: dict[str, Any] = {
    "issue_number": {
        "type": "integer",
        "description": "The number that identifies the pull request or issue.",
    },
}

_COMMENT_ID: dict[str, Any] = {
    "comment_id": {
        "type": "integer",
        "description": "The unique identifier of the comment.",
    },
}


# -----------------------------------------------------------------------------
# READ tools
# -----------------------------------------------------------------------------

register_tool(
    name="list_pull_requests",
    description="Retrieve the open GitHub pull requests (PRs) of a repository.",
    properties={},
    required=[],
    category=ToolCategory.READ,
)

register_tool(
    name="get_pull_request",
    description="Get the details of a single pull request, including mergeability and size.",
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="list_reviews",
    description="List reviews for a pull request.",
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="list_pull_request_files",
    description=(
        "Retrieve the files changed by a pull request. The response includes "
        "not only the modified file but also the file diff (`patch` field)."
    ),
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="list_review_comments",
    description="List all review comments for a pull request, in ascending order by ID.",
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="list_issue_comments",
    description="List all issue comments for a pull request or issue, in ascending order by ID.",
    properties=_ISSUE_NUMBER,
    required=["issue_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="list_pull_request_commits",
    description="List up to 250 commits of a pull request.",
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.READ,
)

register_tool(
    name="get_contents",
    description="Get the contents of a file or directory in a repository.",
    properties={
        "path": {
            "type": "string",
            "description": "The path from the repository root.",
        },
        "ref": {
            "type": "string",
            "description": (
                "The name of the commit/branch/tag. Defaults to the repository's default "
                "branch. To see the contents of a pull request, pass its head branch."
            ),
        },
    },
    required=["path"],
    category=ToolCategory.READ,
)


# -----------------------------------------------------------------------------
# WRITE tools
# -----------------------------------------------------------------------------

register_tool(
    name="merge_pull_request",
    description="Merge a pull request into its base branch.",
    properties={
        **_PULL_NUMBER,
        "merge_method": {
            "type": "string",
            "description": "The merge method to use. Defaults to squash.",
            "enum": ["merge", "squash", "rebase"],
        },
    },
    required=["pull_number"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="update_pull_request_branch",
    description=(
        "Update the pull request branch with the latest upstream changes by "
        "merging HEAD from the base branch into the pull request branch."
    ),
    properties=_PULL_NUMBER,
    required=["pull_number"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="update_review_comment",
    description=(
        "Update a review comment on a pull request. The `comment_id` is the "
        "`id` returned by `list_review_comments`."
    ),
    properties={
        **_COMMENT_ID,
        "body": {"type": "string", "description": "The new text of the review comment."},
    },
    required=["comment_id", "body"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="delete_review_comment",
    description=(
        "Delete a review comment on a pull request. The `comment_id` is the "
        "`id` returned by `list_review_comments`."
    ),
    properties=_COMMENT_ID,
    required=["comment_id"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="request_reviewers",
    description="Request reviews for a pull request from a given set of users.",
    properties={
        **_PULL_NUMBER,
        "reviewers": {
            "type": "array",
            "description": "The GitHub logins of the reviewers to request.",
            "items": {"type": "string"},
            "minItems": 1,
        },
    },
    required=["pull_number", "reviewers"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="create_review",
    description=(
        "Create a review for a pull request. A user can only have one pending "
        "review per pull request. Comments must target lines of the diff "
        "(`patch`) returned by `list_pull_request_files`."
    ),
    properties={
        **_PULL_NUMBER,
        "body": {
            "type": "string",
            "description": "Required for REQUEST_CHANGES or COMMENT. The body text of the review.",
        },
        "event": {
            "type": "string",
            "description": "The review action: APPROVE, REQUEST_CHANGES, or COMMENT.",
            "enum": ["APPROVE", "REQUEST_CHANGES", "COMMENT"],
        },
        "comments": {
            "type": "array",
            "description": (
                "Review comments. Use line and side, and optionally start_line and "
                "start_side for a comment spanning several lines of the diff."
            ),
            "items": {
                "type": "object",
                "properties": {
                    "body": {"type": "string", "description": "The text of the review comment."},
                    "path": {"type": "string", "description": "The relative path of the file being commented on."},
                    "side": {
                        "type": "string",
                        "description": "LEFT for deletions, RIGHT for additions or unchanged context lines.",
                    },
                    "line": {
                        "type": "integer",
                        "description": "The line of the diff the comment applies to (last line of a range).",
                    },
                    "start_line": {
                        "type": "integer",
                        "description": "First line of a multi-line comment range.",
                    },
                    "start_side": {
                        "type": "string",
                        "description": "Side of the first line of a multi-line comment: LEFT or RIGHT.",
                    },
                },
                "required": ["body", "path"],
            },
        },
    },
    required=["pull_number", "event"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="create_issue_comment",
    description="Create a comment on a pull request or issue.",
    properties={
        **_ISSUE_NUMBER,
        "body": {"type": "string", "description": "The contents of the comment."},
    },
    required=["issue_number", "body"],
    category=ToolCategory.WRITE,
)

register_tool(
    name="add_labels",
    description="Add labels to a pull request or issue.",
    properties={
        **_ISSUE_NUMBER,
        "labels": {
            "type": "array",
            "description": "The names of the labels to add to the existing labels.",
            "items": {"type": "string"},
        },
    },
    required=["issue_number", "labels"],
    category=ToolCategory.WRITE,
)


# =============================================================================
# Lookups
# =============================================================================

def get_tool(name: str) -> ToolDefinition | None:
    """Get a tool definition by name."""
    return TOOL_DEFINITIONS.get(name)


def get_tools_for_openai() -> list[dict[str, Any]]:
    """Tool list for an OpenAI assistant: code interpreter plus every GitHub function."""
    return [
        {"type": "code_interpreter"},
        *(
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in TOOL_DEFINITIONS.values()
        ),
    ]
