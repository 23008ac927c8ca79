"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_OUTCOME_ERROR_KINDS = [
    "authentication_required",
    "network_failure",
    "reference_resolution_failure",
    "diff_computation_failure",
    "merge_failure",
    "cancelled",
    "unexpected",
]

_COMMON_PROPERTIES = {
    "repos_file": {
        "type": "string",
        "description": "Path to the repository cache. Auto-resolved from: $GIT_TIDE_REPOS_FILE → $XDG_CACHE_HOME/git-tide/repositories.json",
    },
    "json": {
        "type": "boolean",
        "description": "Output as JSON for machine parsing",
        "default": False,
    },
    "verbose": {
        "type": "boolean",
        "description": "Log every git step and narrate each repository as it finishes",
        "default": False,
    },
}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-tide",
        "version": __version__,
        "description": "Keep a fleet of local Git working copies in sync with their remotes. Repositories are discovered once and cached; sync then fetches and fast-forwards every cached repository in parallel, or for forks with an 'upstream' remote resets onto upstream and force-pushes to origin.",
        "usage": "git-tide <command> [options]",
        "tools": [
            {
                "name": "discover",
                "description": "Scan the directories listed in the roots file for Git repositories and save them to the cache. Roots file auto-resolved from: $GIT_TIDE_ROOTS → ~/.config/git-tide/roots → ~/.git-tide-roots",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "roots": {
                            "type": "string",
                            "description": "Path to roots file (one directory per line, # comments)",
                        },
                        **_COMMON_PROPERTIES,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "cache_file": {"type": "string"},
                        "count": {"type": "integer"},
                        "repositories": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "path": {"type": "string"},
                                    "has_upstream": {"type": "boolean"},
                                    "upstream_name": {"type": "string"},
                                    "last_scanned": {"type": "string", "format": "date-time"},
                                },
                            },
                        },
                    },
                },
                "examples": [
                    {
                        "description": "Discover repositories under the configured roots",
                        "command": "git-tide discover --json",
                    },
                ],
            },
            {
                "name": "sync",
                "description": "Update every cached repository. Repositories with uncommitted changes to tracked files are skipped with a warning; untracked files do not block. Exit code is 1 when any repository failed.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "threads": {
                            "type": "integer",
                            "description": "Number of concurrent repository updates (clamped to the repository count)",
                        },
                        "stat": {
                            "type": "boolean",
                            "description": "Include per-file diff statistics for repositories that changed",
                            "default": False,
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Seconds allowed for each git network command",
                        },
                        "deadline": {
                            "type": "number",
                            "description": "Overall seconds after which unstarted repositories are cancelled",
                        },
                        "yes": {
                            "type": "boolean",
                            "description": "Rediscover without asking when the cache is older than 14 days",
                            "default": False,
                        },
                        **_COMMON_PROPERTIES,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "total": {"type": "integer"},
                        "successes": {"type": "integer"},
                        "updated": {"type": "array", "items": {"type": "string"}},
                        "warnings": {
                            "type": "object",
                            "additionalProperties": {
                                "type": "string",
                                "enum": ["uncommitted_changes"],
                            },
                        },
                        "errors": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "path": {"type": "string"},
                                    "kind": {"type": "string", "enum": _OUTCOME_ERROR_KINDS},
                                    "detail": {"type": "string"},
                                },
                            },
                        },
                        "diff_stats": {"type": "string"},
                    },
                },
                "examples": [
                    {
                        "description": "Update everything with 8 workers and show what changed",
                        "command": "git-tide sync -t 8 --stat",
                    },
                    {
                        "description": "Machine-readable run that never prompts",
                        "command": "git-tide sync --json --yes",
                    },
                ],
            },
        ],
    }
