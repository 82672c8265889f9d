"""
Collects a little context about where the user is running the assistant and
turns it, together with the query, into the prompt sent to the AI.
"""

import os
import subprocess

from dataclasses import dataclass
from typing import Tuple

BUILD_FILE_NAME = "Dockerfile"
GIT_PROBE_TIMEOUT = 5

PROMPT_TEMPLATE = """
You are a helpful assistant that suggests accurate shell commands based on input and context.
Given a natural language request and some facts about the user's current directory, suggest
a single shell command that fulfills the request.

Context:
- Inside a Git repository: {in_git_repo}
- Files in the current directory: {files}
- Dockerfile present: {has_dockerfile}

Request: {query}

Make sure your response is a valid JSON object in the following format (with double quotes and no
trailing commas):
{{
    "command": "<shell command>",
    "description": "<what the command does>",
    "notes": "<caveats or warnings, empty string if there are none>"
}}

Do not include markdown, code blocks, or comments. Only output the JSON.
"""


@dataclass(frozen=True)
class InvocationContext:
    is_inside_version_control_tree: bool
    directory_entries: Tuple[str, ...]
    has_container_build_file: bool
    raw_user_query: str


def detect_version_control_membership() -> bool:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            capture_output=True,
            text=True,
            timeout=GIT_PROBE_TIMEOUT,
        )
    except (subprocess.TimeoutExpired, OSError):
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def list_directory_entries(path: str = ".") -> Tuple[str, ...]:
    try:
        return tuple(os.listdir(path))
    except OSError:
        return ()


def detect_build_file_presence(name: str = BUILD_FILE_NAME, path: str = ".") -> bool:
    try:
        os.stat(os.path.join(path, name))
    except (OSError, ValueError):
        return False
    return True


def collect_context(query: str) -> InvocationContext:
    return InvocationContext(
        is_inside_version_control_tree=detect_version_control_membership(),
        directory_entries=list_directory_entries(),
        has_container_build_file=detect_build_file_presence(),
        raw_user_query=query,
    )


def compose_prompt(context: InvocationContext) -> str:
    files = ", ".join(context.directory_entries) or "(empty directory)"
    return PROMPT_TEMPLATE.format(
        in_git_repo=str(context.is_inside_version_control_tree).lower(),
        files=files,
        has_dockerfile=str(context.has_container_build_file).lower(),
        query=context.raw_user_query,
    ).strip()


def report_context(context: InvocationContext):
    if context.is_inside_version_control_tree:
        print("→ Context: You are inside a Git repository.")
    else:
        print("→ Context: You are NOT inside a Git repository.")

    if context.has_container_build_file:
        print("→ Context: Found Dockerfile.")
    else:
        print("→ Context: No Dockerfile found.")

    print(f"→ Context: {len(context.directory_entries)} entries in the current directory.")
