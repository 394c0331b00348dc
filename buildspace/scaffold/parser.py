"""Extraction of project name and template from project-creation commands.

Supported shapes:
- npm|pnpm|yarn|bun create <tool>[@version] [name] [-- --template <t>]
- npm init <tool>[@version] [name] ...
- npx [--yes] create-<tool>[@version] [name] [--template <t>]
- npx [--yes] degit <owner/repo/.../template-<t>> [name]

Names may be quoted; flags may appear before or after the name.
"""

from __future__ import annotations

import shlex
from pathlib import PurePosixPath

from buildspace.schemas import ScaffoldRequest


DEFAULT_PROJECT_NAME = "my-app"
DEFAULT_TEMPLATE = "react-ts"

_PACKAGE_MANAGERS = {"npm", "pnpm", "yarn", "bun"}
_CREATE_VERBS = {"create", "init"}
_TEMPLATE_FLAGS = {"--template", "-t"}
# npx options that consume the following token
_NPX_VALUE_FLAGS = {"--package", "-p", "--call", "-c"}


def _split(command: str) -> list[str] | None:
    try:
        return shlex.split(command)
    except ValueError:
        return None


def _strip_version(token: str) -> str:
    """Drop a trailing @version while keeping @scope/ prefixes."""
    head, sep, _ = token.rpartition("@")
    return head if sep and head else token


def _valid_name(name: str | None) -> str | None:
    """Project directory name; ``.`` means create in place."""
    if not name:
        return None
    name = name.rstrip("/") or "/"
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        return None
    return path.as_posix()


def _scan_args(args: list[str]) -> tuple[list[str], str | None]:
    """Split creator arguments into positionals and a template flag value."""
    positionals: list[str] = []
    template: str | None = None
    i = 0
    while i < len(args):
        token = args[i]
        if token == "--":
            i += 1
            continue
        if token.startswith("-"):
            flag, eq, value = token.partition("=")
            if flag in _TEMPLATE_FLAGS:
                if eq:
                    template = value or template
                elif i + 1 < len(args) and not args[i + 1].startswith("-"):
                    template = args[i + 1]
                    i += 1
            i += 1
            continue
        positionals.append(token)
        i += 1
    return positionals, template


def _template_from_source(source: str) -> str | None:
    """Logical template name from a mirror source such as ``.../template-react-ts``."""
    leaf = PurePosixPath(source.split("#", 1)[0]).name
    if leaf.startswith("template-"):
        return leaf[len("template-"):]
    return None


def parse_scaffold_command(
    command: str,
    default_name: str = DEFAULT_PROJECT_NAME,
    default_template: str = DEFAULT_TEMPLATE,
) -> ScaffoldRequest | None:
    """Parse a project-creation command.

    Args:
        command: Free-form command text
        default_name: Project name used when none can be extracted
        default_template: Template used when none is given

    Returns:
        ScaffoldRequest, or None if the command does not create a project
    """
    tokens = _split(command.strip())
    if not tokens:
        return None

    program = tokens[0]
    creator: str | None = None
    rest: list[str] = []

    if program in _PACKAGE_MANAGERS:
        if len(tokens) < 3 or tokens[1] not in _CREATE_VERBS or tokens[2].startswith("-"):
            return None
        creator, rest = tokens[2], tokens[3:]
    elif program == "npx":
        i = 1
        while i < len(tokens) and tokens[i].startswith("-"):
            i += 2 if tokens[i] in _NPX_VALUE_FLAGS else 1
        if i >= len(tokens):
            return None
        candidate = _strip_version(tokens[i])
        if not (candidate.startswith("create-") or candidate == "degit"):
            return None
        creator, rest = tokens[i], tokens[i + 1:]
    else:
        return None

    positionals, template = _scan_args(rest)

    if _strip_version(creator) == "degit":
        if not positionals:
            return None
        template = template or _template_from_source(positionals[0])
        name = _valid_name(positionals[1]) if len(positionals) > 1 else None
    else:
        name = _valid_name(positionals[0]) if positionals else None

    return ScaffoldRequest(
        project_name=name or default_name,
        template=template or default_template,
        original_command=command,
    )
