"""Docker command templates.

Templates are plain strings with ``{{name}}`` placeholders. The vocabulary
shared by the built-in defaults and user supplied ``runTemplate`` /
``execTemplate`` overrides is:

  {{image}}          image to launch (launch mode)
  {{path}}           host directory mounted into the container (launch mode)
  {{containerPath}}  path inside the container (both modes)
  {{command}}        the command text, escaped for a double-quoted context
  {{network}}        docker network (launch mode, optional)
  {{containerName}}  running container to exec into (attach mode)
  {{uid}} / {{gid}}  numeric identity of the invoking user, when known
"""

from __future__ import annotations

import os
import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

# Characters still special inside a double-quoted shell word.
_DOUBLE_QUOTE_SPECIALS = re.compile(r'(["\\$`])')


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{{name}}`` placeholders from ``variables``.

    Every occurrence of a placeholder is replaced. Placeholders without a
    value (missing key or None) are left as-is so callers can spot them.
    Substitution happens in one pass, so inserted values are never
    re-expanded and the order of ``variables`` does not matter.

    Example:
        render("{{a}}-{{b}}-{{a}}", {"a": 1}) → "1-{{b}}-1"
    """

    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(replace, template)


def unresolved_placeholders(text: str) -> list[str]:
    """Names of placeholders still present in ``text``, in order, deduplicated."""
    seen: dict[str, None] = {}
    for name in _PLACEHOLDER.findall(text):
        seen.setdefault(name)
    return list(seen)


def quote_command(command: str) -> str:
    """Escape ``command`` for use inside a double-quoted shell word.

    Backslash, double quote, ``$`` and backtick are escaped so the text
    reaches ``/bin/sh -c`` inside the container unchanged instead of being
    expanded by the host shell first.
    """
    return _DOUBLE_QUOTE_SPECIALS.sub(r"\\\1", command)


def current_identity() -> tuple[int | None, int | None]:
    """(uid, gid) of this process, or (None, None) where the platform has none."""
    getuid = getattr(os, "getuid", None)
    getgid = getattr(os, "getgid", None)
    if getuid is None or getgid is None:
        return None, None
    return getuid(), getgid()


def default_exec_template(with_user: bool = True) -> str:
    """Built-in attach-mode template."""
    user = "--user={{uid}}:{{gid}} " if with_user else ""
    return (
        f"docker exec -i {user}"
        '--workdir="{{containerPath}}" {{containerName}} '
        '/bin/sh -c "{{command}}"'
    )


def default_run_template(with_network: bool = False, with_user: bool = True) -> str:
    """Built-in launch-mode template."""
    network = '--network="{{network}}" ' if with_network else ""
    user = "--user={{uid}}:{{gid}} " if with_user else ""
    return (
        f"docker run -i --rm {network}"
        '-v "{{path}}:{{containerPath}}" '
        '--workdir="{{containerPath}}" '
        f"{user}"
        '{{image}} /bin/sh -c "{{command}}"'
    )


DEFAULT_EXEC_TEMPLATE = default_exec_template()
DEFAULT_RUN_TEMPLATE = default_run_template(with_network=True)
