"""Template lookup table for mirror fetches."""

from __future__ import annotations

import shlex


MIRROR_BASE = "vitejs/vite/packages/create-vite"

# Logical template -> mirror source (fetched without revision history)
TEMPLATE_SOURCES: dict[str, str] = {
    name: f"{MIRROR_BASE}/template-{name}"
    for name in (
        "vanilla", "vanilla-ts",
        "vue", "vue-ts",
        "react", "react-ts",
        "react-swc", "react-swc-ts",
        "preact", "preact-ts",
        "lit", "lit-ts",
        "svelte", "svelte-ts",
        "solid", "solid-ts",
        "qwik", "qwik-ts",
    )
}

# Framework identifiers used by project-creation tools
TEMPLATE_ALIASES: dict[str, str] = {
    "typescript": "react-ts",
    "react-vite": "react-ts",
    "react-vite-tailwind": "react-ts",
    "react-vite-shadcn": "react-ts",
    "nextjs": "react-ts",
    "nextjs-shadcn": "react-ts",
    "vue-vite": "vue-ts",
    "vue-vite-tailwind": "vue-ts",
    "svelte-vite": "svelte-ts",
    "lit-vite": "lit-ts",
    "preact-vite": "preact-ts",
    "vanilla-vite": "vanilla-ts",
    "html-ts-css": "vanilla-ts",
}


def resolve_template_source(template: str, default: str = "react-ts") -> str:
    """Map a logical template name to its mirror source."""
    key = template.strip().lower()
    key = TEMPLATE_ALIASES.get(key, key)
    if key in TEMPLATE_SOURCES:
        return TEMPLATE_SOURCES[key]
    return TEMPLATE_SOURCES[TEMPLATE_ALIASES.get(default, default)]


def mirror_fetch_command(template: str, project_name: str, default: str = "react-ts") -> str:
    source = resolve_template_source(template, default)
    return f"npx --yes degit {source} {shlex.quote(project_name)} --force"
