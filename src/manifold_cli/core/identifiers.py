"""Human-friendly spec id generation."""

from __future__ import annotations

import uuid

ADJECTIVES = ("amber", "azure", "bold", "calm", "dark", "eager", "fair", "gold", "hazy", "keen")
NOUNS = ("anchor", "beacon", "cipher", "delta", "echo", "flux", "grid", "helix", "iris", "jade")


def generate_spec_id(project: str) -> str:
    """Return ``<adjective>-<noun>-<project prefix>``, e.g. ``calm-helix-payments``.

    The prefix is the first dash-separated segment of ``project``, cut to
    8 characters (``spec`` when the project is empty).
    """
    raw = uuid.uuid4().bytes
    adjective = ADJECTIVES[raw[0] % len(ADJECTIVES)]
    noun = NOUNS[raw[1] % len(NOUNS)]
    suffix = project.split("-")[0][:8] or "spec"
    return f"{adjective}-{noun}-{suffix}"
