"""
Centralised harness configuration.

Every value is overridable via environment variables so CI and local
invocations share the same harness with different knobs.

Hierarchy:  env var → default here.
"""

from __future__ import annotations

import os


def env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def env_int(key: str, default: int = 0) -> int:
    return int(os.environ.get(key, str(default)))


def env_float(key: str, default: float = 0.0) -> float:
    return float(os.environ.get(key, str(default)))


SERVICE_NAME = "fleetprobe"

LOG_LEVEL = env("LOG_LEVEL", "INFO")
LOG_FORMAT = env("LOG_FORMAT", "json")

# ── Endpoint fleet ───────────────────────────────────────────────────
DEFAULT_FLEET_SIZE = 10


def _default_endpoints() -> list[tuple[str, str, str]]:
    return [
        (f"s{i}", f"Server S{i}", f"https://s{i}.monoklix.com")
        for i in range(1, DEFAULT_FLEET_SIZE + 1)
    ]


def parse_endpoints(raw: str) -> list[tuple[str, str, str]]:
    """Parse ``id=url,id=url`` into ``(id, name, url)`` triples.

    An empty string yields the default fleet.
    """
    if not raw.strip():
        return _default_endpoints()
    endpoints: list[tuple[str, str, str]] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "=" not in entry:
            raise ValueError(f"Invalid endpoint entry {entry!r} (expected id=url)")
        endpoint_id, url = (part.strip() for part in entry.split("=", 1))
        endpoints.append((endpoint_id, f"Server {endpoint_id.upper()}", url))
    return endpoints


ENDPOINTS = parse_endpoints(env("FLEETPROBE_ENDPOINTS", ""))

# Pre-obtained bearer token; never fetched by the harness itself.
AUTH_TOKEN = env("FLEETPROBE_AUTH_TOKEN", "")

# ── HTTP / polling ───────────────────────────────────────────────────
REQUEST_TIMEOUT = env_float("FLEETPROBE_REQUEST_TIMEOUT", 120.0)
POLL_INTERVAL = env_float("FLEETPROBE_POLL_INTERVAL", 5.0)
POLL_MAX_ATTEMPTS = env_int("FLEETPROBE_POLL_MAX_ATTEMPTS", 120)

# ── Paths ────────────────────────────────────────────────────────────
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
ARTIFACTS_DIR = env("FLEETPROBE_ARTIFACTS_DIR", os.path.join(PROJECT_ROOT, "artifacts", "fleetprobe"))

# ── Prompts ──────────────────────────────────────────────────────────
DEFAULT_LANGUAGE = "English"

PRESET_PROMPTS: dict[str, str] = {
    "English": (
        "A cinematic shot of a futuristic city with flying cars at sunset, "
        "cyberpunk aesthetic, highly detailed, 8k resolution."
    ),
    "Bahasa Malaysia": (
        "Paparan sinematik bandar futuristik dengan kereta terbang pada waktu matahari terbenam, "
        "estetik cyberpunk, sangat terperinci, resolusi 8k."
    ),
}


def preset_prompt(language: str | None = None) -> str:
    lang = language or DEFAULT_LANGUAGE
    if lang not in PRESET_PROMPTS:
        raise ValueError(f"Unknown prompt language {lang!r}")
    return PRESET_PROMPTS[lang]
