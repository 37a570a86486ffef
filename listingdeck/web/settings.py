from __future__ import annotations

from pathlib import Path
import tomllib
import logging
import os
from typing import Any, Dict, Optional, Tuple

from ..core.models import MAX_GROUP_SIZE, MIN_GROUP_SIZE
from ..core.orientation import HORIZONTAL_THRESHOLD, VERTICAL_THRESHOLD

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SETTINGS_PATH = PROJECT_ROOT / "settings.toml"


def _settings_path() -> Path:
    env = os.getenv("LISTINGDECK_SETTINGS", "")
    return Path(env).expanduser() if env else SETTINGS_PATH


def _load_settings() -> Dict[str, Any]:
    path = _settings_path()
    if not path.exists():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh) or {}
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}


def _section(name: str) -> Dict[str, Any]:
    data = _load_settings()
    section = data.get(name, {}) if isinstance(data, dict) else {}
    return section if isinstance(section, dict) else {}


def get_root_path() -> str:
    env = os.getenv("LISTINGDECK_ROOT_PATH", "")
    if env:
        return env
    return str(_section("server").get("root_path", "")) or ""


def get_storage_root() -> Path:
    """Return the directory holding one sub-directory per project.

    Default: <project root>/storage/projects
    """
    raw = os.getenv("LISTINGDECK_STORAGE_ROOT", "") or _section("storage").get("root")
    if raw:
        p = Path(str(raw)).expanduser()
        if not p.is_absolute():
            p = (PROJECT_ROOT / p).resolve()
        return p
    return (PROJECT_ROOT / "storage" / "projects").resolve()


def get_template_id(language: Optional[str] = None) -> str:
    """Return the Slides template to copy.

    A ``template_id_<language>`` entry wins over ``template_id``.
    """
    env = os.getenv("LISTINGDECK_TEMPLATE_ID", "")
    if env:
        return env
    slides = _section("slides")
    if language:
        localized = slides.get(f"template_id_{language}")
        if localized:
            return str(localized)
    return str(slides.get("template_id", "")) or ""


def get_credentials_path() -> Optional[str]:
    """Return a service-account key path or inline JSON, if configured."""
    for name in ("LISTINGDECK_CREDENTIALS", "GOOGLE_APPLICATION_CREDENTIALS"):
        env = os.getenv(name, "")
        if env:
            return env
    value = _section("slides").get("credentials")
    if not value:
        return None
    text = str(value)
    if text.lstrip().startswith("{"):
        return text
    p = Path(text).expanduser()
    if not p.is_absolute():
        p = (PROJECT_ROOT / p).resolve()
    return str(p)


def get_orientation_thresholds() -> Tuple[float, float]:
    """Return (horizontal, vertical) aspect-ratio thresholds.

    Default: (1.05, 0.95). Invalid or inverted values fall back to the default.
    """
    section = _section("layout")
    try:
        horizontal = float(section.get("horizontal_threshold", HORIZONTAL_THRESHOLD))
        vertical = float(section.get("vertical_threshold", VERTICAL_THRESHOLD))
    except (ValueError, TypeError):
        return HORIZONTAL_THRESHOLD, VERTICAL_THRESHOLD
    if vertical <= 0 or horizontal < vertical:
        return HORIZONTAL_THRESHOLD, VERTICAL_THRESHOLD
    return horizontal, vertical


def get_group_limits() -> Tuple[int, int]:
    """Return (min, max) photos per group accepted on upload.

    The layout table only covers 2..6, so configured values are clamped to it.
    """
    section = _section("layout")
    try:
        low = int(section.get("min_group_size", MIN_GROUP_SIZE))
        high = int(section.get("max_group_size", MAX_GROUP_SIZE))
    except (ValueError, TypeError):
        return MIN_GROUP_SIZE, MAX_GROUP_SIZE
    low = max(MIN_GROUP_SIZE, min(low, MAX_GROUP_SIZE))
    high = max(low, min(high, MAX_GROUP_SIZE))
    return low, high


def get_public_base_url() -> str:
    """Base URL prefixed to stored upload paths so the Slides API can fetch them."""
    env = os.getenv("LISTINGDECK_PUBLIC_BASE_URL", "")
    if env:
        return env.rstrip("/")
    return str(_section("server").get("public_base_url", "")).rstrip("/")


def get_max_upload_mb() -> int:
    """Return the per-file upload limit in MB.

    Default: 50
    """
    value = _section("server").get("max_upload_mb", 50)
    try:
        value = int(value)
    except (ValueError, TypeError):
        return 50
    return value if value > 0 else 50
