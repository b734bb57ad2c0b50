"""Small helpers shared across the package."""

import re
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Create a directory if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """~/.replyclaw data directory."""
    return ensure_dir(Path.home() / ".replyclaw")


def safe_filename(name: str) -> str:
    """Replace characters that are unsafe in file names."""
    return re.sub(r'[<>:"/\\|?*\s]', "_", name).strip("._") or "default"


def normalize_e164(number: str | None) -> str | None:
    """Normalize a phone-like id to +digits, dropping channel prefixes."""
    if not number:
        return None
    raw = str(number).strip()
    if raw.lower().startswith("whatsapp:"):
        raw = raw.split(":", 1)[1]
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return None
    return f"+{digits}"


def jid_to_e164(jid: str | None) -> str | None:
    """Map a user jid (15551234567:3@s.whatsapp.net) to E.164; other jids yield None."""
    if not jid:
        return None
    match = re.match(r"^(\d+)(?::\d+)?@(s\.whatsapp\.net|hosted)$", jid.strip())
    if not match:
        return None
    return f"+{match.group(1)}"


def elide(text: str | None, limit: int = 400) -> str:
    """Truncate long text for log lines."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}… (truncated {len(text) - limit} chars)"
