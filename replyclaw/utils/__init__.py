"""Utility functions for replyclaw."""

from replyclaw.utils.helpers import elide, ensure_dir, get_data_path, jid_to_e164, normalize_e164

__all__ = ["elide", "ensure_dir", "get_data_path", "jid_to_e164", "normalize_e164"]
