"""Echo suppression for replies the channel reflects back to us."""

from collections import OrderedDict

from replyclaw.logs import log_verbose
from replyclaw.utils.helpers import elide


class EchoTracker:
    """
    Remembers recently sent text so its echo is not answered again.

    Keys are either the sent text itself or a combined key over
    (session key, effective inbound body). Entries are evicted oldest-first
    once ``max_items`` is exceeded, and a matching check consumes the entry.
    """

    def __init__(self, max_items: int = 100):
        self.max_items = max(1, int(max_items))
        self._recent: OrderedDict[str, None] = OrderedDict()

    @staticmethod
    def build_combined_key(session_key: str, combined_body: str) -> str:
        return f"combined:{session_key}:{combined_body}"

    def remember_text(
        self,
        text: str | None,
        *,
        combined_body: str | None = None,
        combined_body_session_key: str | None = None,
        log_verbose_message: bool = False,
    ) -> None:
        """Record outbound text, and the inbound body that triggered it."""
        if text:
            self._add(text)
        if combined_body and combined_body_session_key:
            self._add(self.build_combined_key(combined_body_session_key, combined_body))
        if log_verbose_message and text:
            log_verbose(f"Added to echo detection set (size now: {len(self._recent)}): {elide(text, 80)}")

    def has(self, key: str) -> bool:
        return key in self._recent

    def forget(self, key: str) -> None:
        self._recent.pop(key, None)

    def check_and_consume(self, key: str) -> bool:
        """True if ``key`` was recently sent, consuming the entry."""
        if key not in self._recent:
            return False
        del self._recent[key]
        return True

    def __len__(self) -> int:
        return len(self._recent)

    def _add(self, key: str) -> None:
        self._recent.pop(key, None)
        self._recent[key] = None
        while len(self._recent) > self.max_items:
            self._recent.popitem(last=False)
