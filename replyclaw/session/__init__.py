"""Session bookkeeping for replyclaw."""

from replyclaw.session.store import LastRoute, LastRouteStore

__all__ = ["LastRoute", "LastRouteStore"]
