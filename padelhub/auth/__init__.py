"""Request authentication helpers."""

from .decorators import login_required

__all__ = ["login_required"]
