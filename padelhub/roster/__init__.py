"""The roster blueprint."""

from flask import Blueprint

bp = Blueprint("roster", __name__)

from . import routes  # noqa: E402

__all__ = ["routes"]
