from flask import Blueprint

bp = Blueprint("api", __name__)

from parlay_club.routes.api import routes  # noqa: F401, E402
