# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import ValidationError
from .validation import optional_int


ACTOR_HEADER = "X-User-Id"


def with_actor(f):
    """
    Establish the acting user for write routes.

    Authentication happens upstream; the gateway forwards the user id in the
    X-User-Id header. Sets g.user_id (None when the header is absent).
    Returns 400 if the header is present but not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.user_id = optional_int(request.headers.get(ACTOR_HEADER), ACTOR_HEADER)
        except ValidationError as e:
            return jsonify(e.to_dict()), e.status_code

        return f(*args, **kwargs)

    return decorated_function
