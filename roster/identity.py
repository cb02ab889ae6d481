from dataclasses import dataclass


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated principal behind a request.

    Resolved once per request and handed to every service call; `None` in its
    place means an anonymous caller.
    """
    user_id: int
