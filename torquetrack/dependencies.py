from fastapi import Request

ACTOR_HEADER = 'x-user-id'
SYSTEM_ACTOR = 'system'


def get_actor_user_id(request: Request) -> str:
    # Login lives outside this service; the caller forwards the acting user's id.
    actor = request.headers.get(ACTOR_HEADER, '').strip()
    return actor or SYSTEM_ACTOR
