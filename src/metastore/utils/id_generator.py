import uuid


def new_occurrence_id() -> str:
    return str(uuid.uuid4())
