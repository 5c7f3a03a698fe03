import uuid
from datetime import datetime

from brewplan.util.time import LOCAL_TZ


def gen_task_id() -> str:
    ts = datetime.now(LOCAL_TZ).strftime("%Y%m%d%H%M%S")
    return f"{uuid.uuid4()}_{ts}"
