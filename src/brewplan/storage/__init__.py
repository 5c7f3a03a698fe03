from brewplan.storage.base import PlanStore
from brewplan.storage.sqlite3_store import StoreToSQLite
from brewplan.storage.yaml_store import StoreToYAML
from brewplan.util.dirs import load_env

__all__ = [
    "PlanStore",
    "StoreToSQLite",
    "StoreToYAML",
    "get_store",
]


def get_store() -> PlanStore:
    data_path = load_env()["DATA_PATH"]
    if data_path.endswith((".yaml", ".yml")):
        return StoreToYAML(data_path)
    if data_path.endswith(".db"):
        return StoreToSQLite(data_path)
    _msg = f"Invalid data path: {data_path}"
    raise ValueError(_msg)
