from dataclasses import dataclass


@dataclass(frozen=True)
class EditorConfig:
    debug: bool = False
    log_level: str = "INFO"
    sqlite_db_path: str = "plans.db"
    history_capacity: int = 60
    entity_save_debounce_ms: int = 700
    flow_save_debounce_ms: int = 1000
