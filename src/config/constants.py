"""アプリケーション定数定義"""

from enum import StrEnum


# ── ユーザーロール ────────────────────────────────────
class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"


# ── 操作種別 ──────────────────────────────────────────
class ActionKind(StrEnum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def coerce(cls, value: object) -> "ActionKind":
        """未知の値・文字列以外はUNKNOWNに寄せる（拒否しない）"""
        if isinstance(value, ActionKind):
            return value
        if not isinstance(value, str) or not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


# HTTPメソッド → 操作種別
_VERB_ACTIONS: dict[str, ActionKind] = {
    "GET": ActionKind.READ,
    "POST": ActionKind.CREATE,
    "PUT": ActionKind.UPDATE,
    "PATCH": ActionKind.UPDATE,
    "DELETE": ActionKind.DELETE,
}


def action_from_verb(verb: str | None) -> ActionKind:
    """HTTPメソッドから操作種別を導出"""
    if not verb:
        return ActionKind.UNKNOWN
    return _VERB_ACTIONS.get(verb.upper(), ActionKind.UNKNOWN)


# ── エンティティ種別タグ ──────────────────────────────
class EntityType(StrEnum):
    CPU = "CPU"
    MANUFACTURER = "MANUFACTURER"
    FILE = "FILE"


# ── 配信メッセージ種別 ────────────────────────────────
class FanoutMessageType(StrEnum):
    INITIAL_DATA = "initial_data"
    NEW_ENTRY = "new_entry"
    PROGRESS = "progress"
    COMPLETE = "complete"
    MORE_DATA = "more_data"
    ERROR = "error"
    PONG = "pong"


# ── スケジュールID ────────────────────────────────────
ANOMALY_SWEEP_SCHEDULE = "anomaly_sweep"
CATALOG_GENERATION_SCHEDULE = "catalog_generation"
