"""監査フック — 成功したリクエストの監査記録をレスポンス後に書き込む"""

from typing import Any

from fastapi import BackgroundTasks, Depends, Request

from src.api.dependencies import get_monitor
from src.api.middleware.auth import get_current_user
from src.config.constants import ActionKind, action_from_verb
from src.security.audit_trail import AuditTrailService
from src.security.auth import TokenPayload
from src.workflows.runtime import ActivityMonitor


class AuditHook:
    """リクエスト単位の監査フック

    ハンドラーは処理成功を確認してから commit() を呼ぶ。
    書き込みは BackgroundTasks で実行され、レスポンスには影響しない。
    """

    def __init__(
        self,
        recorder: AuditTrailService,
        background_tasks: BackgroundTasks,
        user_id: int,
        action: ActionKind,
        entity_type: str,
        path: str = "",
    ) -> None:
        self._recorder = recorder
        self._background_tasks = background_tasks
        self.user_id = user_id
        self.action = action
        self.entity_type = entity_type
        self._path = path
        self.committed = False

    def commit(self, entity_id: str | int | None = None, details: dict[str, Any] | None = None) -> None:
        """監査記録の書き込みを予約（1リクエスト1回まで）"""
        if self.committed:
            return
        self.committed = True
        payload: dict[str, Any] = {"path": self._path}
        if details:
            payload.update(details)
        self._background_tasks.add_task(
            self._recorder.record,
            self.user_id,
            self.action,
            self.entity_type,
            entity_id,
            payload,
        )


def audit_hook(entity_type: str):  # type: ignore[no-untyped-def]
    """エンティティ種別を束縛した監査フック依存性"""

    def _build(
        request: Request,
        background_tasks: BackgroundTasks,
        user: TokenPayload = Depends(get_current_user),
        monitor: ActivityMonitor = Depends(get_monitor),
    ) -> AuditHook:
        return AuditHook(
            recorder=monitor.recorder,
            background_tasks=background_tasks,
            user_id=user.user_id,
            action=action_from_verb(request.method),
            entity_type=entity_type,
            path=request.url.path,
        )

    return _build
