"""Prometheus メトリクス定義"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ── アプリケーション情報 ──────────────────────────────
app_info = Info("activity_monitor", "アプリケーション情報")

# ── 監査記録メトリクス ────────────────────────────────
audit_records_total = Counter(
    "audit_records_total",
    "監査記録の書き込み数",
    ["action", "status"],  # status: recorded/failed
)

# ── 異常検知メトリクス ────────────────────────────────
anomaly_sweeps_total = Counter(
    "anomaly_sweeps_total",
    "異常検知スイープ実行回数",
    ["status"],  # status: success/failure
)

anomaly_sweep_duration_seconds = Histogram(
    "anomaly_sweep_duration_seconds",
    "異常検知スイープ処理時間",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

users_flagged_total = Counter(
    "users_flagged_total",
    "監視対象に新規登録されたユーザー数",
)

# ── スケジューラメトリクス ────────────────────────────
scheduled_task_runs_total = Counter(
    "scheduled_task_runs_total",
    "定期タスク実行回数",
    ["schedule", "status"],  # status: success/failure/skipped
)

# ── リアルタイム配信メトリクス ────────────────────────
fanout_observers = Gauge(
    "fanout_observers",
    "接続中のオブザーバー数",
)

fanout_events_total = Counter(
    "fanout_events_total",
    "配信イベント数",
    ["event_type"],
)

fanout_delivery_failures_total = Counter(
    "fanout_delivery_failures_total",
    "配信失敗によるオブザーバー切断数",
)

catalog_entries = Gauge(
    "catalog_entries",
    "リソースカタログのエントリ数",
)
