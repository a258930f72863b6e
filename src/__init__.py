"""activity-monitor — 操作監査・異常検知・リアルタイム配信サービス"""

__version__ = "0.1.0"
