"""Observer 模块错误类型。"""

from __future__ import annotations


class ObserverError(Exception):
    """Observer 领域错误基类。"""


class ConfigError(ObserverError):
    """配置文件缺失、版本不符或取值非法。"""


class TriageError(ObserverError):
    """分类器调用或响应解析失败。"""


class DeliveryError(ObserverError):
    """Nudge / status 投递失败。"""
