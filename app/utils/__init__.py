# app/utils/__init__.py
"""
유틸리티 모듈 패키지

이 패키지는 프로젝트 전체에서 공통으로 사용되는 유틸리티 함수들을 포함합니다.
"""

from .datetime_utils import DateTimeUtils
from .target_ids import reconcile, reconcile_target, reconcile_wire, to_wire
from .payload_utils import (
    to_string_value, to_string_values, remove_none,
    build_avatar_url, resolve_avatar, generate_notification_id
)

__all__ = [
    'DateTimeUtils',
    'reconcile', 'reconcile_target', 'reconcile_wire', 'to_wire',
    'to_string_value', 'to_string_values', 'remove_none',
    'build_avatar_url', 'resolve_avatar', 'generate_notification_id'
]
