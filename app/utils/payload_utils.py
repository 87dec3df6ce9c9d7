# app/utils/payload_utils.py
"""
FCM 페이로드 및 알림 문서 생성을 위한 유틸리티

FCM data 메시지는 모든 값이 문자열이어야 하므로 전송 전에 변환이 필요합니다.
"""

import json
import logging
import time
import uuid
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

DEFAULT_AVATAR_URL_TEMPLATE = (
    'https://ui-avatars.com/api/?name={initial}&background=1C59A4&color=fff&size=200&bold=true'
)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return DateTimeUtils.to_iso_string(value)
    if isinstance(value, date):
        return DateTimeUtils.to_date_string(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def to_string_value(value: Any) -> str:
    """
    단일 값을 FCM 호환 문자열로 변환

    변환 규칙:
    - None -> ''
    - bool -> 'true' / 'false'
    - int, float -> 10진 문자열
    - dict, list -> JSON 문자열
    - datetime -> ISO 문자열
    """
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, datetime):
        return DateTimeUtils.to_iso_string(value)
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        try:
            return json.dumps(value, ensure_ascii=False, separators=(',', ':'), default=_json_default)
        except (TypeError, ValueError) as e:
            logger.warning(f"JSON 직렬화 실패, str() 로 대체합니다: {e}")
            return str(value)
    return str(value)


def to_string_values(data: Mapping[str, Any]) -> Dict[str, str]:
    """dict 의 모든 값을 문자열로 변환합니다. 키도 문자열로 강제합니다."""
    return {str(key): to_string_value(value) for key, value in data.items()}


def remove_none(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """None 값을 가진 키를 제거한 새 dict 를 반환합니다."""
    if not data:
        return {}
    return {key: value for key, value in data.items() if value is not None}


def build_avatar_url(sender_name: Optional[str], template: str = DEFAULT_AVATAR_URL_TEMPLATE) -> str:
    """
    이름의 첫 글자(없으면 'U')를 대문자로 사용하는 이니셜 아바타 URL 을 생성합니다.
    같은 이름이면 항상 같은 URL 이 나옵니다.
    """
    name = (sender_name or '').strip()
    initial = (name[:1] or 'U').upper()
    return template.format(initial=quote(initial, safe=''))


def resolve_avatar(avatar_url: Optional[str], sender_name: Optional[str],
                   template: str = DEFAULT_AVATAR_URL_TEMPLATE) -> str:
    """아바타가 비어 있을 때만 이니셜 아바타로 대체합니다."""
    if avatar_url:
        return avatar_url
    return build_avatar_url(sender_name, template)


def generate_notification_id() -> str:
    """'notif_{epoch ms}_{9자리 랜덤}' 형식의 알림 id. 앞부분의 타임스탬프로 대략 시간순 정렬됩니다."""
    return f"notif_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
