"""
통합 시간 관리 유틸리티 기능 테스트 스크립트

사용법: python -m pytest app/utils/test_datetime_utils.py -v
"""

import pytest
from datetime import datetime, date, timezone, timedelta
from app.utils.datetime_utils import DateTimeUtils


def test_now_is_utc():
    """현재 시간은 UTC timezone-aware 여야 함"""
    now = DateTimeUtils.now()
    assert now.tzinfo == timezone.utc


def test_to_iso_string():
    """ISO 포맷 생성 테스트"""
    # naive 는 UTC 로 간주
    assert DateTimeUtils.to_iso_string(datetime(2024, 1, 15, 10, 30)) == '2024-01-15T10:30:00Z'
    # 다른 timezone 은 UTC 로 변환
    kst = timezone(timedelta(hours=9))
    assert DateTimeUtils.to_iso_string(datetime(2024, 1, 15, 19, 30, tzinfo=kst)) == '2024-01-15T10:30:00Z'


def test_to_date_string():
    assert DateTimeUtils.to_date_string(date(2024, 1, 5)) == '2024-01-05'


def test_from_firestore():
    """Firestore 읽기 변환 테스트"""
    test_data = {
        'createdAt': datetime(2024, 1, 15, 10, 30),
        'nested': {'updatedAt': datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)},
        'list_data': [{'likedAt': datetime(2024, 1, 1)}],
        'name': 'bob'
    }

    converted = DateTimeUtils.from_firestore(test_data)

    # 모든 datetime은 timezone-aware여야 함
    assert converted['createdAt'].tzinfo == timezone.utc
    assert converted['nested']['updatedAt'].tzinfo == timezone.utc
    assert converted['list_data'][0]['likedAt'].tzinfo == timezone.utc
    assert converted['name'] == 'bob'


def test_error_handling():
    """오류 처리 테스트"""
    with pytest.raises(ValueError):
        DateTimeUtils.to_iso_string(None)

    with pytest.raises(ValueError):
        DateTimeUtils.to_date_string("2024-01-15")
