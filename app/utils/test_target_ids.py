# app/utils/test_target_ids.py
"""
알림 대상 식별자 정규화 테스트

사용법: python -m pytest app/utils/test_target_ids.py -v
"""

import logging

from app.models.notification import CanonicalTarget
from app.utils.target_ids import reconcile, reconcile_target, reconcile_wire, to_wire


def test_forward_fill_typed_id_from_target():
    """targetType 에 해당하는 종류별 id 가 비어 있으면 targetId 로 채워야 함"""
    target = reconcile('p1', 'post')
    assert target.post_id == 'p1'
    assert target.target_id == 'p1'
    assert target.target_type == 'post'
    assert target.place_id == ''
    assert target.review_id == ''
    assert target.comment_id == ''


def test_back_fill_target_from_typed_id():
    """targetId 가 없으면 종류별 id 로 범용 쌍을 채워야 함"""
    target = reconcile_wire({'postId': 'p1'})
    assert target.target_id == 'p1'
    assert target.target_type == 'post'
    assert target.post_id == 'p1'


def test_back_fill_priority_with_warning(caplog):
    """여러 종류별 id 가 있으면 post > place > review > comment 순으로 선택하고 경고를 남겨야 함"""
    with caplog.at_level(logging.WARNING):
        target = reconcile(None, None, {'comment': 'c1', 'review': 'r1'})
    assert target.target_id == 'r1'
    assert target.target_type == 'review'
    assert target.comment_id == 'c1'
    assert any('우선순위' in record.message for record in caplog.records)


def test_context_ids_are_kept():
    """대상과 다른 종류의 id 는 문맥 정보로 그대로 유지되어야 함"""
    target = reconcile('place1', 'place', {'place': 'place1', 'review': 'r1'})
    assert target.target_id == 'place1'
    assert target.place_id == 'place1'
    assert target.review_id == 'r1'


def test_non_typed_target_is_preserved():
    """'user' 처럼 종류별 id 가 없는 대상도 범용 쌍은 유지되어야 함"""
    target = reconcile('u1', 'user')
    assert target == CanonicalTarget(target_id='u1', target_type='user')


def test_none_becomes_empty_string():
    """None 은 모두 빈 문자열로 정규화되어야 함"""
    target = reconcile(None, None, {'post': None})
    assert target == CanonicalTarget()


def test_reconcile_is_idempotent():
    """정규화 결과를 다시 정규화해도 같아야 함"""
    cases = [
        reconcile('p1', 'post'),
        reconcile_wire({'reviewId': 'r1', 'placeId': 'x'}),
        reconcile('c1', 'comment', {'post': 'p9'}),
        reconcile(None, None),
    ]
    for target in cases:
        assert reconcile_target(target) == target


def test_to_wire_uses_camel_case_keys():
    """전송 포맷은 camelCase 키 6개를 모두 문자열로 가져야 함"""
    wire = to_wire(reconcile('p1', 'post'))
    assert wire == {
        'targetId': 'p1', 'targetType': 'post',
        'postId': 'p1', 'placeId': '', 'reviewId': '', 'commentId': '',
    }
