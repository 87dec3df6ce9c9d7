# app/utils/target_ids.py
"""
알림 대상 식별자 정규화

클라이언트와 리스너는 대상 객체를 두 가지 방식으로 표현합니다.
1. 범용 쌍: targetId + targetType ('post', 'place', 'review', 'comment', 'user' ...)
2. 종류별 id: postId / placeId / reviewId / commentId

reconcile() 은 두 표현을 하나의 CanonicalTarget 으로 맞춥니다.
"""

import logging
from typing import Mapping, Optional

from app.models.notification import CanonicalTarget

logger = logging.getLogger(__name__)

# 역방향 채우기(back-fill) 우선순위 순서
TARGET_KINDS = ('post', 'place', 'review', 'comment')

# 종류 -> CanonicalTarget 필드명 / 전송 포맷(camelCase) 키
_ATTR_BY_KIND = {kind: f"{kind}_id" for kind in TARGET_KINDS}
WIRE_KEY_BY_KIND = {kind: f"{kind}Id" for kind in TARGET_KINDS}


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ''
    return str(value)


def reconcile(target_id: Optional[str], target_type: Optional[str],
              typed_ids: Optional[Mapping[str, Optional[str]]] = None) -> CanonicalTarget:
    """
    범용 targetId/targetType 과 종류별 id 를 정규화합니다.

    :param target_id: 범용 대상 id
    :param target_type: 범용 대상 종류
    :param typed_ids: {'post': ..., 'place': ..., 'review': ..., 'comment': ...}
    :return: 모든 id 가 문자열로 채워진 CanonicalTarget
    """
    target_id = _clean(target_id)
    target_type = _clean(target_type)
    ids = {kind: _clean((typed_ids or {}).get(kind)) for kind in TARGET_KINDS}

    # 1. targetType 이 가리키는 종류의 id 가 비어 있으면 targetId 로 채웁니다.
    if target_id and target_type in ids and not ids[target_type]:
        ids[target_type] = target_id

    # 2. targetId 가 비어 있으면 종류별 id 중 우선순위가 가장 높은 것으로 채웁니다.
    if not target_id:
        present = [kind for kind in TARGET_KINDS if ids[kind]]
        if len(present) > 1:
            logger.warning(f"대상 id 가 여러 개 지정되어 우선순위로 선택합니다: {present} -> {present[0]}")
        if present:
            target_id = ids[present[0]]
            target_type = present[0]

    return CanonicalTarget(
        target_id=target_id,
        target_type=target_type,
        **{_ATTR_BY_KIND[kind]: ids[kind] for kind in TARGET_KINDS}
    )


def typed_ids_of(target: CanonicalTarget) -> dict:
    """CanonicalTarget 의 종류별 id 를 reconcile() 입력 형태로 꺼냅니다."""
    return {kind: getattr(target, _ATTR_BY_KIND[kind]) for kind in TARGET_KINDS}


def reconcile_target(target: CanonicalTarget) -> CanonicalTarget:
    return reconcile(target.target_id, target.target_type, typed_ids_of(target))


def reconcile_wire(data: Mapping[str, Optional[str]]) -> CanonicalTarget:
    """
    camelCase 키(targetId, targetType, postId ...)를 가진 dict 를 정규화합니다.
    HTTP 요청 본문과 extraData 에서 사용합니다.
    """
    return reconcile(
        data.get('targetId'),
        data.get('targetType'),
        {kind: data.get(WIRE_KEY_BY_KIND[kind]) for kind in TARGET_KINDS}
    )


def to_wire(target: CanonicalTarget) -> dict:
    """CanonicalTarget 을 FCM data / Firestore 문서용 camelCase dict 로 변환합니다."""
    wire = {'targetId': target.target_id, 'targetType': target.target_type}
    for kind in TARGET_KINDS:
        wire[WIRE_KEY_BY_KIND[kind]] = getattr(target, _ATTR_BY_KIND[kind])
    return wire
