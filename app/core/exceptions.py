# app/core/exceptions.py
"""
알림 릴레이 서버 전반에서 사용하는 예외 계층.

- API 요청 본문 검증 오류는 marshmallow.ValidationError 를 그대로 사용합니다.
- 나머지 오류는 모두 NotificationRelayError 를 상속합니다.
"""


class NotificationRelayError(Exception):
    """프로젝트 공통 기반 예외"""


class StoreError(NotificationRelayError):
    """Firestore 읽기/쓰기 실패"""


class RecipientNotFoundError(NotificationRelayError):
    """알림 수신자 문서가 존재하지 않음"""

    def __init__(self, recipient_id: str):
        super().__init__(f"수신자를 찾을 수 없습니다: {recipient_id}")
        self.recipient_id = recipient_id


class PushDeliveryError(NotificationRelayError):
    """푸시(FCM) 전송 실패. 알림 기록 저장은 계속 진행됩니다."""


class InvalidPushTokenError(PushDeliveryError):
    """더 이상 유효하지 않은 FCM 토큰. 사용자 문서에서 토큰을 제거해야 합니다."""


class FeedSubscriptionError(NotificationRelayError):
    """변경 피드 구독 또는 스냅샷 처리 실패"""
