# app/models/notification.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, Union


class NotificationCategory(Enum):
    """알림 유형을 정의하는 Enum 클래스. FCM data 와 Firestore 에는 value 가 저장됩니다."""
    NEW_REVIEW = "new_review"
    NEW_COMMENT = "new_comment"
    COMMENT_REPLIED = "comment_replied"
    REVIEW_LIKED = "review_liked"
    POST_LIKED = "post_liked"
    NEW_FOLLOWER = "new_follower"
    TEST = "test"


def category_value(category: Union[NotificationCategory, str]) -> str:
    """Enum 이면 value 를, API 로 들어온 임의 문자열이면 그대로 반환합니다."""
    if isinstance(category, NotificationCategory):
        return category.value
    return category


@dataclass
class Sender:
    """알림을 유발한 사용자 정보."""
    id: str = ''
    name: str = ''
    avatar_url: str = ''


@dataclass
class CanonicalTarget:
    """
    알림 대상 식별자.
    target_id/target_type 범용 쌍과 종류별 id 를 함께 가지며, 모든 값은 빈 문자열 이상입니다.
    """
    target_id: str = ''
    target_type: str = ''
    post_id: str = ''
    place_id: str = ''
    review_id: str = ''
    comment_id: str = ''


@dataclass
class NotificationIntent:
    """
    분류 규칙이 만들어 발송 파이프라인에 넘기는 알림 단위.
    """
    recipient_id: str
    category: Union[NotificationCategory, str]
    title: str
    body: str
    sender: Sender = field(default_factory=Sender)
    target: CanonicalTarget = field(default_factory=CanonicalTarget)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NotificationRecord:
    """
    Firestore 'Users/{uid}/Notifications' 서브컬렉션의 문서 구조를 정의하는 데이터클래스.
    필드명은 클라이언트 앱이 읽는 camelCase 를 그대로 사용합니다.
    """
    id: str
    recipientId: str
    type: str
    title: str
    body: str
    senderId: str
    senderName: str
    senderAvatar: str
    targetId: str
    targetType: str
    postId: str
    placeId: str
    reviewId: str
    commentId: str
    timestamp: Any  # 저장소의 서버 타임스탬프 센티널
    delivered: bool = False
    fcmMessageId: Optional[str] = None
    isRead: bool = False
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DispatchResult:
    """발송 파이프라인 한 번의 실행 결과"""
    delivered: bool = False
    persisted: bool = False
    notification_id: Optional[str] = None
