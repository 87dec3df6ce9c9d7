# app/services/notification_service.py
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from app.core.exceptions import PushDeliveryError, InvalidPushTokenError, RecipientNotFoundError, StoreError
from app.models.notification import (
    NotificationIntent, NotificationRecord, DispatchResult, category_value
)
from app.services.firestore_service import DocumentStore
from app.services.push_service import PushService, PushMessage
from app.utils.payload_utils import (
    DEFAULT_AVATAR_URL_TEMPLATE, generate_notification_id, remove_none, resolve_avatar, to_string_values
)
from app.utils.target_ids import reconcile_target, to_wire

logger = logging.getLogger(__name__)

# FCM data 메시지에서 사용할 수 없는 예약 키
_RESERVED_DATA_KEYS = {'from', 'notification', 'message_type'}
_RESERVED_DATA_PREFIXES = ('google', 'gcm')


def _is_reserved_key(key: str) -> bool:
    return key in _RESERVED_DATA_KEYS or key.lower().startswith(_RESERVED_DATA_PREFIXES)


class NotificationService:
    """
    알림 발송 파이프라인을 담당하는 공용 서비스 클래스.
    - 수신자 조회 -> FCM 전송 시도 -> 알림 기록 저장 순서로 처리합니다.
    - FCM 전송 실패는 치명적이지 않으며, 수신자가 존재하면 기록은 항상 저장됩니다.
    - 자기 자신에게 보내는 알림은 생성하지 않습니다.
    """

    def __init__(self, store: DocumentStore, push_service: PushService,
                 users_collection: str = 'Users',
                 notifications_subcollection: str = 'Notifications',
                 token_field: str = 'fcmToken',
                 avatar_url_template: str = DEFAULT_AVATAR_URL_TEMPLATE,
                 app_color: str = '#1C59A4',
                 click_action: str = 'FLUTTER_NOTIFICATION_CLICK'):
        self.store = store
        self.push_service = push_service
        self.users_collection = users_collection
        self.notifications_subcollection = notifications_subcollection
        self.token_field = token_field
        self.avatar_url_template = avatar_url_template
        self.app_color = app_color
        self.click_action = click_action

    @classmethod
    def from_config(cls, config, store: DocumentStore, push_service: PushService) -> 'NotificationService':
        """Flask app.config 로부터 서비스 인스턴스를 생성합니다."""
        return cls(
            store=store,
            push_service=push_service,
            users_collection=config['USERS_COLLECTION'],
            notifications_subcollection=config['NOTIFICATIONS_SUBCOLLECTION'],
            token_field=config['PUSH_TOKEN_FIELD'],
            avatar_url_template=config['AVATAR_URL_TEMPLATE'],
            app_color=config['APP_COLOR'],
            click_action=config['CLICK_ACTION'],
        )

    def dispatch(self, intent: NotificationIntent) -> DispatchResult:
        """
        알림 하나를 전송하고 수신자의 알림 목록에 기록합니다.
        재시도는 하지 않습니다.

        :param intent: 분류 규칙 또는 API 가 만든 알림
        :return: DispatchResult (delivered: FCM 전송 성공 여부, persisted: 기록 저장 여부)
        :raises StoreError: 수신자 조회 또는 기록 저장 실패
        """
        recipient_id = intent.recipient_id
        n_type = category_value(intent.category)
        if not recipient_id:
            logger.warning(f"{n_type} 알림 생략: 수신자 id 가 비어 있습니다.")
            return DispatchResult()
        if recipient_id == intent.sender.id:
            logger.info(f"{n_type} 알림 생략: 자기 자신에게 보내는 알림 ({recipient_id})")
            return DispatchResult()

        # 1. 수신자 조회
        try:
            user = self._get_recipient(recipient_id)
        except RecipientNotFoundError as e:
            logger.warning(f"{n_type} 알림 생략: {e}")
            return DispatchResult()

        sender_avatar = resolve_avatar(intent.sender.avatar_url, intent.sender.name, self.avatar_url_template)
        target = to_wire(reconcile_target(intent.target))
        notification_id = generate_notification_id()

        # 2. FCM 전송 (실패해도 계속 진행)
        delivered = False
        message_id: Optional[str] = None
        token = user.get(self.token_field)
        if token:
            message = self._build_push_message(
                token, intent, n_type, notification_id, sender_avatar, target
            )
            try:
                message_id = self.push_service.send(message)
                delivered = True
                logger.info(f"FCM 전송 성공: {n_type} -> {recipient_id} ({message_id})")
            except InvalidPushTokenError as e:
                logger.warning(f"유효하지 않은 FCM 토큰 제거 (user: {recipient_id}): {e}")
                self._clear_push_token(recipient_id)
            except PushDeliveryError as e:
                logger.warning(f"FCM 전송 실패 (user: {recipient_id}): {e}")
            except Exception as e:
                logger.error(f"FCM 전송 중 예기치 못한 오류 (user: {recipient_id}): {e}", exc_info=True)
        else:
            logger.info(f"FCM 토큰이 없어 푸시를 생략합니다 (user: {recipient_id})")

        # 3. 전송 결과와 무관하게 알림 기록 저장
        record = NotificationRecord(
            id=notification_id,
            recipientId=recipient_id,
            type=n_type,
            title=intent.title,
            body=intent.body,
            senderId=intent.sender.id or '',
            senderName=intent.sender.name or '',
            senderAvatar=sender_avatar,
            timestamp=self.store.server_timestamp(),
            delivered=delivered,
            fcmMessageId=message_id,
            data=remove_none(intent.extra),
            **target
        )
        self.store.set_subdocument(
            self.users_collection, recipient_id, self.notifications_subcollection,
            notification_id, asdict(record)
        )
        logger.info(f"{n_type} 알림 기록 저장 완료: {intent.sender.id or '-'} -> {recipient_id}")

        return DispatchResult(delivered=delivered, persisted=True, notification_id=notification_id)

    def register_token(self, user_id: str, token: str) -> None:
        """사용자 문서에 FCM 토큰을 병합 저장합니다."""
        self.store.set_document(self.users_collection, user_id, {
            self.token_field: token,
            f"{self.token_field}UpdatedAt": self.store.server_timestamp(),
        }, merge=True)
        logger.info(f"FCM 토큰 등록 완료 (user: {user_id})")

    def _build_push_message(self, token: str, intent: NotificationIntent, n_type: str,
                            notification_id: str, sender_avatar: str, target: Dict[str, str]) -> PushMessage:
        data: Dict[str, Any] = {}
        for key, value in intent.extra.items():
            if _is_reserved_key(str(key)):
                logger.warning(f"FCM 예약 키는 data 에서 제외합니다: {key}")
                continue
            data[key] = value
        # 정규화된 식별자가 extra 의 같은 키보다 우선합니다.
        data.update({
            'type': n_type,
            'recipientId': intent.recipient_id,
            'notificationId': notification_id,
            'senderId': intent.sender.id,
            'senderName': intent.sender.name,
            'senderAvatar': sender_avatar,
            'click_action': self.click_action,
            'appColor': self.app_color,
            **target,
        })
        return PushMessage(
            destination_token=token,
            title=intent.sender.name or intent.title,
            body=intent.body,
            data=to_string_values(data),
            platform_hints={'subtitle': intent.sender.name or '', 'tag': notification_id},
        )

    def _get_recipient(self, recipient_id: str) -> Dict[str, Any]:
        user = self.store.get_document(self.users_collection, recipient_id)
        if user is None:
            raise RecipientNotFoundError(recipient_id)
        return user

    def _clear_push_token(self, recipient_id: str) -> None:
        try:
            self.store.delete_field(self.users_collection, recipient_id, self.token_field)
        except StoreError as e:
            logger.error(f"FCM 토큰 제거 실패 (user: {recipient_id}): {e}")
