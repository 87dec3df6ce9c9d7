# app/services/push_service.py
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

from flask import Flask
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.core.exceptions import PushDeliveryError, InvalidPushTokenError

logger = logging.getLogger(__name__)


@dataclass
class PushMessage:
    """푸시 제공자에 독립적인 메시지 표현. data 의 값은 모두 문자열이어야 합니다."""
    destination_token: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    # 플랫폼별 표시 힌트 (subtitle, tag, image_url 등)
    platform_hints: Dict[str, str] = field(default_factory=dict)


class PushService(ABC):
    """푸시 전송 협력자 인터페이스"""

    @abstractmethod
    def send(self, message: PushMessage) -> str:
        """
        메시지를 전송하고 제공자의 메시지 id 를 반환합니다.

        :raises InvalidPushTokenError: 토큰이 더 이상 유효하지 않을 때
        :raises PushDeliveryError: 그 밖의 전송 실패
        """


class FcmPushService(PushService):
    """
    Firebase Cloud Messaging 으로 푸시를 전송하는 서비스 클래스입니다.
    Android/APNs 표시 설정은 init_app 에서 앱 설정으로부터 읽어옵니다.
    """

    # 토큰 자체가 무효임을 뜻하는 FCM 오류
    _INVALID_TOKEN_ERRORS = (messaging.UnregisteredError, messaging.SenderIdMismatchError)

    def __init__(self, app: Optional[Flask] = None):
        self.channel_id = 'reviews_channel'
        self.color = '#1C59A4'
        self.icon = 'ic_notification'
        self.click_action = 'FLUTTER_NOTIFICATION_CLICK'
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        self.channel_id = app.config.get('ANDROID_CHANNEL_ID', self.channel_id)
        self.color = app.config.get('APP_COLOR', self.color)
        self.icon = app.config.get('ANDROID_ICON', self.icon)
        self.click_action = app.config.get('CLICK_ACTION', self.click_action)
        logger.info("FcmPushService: FCM 전송 서비스가 초기화되었습니다.")

    def build_message(self, message: PushMessage) -> messaging.Message:
        hints = message.platform_hints
        subtitle = hints.get('subtitle') or None
        return messaging.Message(
            token=message.destination_token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.data,
            android=messaging.AndroidConfig(
                priority='high',
                notification=messaging.AndroidNotification(
                    channel_id=self.channel_id,
                    color=self.color,
                    sound='default',
                    icon=self.icon,
                    click_action=self.click_action,
                    tag=hints.get('tag') or None,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(title=message.title, body=message.body, subtitle=subtitle),
                        sound='default',
                        badge=1,
                        mutable_content=True,
                    )
                )
            ),
        )

    def send(self, message: PushMessage) -> str:
        try:
            return messaging.send(self.build_message(message))
        except self._INVALID_TOKEN_ERRORS as e:
            raise InvalidPushTokenError(f"유효하지 않은 FCM 토큰: {e}") from e
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise PushDeliveryError(f"FCM 전송 실패: {e}") from e
