# app/api/notifications/schemas.py
from marshmallow import Schema, fields, validate, pre_load, post_load, EXCLUDE

from app.models.notification import NotificationIntent, NotificationCategory, Sender
from app.utils.target_ids import TARGET_KINDS, WIRE_KEY_BY_KIND, reconcile, reconcile_wire

_REQUIRED = {"required": "필수 항목입니다."}
_NOT_EMPTY = validate.Length(min=1, error="빈 값은 허용되지 않습니다.")


class RegisterTokenSchema(Schema):
    """
    POST /register-token
    FCM 토큰 등록/업데이트 요청 본문의 유효성을 검사하는 스키마.
    이전 클라이언트가 보내는 'fcmToken' 키도 pushToken 으로 받아들입니다.
    """
    class Meta:
        unknown = EXCLUDE

    userId = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)
    pushToken = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)

    @pre_load
    def accept_legacy_token_key(self, data, **kwargs):
        if isinstance(data, dict) and not data.get('pushToken') and data.get('fcmToken'):
            data = dict(data, pushToken=data['fcmToken'])
        return data


class SendNotificationSchema(Schema):
    """
    POST /send-notification
    수동 알림 발송 요청을 검증하고 NotificationIntent 로 변환합니다.
    extraData 에 들어 있는 postId/placeId/reviewId/commentId, senderId 도 식별자로 사용합니다.
    """
    class Meta:
        unknown = EXCLUDE

    toUserId = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)
    type = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)
    title = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)
    body = fields.Str(required=True, validate=_NOT_EMPTY, error_messages=_REQUIRED)
    senderId = fields.Str(allow_none=True, load_default=None)
    senderName = fields.Str(allow_none=True, load_default=None)
    senderAvatar = fields.Str(allow_none=True, load_default=None)
    targetId = fields.Str(allow_none=True, load_default=None)
    targetType = fields.Str(allow_none=True, load_default=None)
    extraData = fields.Dict(keys=fields.Str(), allow_none=True, load_default=dict)

    @post_load
    def make_intent(self, data, **kwargs) -> NotificationIntent:
        extra = dict(data.get('extraData') or {})
        wire = {WIRE_KEY_BY_KIND[kind]: extra.pop(WIRE_KEY_BY_KIND[kind], None) for kind in TARGET_KINDS}
        extra_target_id = extra.pop('targetId', None)
        extra_target_type = extra.pop('targetType', None)
        extra_sender_id = extra.pop('senderId', None)
        wire['targetId'] = data.get('targetId') or extra_target_id
        wire['targetType'] = data.get('targetType') or extra_target_type
        sender_id = data.get('senderId') or extra_sender_id or ''

        return NotificationIntent(
            recipient_id=data['toUserId'],
            category=_category_of(data['type']),
            title=data['title'],
            body=data['body'],
            sender=Sender(id=str(sender_id), name=data.get('senderName') or '', avatar_url=data.get('senderAvatar') or ''),
            target=reconcile_wire(wire),
            extra=extra,
        )


class TestNotificationSchema(Schema):
    """
    POST /test-notification
    테스트 알림 요청. type/title/body 는 생략하면 기본값을 사용합니다.
    userId 가 없으면 수신자 없는 알림이 되어 발송 결과가 실패(success: false)로 응답됩니다.
    """
    class Meta:
        unknown = EXCLUDE

    userId = fields.Str(allow_none=True, load_default='')
    type = fields.Str(load_default=NotificationCategory.TEST.value)
    title = fields.Str(load_default='Test')
    body = fields.Str(load_default='Test notification')

    @post_load
    def make_intent(self, data, **kwargs) -> NotificationIntent:
        return NotificationIntent(
            recipient_id=data.get('userId') or '',
            category=_category_of(data['type']),
            title=data['title'],
            body=data['body'],
            sender=Sender(id='test_sender', name='Test User'),
            target=reconcile('test_target', 'test'),
            extra={'test': 'true'},
        )


def _category_of(value: str):
    """알려진 유형이면 Enum 으로, 아니면 문자열 그대로 사용합니다."""
    try:
        return NotificationCategory(value)
    except ValueError:
        return value
