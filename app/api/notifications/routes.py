# app/api/notifications/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from app.api.notifications.schemas import RegisterTokenSchema, SendNotificationSchema, TestNotificationSchema

notifications_bp = Blueprint('notifications_bp', __name__)


def _validation_error(err: ValidationError):
    return jsonify({"success": False, "error_code": "VALIDATION_ERROR", "details": err.messages}), 400


@notifications_bp.route('/register-token', methods=['POST'])
def register_token():
    """
    클라이언트의 FCM 토큰을 등록/업데이트합니다.
    - 사용자 문서에 병합 저장하므로 다른 필드는 유지됩니다.
    """
    notification_service = current_app.services['notifications']
    try:
        data = RegisterTokenSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _validation_error(err)

    try:
        notification_service.register_token(data['userId'], data['pushToken'])
        return jsonify({"success": True, "message": "FCM 토큰이 성공적으로 등록되었습니다."}), 200
    except Exception as e:
        logging.error(f"FCM 토큰 등록 중 오류 발생 (user_id: {data['userId']}): {e}", exc_info=True)
        return jsonify({"success": False, "error_code": "TOKEN_REGISTRATION_FAILED",
                        "message": "FCM 토큰 등록 중 서버 오류가 발생했습니다."}), 500


@notifications_bp.route('/send-notification', methods=['POST'])
def send_notification():
    """
    지정한 사용자에게 알림을 수동으로 발송합니다.
    - 알림 기록이 저장되면 푸시 전송 성공 여부와 관계없이 성공으로 응답합니다.
    """
    notification_service = current_app.services['notifications']
    try:
        intent = SendNotificationSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _validation_error(err)

    logging.info(f"[API] Sending notification to {intent.recipient_id}: {intent.title}")
    try:
        result = notification_service.dispatch(intent)
    except Exception as e:
        logging.error(f"알림 발송 중 오류 발생 (to: {intent.recipient_id}): {e}", exc_info=True)
        return jsonify({"success": False, "error_code": "INTERNAL_SERVER_ERROR",
                        "message": "알림 발송 중 서버 오류가 발생했습니다."}), 500

    if not result.persisted:
        return jsonify({"success": False, "error_code": "NOTIFICATION_SEND_FAILED",
                        "message": "알림을 발송하지 못했습니다."}), 500
    return jsonify({
        "success": True,
        "message": "Notification sent and saved",
        "delivered": result.delivered,
        "notificationId": result.notification_id
    }), 200


@notifications_bp.route('/test-notification', methods=['POST'])
def test_notification():
    """디버그용 테스트 알림을 발송합니다."""
    notification_service = current_app.services['notifications']
    try:
        intent = TestNotificationSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return _validation_error(err)

    try:
        result = notification_service.dispatch(intent)
        success = result.persisted
        return jsonify({"success": success, "message": "Test sent" if success else "Failed"}), 200
    except Exception as e:
        logging.error(f"테스트 알림 발송 중 오류 발생 (user_id: {intent.recipient_id}): {e}", exc_info=True)
        return jsonify({"success": False, "error_code": "INTERNAL_SERVER_ERROR", "message": str(e)}), 500
