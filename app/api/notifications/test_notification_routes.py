# app/api/notifications/test_notification_routes.py
"""
알림 API 테스트

사용법: python -m pytest app/api/notifications/test_notification_routes.py -v
"""

from app.core.exceptions import PushDeliveryError


def test_register_token(client, store):
    response = client.post('/register-token', json={'userId': 'carol', 'pushToken': 'token-carol'})
    assert response.status_code == 200
    assert response.get_json()['success'] is True
    assert store.get_document('Users', 'carol')['fcmToken'] == 'token-carol'


def test_register_token_accepts_legacy_key(client, store):
    response = client.post('/register-token', json={'userId': 'carol', 'fcmToken': 'legacy'})
    assert response.status_code == 200
    assert store.get_document('Users', 'carol')['fcmToken'] == 'legacy'


def test_register_token_missing_token_is_400(client, store):
    response = client.post('/register-token', json={'userId': 'carol'})
    body = response.get_json()
    assert response.status_code == 400
    assert body['success'] is False
    assert body['error_code'] == 'VALIDATION_ERROR'
    assert 'pushToken' in body['details']
    assert 'fcmToken' not in store.get_document('Users', 'carol')


def test_send_notification(client, store, push):
    response = client.post('/send-notification', json={
        'toUserId': 'alice',
        'type': 'post_liked',
        'title': 'New Like',
        'body': 'bob liked your post',
        'senderId': 'bob',
        'senderName': 'bob',
        'extraData': {'postId': 'p1', 'likeCount': 2},
    })
    body = response.get_json()

    assert response.status_code == 200
    assert body['success'] is True
    assert body['delivered'] is True
    record = store.subdocuments('Users', 'alice', 'Notifications')[body['notificationId']]
    assert record['targetId'] == 'p1'
    assert record['targetType'] == 'post'
    assert record['postId'] == 'p1'
    assert record['data'] == {'likeCount': 2}
    assert push.sent[0].data['likeCount'] == '2'


def test_send_notification_saves_record_when_push_fails(client, store, push):
    push.error = PushDeliveryError("unavailable")
    response = client.post('/send-notification', json={
        'toUserId': 'alice', 'type': 'custom', 'title': 'Hi', 'body': 'Hello',
    })
    body = response.get_json()

    assert response.status_code == 200
    assert body['success'] is True
    assert body['delivered'] is False
    assert store.subdocuments('Users', 'alice', 'Notifications')[body['notificationId']]['type'] == 'custom'


def test_send_notification_validation(client):
    response = client.post('/send-notification', json={'toUserId': 'alice'})
    body = response.get_json()
    assert response.status_code == 400
    assert body['success'] is False
    assert set(body['details']) == {'type', 'title', 'body'}


def test_send_notification_unknown_recipient_is_500(client):
    response = client.post('/send-notification', json={
        'toUserId': 'ghost', 'type': 'custom', 'title': 'Hi', 'body': 'Hello',
    })
    assert response.status_code == 500
    assert response.get_json()['success'] is False


def test_test_notification(client, store, push):
    response = client.post('/test-notification', json={'userId': 'alice'})
    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'message': 'Test sent'}

    record = list(store.subdocuments('Users', 'alice', 'Notifications').values())[0]
    assert record['type'] == 'test'
    assert record['senderId'] == 'test_sender'
    assert record['targetId'] == 'test_target'
    assert record['data'] == {'test': 'true'}


def test_test_notification_unknown_user_reports_failure(client):
    response = client.post('/test-notification', json={'userId': 'ghost'})
    assert response.status_code == 200
    assert response.get_json() == {'success': False, 'message': 'Failed'}


def test_test_notification_without_user_id_reports_failure(client, push):
    """userId 가 없으면 200 으로 실패를 알리고 아무것도 보내지 않아야 함"""
    response = client.post('/test-notification', json={})
    assert response.status_code == 200
    assert response.get_json() == {'success': False, 'message': 'Failed'}
    assert push.sent == []
