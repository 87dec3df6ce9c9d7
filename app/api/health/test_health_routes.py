# app/api/health/test_health_routes.py
"""
헬스 체크 API 테스트

사용법: python -m pytest app/api/health/test_health_routes.py -v
"""


def test_health(client):
    response = client.get('/health')
    body = response.get_json()
    assert response.status_code == 200
    assert body['status'] == 'OK'
    assert body['service'] == 'Notification Server'
    assert body['timestamp'].endswith('Z')


def test_ping_and_root(client):
    assert client.get('/ping').get_data(as_text=True) == 'Server is awake!'
    assert client.get('/').get_data(as_text=True) == 'Notification Server is running!'


def test_unknown_route_is_404(client):
    assert client.get('/nope').status_code == 404
