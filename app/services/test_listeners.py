# app/services/test_listeners.py
"""
변경 피드 -> 분류 -> 발송 파이프라인 테스트

사용법: python -m pytest app/services/test_listeners.py -v
"""

import pytest

from app.core.config import config_by_name
from app.models.change_event import ChangeEvent, ChangeKind
from app.services.change_feed import SubscriptionHandle
from app.services.listeners import NotificationListeners
from app.services.rules import build_default_engine


class FakeFeed:
    def __init__(self):
        self.subscriptions = {}

    def subscribe(self, selector, on_change, on_error=None):
        self.subscriptions[str(selector)] = on_change
        return SubscriptionHandle(selector)


class BrokenEngine:
    def classify(self, event):
        if event.document_id == 'bad':
            raise RuntimeError("classify failed")
        return []


@pytest.fixture
def config():
    testing = config_by_name['testing']
    return {key: getattr(testing, key) for key in dir(testing) if key.isupper()}


@pytest.fixture
def listeners(config, store, notification_service):
    feed = FakeFeed()
    instance = NotificationListeners.from_config(config, feed, build_default_engine(store), notification_service)
    instance.start()
    yield instance
    instance.stop()


def test_start_subscribes_all_collections(listeners):
    assert set(listeners.feed.subscriptions) == {'Reviews', 'Posts', 'Users', 'group:Comments'}
    assert listeners.pool.running is True


def test_event_flows_to_notification_record(listeners, store, push):
    review = {'placeOwnerId': 'alice', 'placeId': 'pl1', 'userId': 'bob', 'userName': 'bob'}
    listeners.feed.subscriptions['Reviews'](ChangeEvent('Reviews', 'r1', ChangeKind.ADDED, after=review))
    listeners.pool.join()

    records = store.subdocuments('Users', 'alice', 'Notifications')
    assert len(records) == 1
    assert list(records.values())[0]['type'] == 'new_review'
    assert len(push.sent) == 1


def test_handle_event_counts_persisted(listeners, store):
    store.docs['Posts/p1'] = {'userId': 'alice'}
    event = ChangeEvent('Posts/p1/Comments', 'c1', ChangeKind.ADDED, after={'userId': 'bob'})
    assert listeners.handle_event(event) == 1


def test_dispatch_failure_does_not_stop_pipeline(listeners, store):
    """발송 중 저장 실패가 나도 예외 없이 0 을 반환해야 함"""
    store.fail_writes = True
    review = {'placeOwnerId': 'alice', 'placeId': 'pl1', 'userId': 'bob'}
    assert listeners.handle_event(ChangeEvent('Reviews', 'r1', ChangeKind.ADDED, after=review)) == 0


def test_classify_failure_is_recorded_and_next_event_continues(config, notification_service):
    feed = FakeFeed()
    instance = NotificationListeners.from_config(config, feed, BrokenEngine(), notification_service)
    instance.start()
    try:
        on_change = feed.subscriptions['Users']
        on_change(ChangeEvent('Users', 'bad', ChangeKind.MODIFIED, after={}))
        on_change(ChangeEvent('Users', 'good', ChangeKind.MODIFIED, after={}))
        instance.pool.join()

        failures = instance.pool.failures
        assert len(failures) == 1
        assert failures[0].item.document_id == 'bad'
    finally:
        instance.stop()
