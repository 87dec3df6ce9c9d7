# app/services/test_change_feed.py
"""
Firestore 변경 피드 어댑터 테스트 (on_snapshot 콜백 형식을 흉내 낸 가짜 객체 사용)

사용법: python -m pytest app/services/test_change_feed.py -v
"""

from types import SimpleNamespace

from app.core.exceptions import FeedSubscriptionError
from app.models.change_event import ChangeKind
from app.services.change_feed import ChangeFeedAdapter, CollectionSelector


def _change(kind, path, data=None):
    doc_id = path.rsplit('/', 1)[-1]
    snapshot = SimpleNamespace(
        id=doc_id,
        reference=SimpleNamespace(path=path),
        to_dict=lambda: data,
    )
    return SimpleNamespace(type=SimpleNamespace(name=kind), document=snapshot)


class FakeWatch:
    def __init__(self):
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class FakeQuery:
    def __init__(self, client, name, group):
        self.client = client
        self.name = name
        self.group = group

    def on_snapshot(self, callback):
        if self.client.fail:
            raise RuntimeError("permission denied")
        self.client.callbacks[(self.name, self.group)] = callback
        watch = FakeWatch()
        self.client.watches.append(watch)
        return watch


class FakeClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.callbacks = {}
        self.watches = []

    def collection(self, name):
        return FakeQuery(self, name, False)

    def collection_group(self, name):
        return FakeQuery(self, name, True)


def test_translates_snapshot_changes_to_events():
    client = FakeClient()
    events = []
    handle = ChangeFeedAdapter(client).subscribe(CollectionSelector('Reviews'), events.append)
    callback = client.callbacks[('Reviews', False)]

    # 최초 스냅샷
    callback([], [_change('ADDED', 'Reviews/r1', {'likes': []})], None)
    # 이후 변경
    callback([], [_change('MODIFIED', 'Reviews/r1', {'likes': ['bob']})], None)
    callback([], [_change('REMOVED', 'Reviews/r1', {'likes': ['bob']})], None)

    assert [e.change_kind for e in events] == [ChangeKind.ADDED, ChangeKind.MODIFIED, ChangeKind.REMOVED]
    assert events[0].is_initial is True
    assert events[1].is_initial is False
    assert events[0].before is None
    # 마지막으로 본 데이터가 before 로 채워짐
    assert events[1].before == {'likes': []}
    assert events[1].after == {'likes': ['bob']}
    assert events[2].after is None
    assert events[2].before == {'likes': ['bob']}
    assert handle.active is True


def test_group_subscription_keeps_full_path():
    client = FakeClient()
    events = []
    ChangeFeedAdapter(client).subscribe(CollectionSelector('Comments', group=True), events.append)
    client.callbacks[('Comments', True)]([], [_change('ADDED', 'Posts/p1/Comments/c1', {'userId': 'bob'})], None)

    event = events[0]
    assert event.collection_path == 'Posts/p1/Comments'
    assert event.collection_name == 'Comments'
    assert event.parent_path == 'Posts/p1'
    assert event.document_id == 'c1'


def test_handler_error_is_reported_and_next_change_continues():
    """한 변경의 처리 실패는 on_error 로 전달되고 다음 변경은 계속 처리되어야 함"""
    client = FakeClient()
    errors = []
    seen = []

    def on_change(event):
        if event.document_id == 'bad':
            raise ValueError("boom")
        seen.append(event.document_id)

    ChangeFeedAdapter(client).subscribe(CollectionSelector('Posts'), on_change, errors.append)
    client.callbacks[('Posts', False)]([], [
        _change('ADDED', 'Posts/bad', {}),
        _change('ADDED', 'Posts/ok', {}),
    ], None)

    assert seen == ['ok']
    assert len(errors) == 1
    assert isinstance(errors[0], FeedSubscriptionError)


def test_subscribe_failure_returns_inactive_handle():
    client = FakeClient(fail=True)
    errors = []
    handle = ChangeFeedAdapter(client).subscribe(CollectionSelector('Users'), lambda e: None, errors.append)

    assert handle.active is False
    assert isinstance(errors[0], FeedSubscriptionError)


def test_unsubscribe_stops_watch():
    client = FakeClient()
    handle = ChangeFeedAdapter(client).subscribe(CollectionSelector('Users'), lambda e: None)
    handle.unsubscribe()
    assert client.watches[0].unsubscribed is True
    assert handle.active is False
