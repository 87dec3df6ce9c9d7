# app/conftest.py
"""
테스트 공용 픽스처

Firestore/FCM 대신 메모리 저장소와 전송 기록용 푸시 서비스를 사용합니다.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from app.core.exceptions import StoreError
from app.services.firestore_service import DocumentStore
from app.services.push_service import PushMessage, PushService
from app.services.notification_service import NotificationService

SERVER_TIMESTAMP = '__SERVER_TIMESTAMP__'


class InMemoryDocumentStore(DocumentStore):
    """문서 전체 경로('Users/u1', 'Posts/p1/Comments/c1')를 키로 사용하는 메모리 저장소"""

    def __init__(self, docs: Optional[Dict[str, Dict[str, Any]]] = None):
        self.docs: Dict[str, Dict[str, Any]] = copy.deepcopy(docs or {})
        self.fail_writes = False

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.get_by_path(f"{collection}/{doc_id}")

    def get_by_path(self, path: str) -> Optional[Dict[str, Any]]:
        doc = self.docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._check_write()
        path = f"{collection}/{doc_id}"
        if merge and path in self.docs:
            self.docs[path].update(copy.deepcopy(data))
        else:
            self.docs[path] = copy.deepcopy(data)

    def set_subdocument(self, collection: str, doc_id: str, subcollection: str,
                        sub_id: str, data: Dict[str, Any]) -> None:
        self._check_write()
        self.docs[f"{collection}/{doc_id}/{subcollection}/{sub_id}"] = copy.deepcopy(data)

    def delete_field(self, collection: str, doc_id: str, field_name: str) -> None:
        self._check_write()
        self.docs.get(f"{collection}/{doc_id}", {}).pop(field_name, None)

    def find_in_group(self, group: str, field_name: str, value: Any, limit: int = 2) -> List[Dict[str, Any]]:
        matches = []
        for path in sorted(self.docs):
            segments = path.split('/')
            if len(segments) >= 2 and segments[-2] == group and self.docs[path].get(field_name) == value:
                matches.append(copy.deepcopy(self.docs[path]))
            if len(matches) >= limit:
                break
        return matches

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def subdocuments(self, collection: str, doc_id: str, subcollection: str) -> Dict[str, Dict[str, Any]]:
        prefix = f"{collection}/{doc_id}/{subcollection}/"
        return {path[len(prefix):]: doc for path, doc in self.docs.items()
                if path.startswith(prefix) and '/' not in path[len(prefix):]}

    def _check_write(self) -> None:
        if self.fail_writes:
            raise StoreError("쓰기 실패 (테스트)")


class RecordingPushService(PushService):
    """전송한 메시지를 기록합니다. error 가 설정되어 있으면 그 예외를 발생시킵니다."""

    def __init__(self, error: Optional[Exception] = None):
        self.sent: List[PushMessage] = []
        self.error = error

    def send(self, message: PushMessage) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return f"projects/test/messages/{len(self.sent)}"


@pytest.fixture
def store():
    return InMemoryDocumentStore({
        'Users/alice': {'name': 'Alice', 'avatar': 'https://img/alice.png', 'fcmToken': 'token-alice'},
        'Users/bob': {'name': 'bob', 'fcmToken': 'token-bob'},
        'Users/carol': {'name': 'Carol'},
    })


@pytest.fixture
def push():
    return RecordingPushService()


@pytest.fixture
def notification_service(store, push):
    return NotificationService(store, push)


@pytest.fixture
def app(store, push):
    from app import create_app
    flask_app = create_app('testing', services={'store': store, 'push': push})
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
