# app/services/change_feed.py
"""
Firestore 변경 피드 어댑터

Query.on_snapshot 으로 컬렉션(또는 컬렉션 그룹)을 구독하고, 문서 변경마다 ChangeEvent 를 전달합니다.
Python Firestore SDK 는 변경 전 스냅샷을 주지 않으므로, 구독별로 마지막에 본 문서 데이터를
기억해 두었다가 before 로 채웁니다.
재연결은 SDK 의 Watch 가 담당하며, 이 어댑터는 자동으로 다시 구독하지 않습니다.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from firebase_admin import firestore

from app.core.exceptions import FeedSubscriptionError
from app.models.change_event import ChangeEvent, ChangeKind
from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

OnChange = Callable[[ChangeEvent], None]
OnError = Callable[[Exception], None]


@dataclass(frozen=True)
class CollectionSelector:
    """구독 대상. group=True 면 같은 이름의 모든 서브컬렉션(컬렉션 그룹)을 구독합니다."""
    name: str
    group: bool = False

    def __str__(self) -> str:
        return f"group:{self.name}" if self.group else self.name


class SubscriptionHandle:
    """구독 취소 핸들"""

    def __init__(self, selector: CollectionSelector, watch=None):
        self.selector = selector
        self._watch = watch
        self.active = watch is not None

    def unsubscribe(self) -> None:
        if self._watch is not None and self.active:
            self._watch.unsubscribe()
            logger.info(f"[Listener] 구독 해제: {self.selector}")
        self.active = False


class _SnapshotTranslator:
    """
    on_snapshot 콜백 하나에 대응하는 상태 객체.
    문서 경로별 마지막 데이터와 최초 스냅샷 여부를 관리합니다.
    """

    def __init__(self, selector: CollectionSelector, on_change: OnChange, on_error: OnError):
        self.selector = selector
        self.on_change = on_change
        self.on_error = on_error
        self._last_seen: Dict[str, Dict[str, Any]] = {}
        self._initial = True
        self._lock = threading.Lock()

    def __call__(self, doc_snapshots, changes, read_time) -> None:
        with self._lock:
            is_initial = self._initial
            self._initial = False
            for change in changes:
                try:
                    event = self._to_event(change, is_initial)
                except Exception as e:
                    self.on_error(FeedSubscriptionError(f"{self.selector} 변경 이벤트 변환 실패: {e}"))
                    continue
                try:
                    self.on_change(event)
                except Exception as e:
                    self.on_error(FeedSubscriptionError(
                        f"{self.selector} 변경 처리 실패 ({event.document_path}): {e}"
                    ))

    def _to_event(self, change, is_initial: bool) -> ChangeEvent:
        snapshot = change.document
        path = snapshot.reference.path
        collection_path = path.rsplit('/', 1)[0]
        kind = ChangeKind[change.type.name]

        before = self._last_seen.get(path)
        if kind == ChangeKind.REMOVED:
            after = None
            self._last_seen.pop(path, None)
        else:
            after = DateTimeUtils.from_firestore(snapshot.to_dict() or {})
            self._last_seen[path] = after

        return ChangeEvent(
            collection_path=collection_path,
            document_id=snapshot.id,
            change_kind=kind,
            before=before,
            after=after,
            is_initial=is_initial,
        )


class ChangeFeedAdapter:
    """
    Firestore 변경 피드 구독을 담당하는 서비스 클래스입니다.
    """

    def __init__(self, client=None):
        self.db = client or firestore.client()

    def _query(self, selector: CollectionSelector):
        if selector.group:
            return self.db.collection_group(selector.name)
        return self.db.collection(selector.name)

    def subscribe(self, selector: CollectionSelector, on_change: OnChange,
                  on_error: Optional[OnError] = None) -> SubscriptionHandle:
        """
        컬렉션 변경을 구독합니다.

        :param selector: 구독할 컬렉션 또는 컬렉션 그룹
        :param on_change: 변경 이벤트마다 호출되는 콜백
        :param on_error: 변환/처리/구독 실패를 전달받는 콜백
        :return: 구독 해제에 사용하는 SubscriptionHandle
        """
        if on_error is None:
            def on_error(err: Exception) -> None:
                logger.error(f"[Listener Error] {selector}: {err}")

        translator = _SnapshotTranslator(selector, on_change, on_error)
        try:
            watch = self._query(selector).on_snapshot(translator)
        except Exception as e:
            on_error(FeedSubscriptionError(f"{selector} 구독 실패: {e}"))
            return SubscriptionHandle(selector)

        logger.info(f"[Listener] 구독 시작: {selector}")
        return SubscriptionHandle(selector, watch)
