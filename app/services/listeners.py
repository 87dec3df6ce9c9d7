# app/services/listeners.py
import logging
from typing import List, Optional

from app.models.change_event import ChangeEvent
from app.models.notification import category_value
from app.services.change_feed import ChangeFeedAdapter, CollectionSelector, SubscriptionHandle
from app.services.notification_service import NotificationService
from app.services.rules import RuleEngine
from app.services.worker_pool import NotificationWorkerPool, WorkerFailure

logger = logging.getLogger(__name__)


class NotificationListeners:
    """
    변경 피드 -> 워커 풀 -> 분류 규칙 -> 발송 파이프라인을 연결하는 클래스.

    피드 콜백은 이벤트를 워커 풀에 넣기만 하며, 이벤트 하나의 처리 실패는
    해당 이벤트만 버리고 구독과 다른 이벤트에는 영향을 주지 않습니다.
    """

    def __init__(self, feed: ChangeFeedAdapter, engine: RuleEngine, notification_service: NotificationService,
                 selectors: List[CollectionSelector], pool: Optional[NotificationWorkerPool] = None,
                 workers: int = 4, max_queue_size: int = 1000, submit_timeout: float = 5.0):
        self.feed = feed
        self.engine = engine
        self.notification_service = notification_service
        self.selectors = selectors
        self.pool = pool or NotificationWorkerPool(
            self.handle_event, workers=workers, max_queue_size=max_queue_size,
            submit_timeout=submit_timeout, on_failure=self._on_failure,
            # 같은 문서의 변경은 같은 워커가 도착 순서대로 처리
            key=lambda event: event.document_path,
        )
        self._handles: List[SubscriptionHandle] = []

    @classmethod
    def from_config(cls, config, feed: ChangeFeedAdapter, engine: RuleEngine,
                    notification_service: NotificationService) -> 'NotificationListeners':
        selectors = [
            CollectionSelector(config['REVIEWS_COLLECTION']),
            CollectionSelector(config['POSTS_COLLECTION']),
            CollectionSelector(config['USERS_COLLECTION']),
            # 최상위 Comments 와 Posts/{postId}/Comments 를 모두 구독
            CollectionSelector(config['COMMENTS_COLLECTION'], group=True),
        ]
        return cls(
            feed, engine, notification_service, selectors,
            workers=config['LISTENER_WORKERS'],
            max_queue_size=config['LISTENER_QUEUE_SIZE'],
            submit_timeout=config['LISTENER_SUBMIT_TIMEOUT'],
        )

    def start(self) -> None:
        self.pool.start()
        for selector in self.selectors:
            logger.info(f"[Listener] Setting up listener for {selector}...")
            handle = self.feed.subscribe(selector, self.pool.submit, self._on_feed_error)
            self._handles.append(handle)
        logger.info("All notification listeners initialized")

    def stop(self) -> None:
        for handle in self._handles:
            handle.unsubscribe()
        self._handles = []
        self.pool.shutdown()

    def handle_event(self, event: ChangeEvent) -> int:
        """
        이벤트 하나를 분류하고 만들어진 알림을 모두 발송합니다.
        발송 실패는 알림 단위로 기록하고 다음 알림을 계속 처리합니다.

        :return: 기록까지 저장된 알림 수
        """
        intents = self.engine.classify(event)
        persisted = 0
        for intent in intents:
            try:
                result = self.notification_service.dispatch(intent)
            except Exception as e:
                logger.error(
                    f"알림 발송 실패 ({category_value(intent.category)} -> {intent.recipient_id}, "
                    f"event: {event.document_path}): {e}", exc_info=True
                )
                continue
            if result.persisted:
                persisted += 1
        return persisted

    def _on_feed_error(self, error: Exception) -> None:
        logger.error(f"[Listener Error] {error}")

    def _on_failure(self, failure: WorkerFailure) -> None:
        item = failure.item
        if isinstance(item, ChangeEvent):
            logger.error(f"[Listener Error] 이벤트 처리 실패로 버림: {item.document_path} ({item.change_kind.value})")
