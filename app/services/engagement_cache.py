# app/services/engagement_cache.py
import threading
from typing import Dict, Optional


class EngagementCache:
    """
    문서 id -> 마지막으로 관찰한 참여 목록(팔로워 등)의 길이.

    변경 피드가 이전 스냅샷을 주지 못할 때만 증가 여부 판단에 사용합니다.
    프로세스 메모리에만 있으므로 재시작 시 비어 있는 상태에서 다시 채워집니다.
    개별 읽기/쓰기는 잠금으로 보호되지만, 읽고-비교하고-쓰는 과정 전체는 원자적이지 않습니다.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, doc_id: str) -> Optional[int]:
        with self._lock:
            return self._counts.get(doc_id)

    def set(self, doc_id: str, count: int) -> None:
        with self._lock:
            self._counts[doc_id] = count

    def discard(self, doc_id: str) -> None:
        with self._lock:
            self._counts.pop(doc_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
