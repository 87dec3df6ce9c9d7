# app/models/change_event.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class ChangeKind(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """
    변경 피드가 문서 변경 하나마다 만들어내는 이벤트. 저장되지 않습니다.
    before 는 구독 중에 이전 상태를 관찰한 경우에만 채워집니다.
    """
    collection_path: str  # 예: 'Reviews', 'Posts/p1/Comments'
    document_id: str
    change_kind: ChangeKind
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    is_initial: bool = False  # 구독 직후 최초 스냅샷에 속한 이벤트

    @property
    def collection_name(self) -> str:
        """경로의 마지막 컬렉션 이름 (컬렉션 그룹 이름과 같음)"""
        return self.collection_path.rsplit('/', 1)[-1]

    @property
    def document_path(self) -> str:
        return f"{self.collection_path}/{self.document_id}"

    @property
    def parent_path(self) -> Optional[str]:
        """서브컬렉션인 경우 상위 문서 경로, 최상위 컬렉션이면 None"""
        if '/' not in self.collection_path:
            return None
        return self.collection_path.rsplit('/', 1)[0]

    @property
    def document(self) -> Dict[str, Any]:
        """현재 문서 데이터. 삭제 이벤트면 이전 데이터를 반환합니다."""
        return self.after or self.before or {}
