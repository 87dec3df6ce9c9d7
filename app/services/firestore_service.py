# app/services/firestore_service.py
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from app.core.exceptions import StoreError
from app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """
    알림 릴레이가 필요로 하는 문서 저장소 연산의 최소 집합.
    운영 환경에서는 FirestoreDocumentStore, 테스트에서는 메모리 구현을 사용합니다.
    모든 구현은 실패 시 StoreError 를 발생시켜야 합니다.
    """

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """문서가 없으면 None"""

    @abstractmethod
    def get_by_path(self, path: str) -> Optional[Dict[str, Any]]:
        """'Posts/p1/Comments/c1' 같은 전체 경로로 문서를 조회합니다."""

    @abstractmethod
    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ...

    @abstractmethod
    def set_subdocument(self, collection: str, doc_id: str, subcollection: str,
                        sub_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_field(self, collection: str, doc_id: str, field_name: str) -> None:
        ...

    @abstractmethod
    def find_in_group(self, group: str, field_name: str, value: Any, limit: int = 2) -> List[Dict[str, Any]]:
        """컬렉션 그룹 전체에서 field == value 인 문서를 찾습니다."""

    @abstractmethod
    def server_timestamp(self) -> Any:
        """쓰기 시점에 저장소가 채우는 생성 시각 값"""


class FirestoreDocumentStore(DocumentStore):
    """
    firebase_admin Firestore 클라이언트를 감싼 DocumentStore 구현.
    """

    def __init__(self, client=None):
        self.db = client or firestore.client()

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = self.db.collection(collection).document(doc_id).get()
        except Exception as e:
            logger.error(f"Firestore 조회 실패 ({collection}/{doc_id}): {e}", exc_info=True)
            raise StoreError(f"문서 조회 실패: {collection}/{doc_id}") from e
        if not doc.exists:
            return None
        return DateTimeUtils.from_firestore(doc.to_dict() or {})

    def get_by_path(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            doc = self.db.document(path).get()
        except Exception as e:
            logger.error(f"Firestore 조회 실패 ({path}): {e}", exc_info=True)
            raise StoreError(f"문서 조회 실패: {path}") from e
        if not doc.exists:
            return None
        return DateTimeUtils.from_firestore(doc.to_dict() or {})

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        try:
            self.db.collection(collection).document(doc_id).set(data, merge=merge)
        except Exception as e:
            logger.error(f"Firestore 저장 실패 ({collection}/{doc_id}): {e}", exc_info=True)
            raise StoreError(f"문서 저장 실패: {collection}/{doc_id}") from e

    def set_subdocument(self, collection: str, doc_id: str, subcollection: str,
                        sub_id: str, data: Dict[str, Any]) -> None:
        path = f"{collection}/{doc_id}/{subcollection}/{sub_id}"
        try:
            self.db.collection(collection).document(doc_id).collection(subcollection).document(sub_id).set(data)
            logger.info(f"Firestore 저장 성공 ({path})")
        except Exception as e:
            logger.error(f"Firestore 저장 실패 ({path}): {e}", exc_info=True)
            raise StoreError(f"문서 저장 실패: {path}") from e

    def delete_field(self, collection: str, doc_id: str, field_name: str) -> None:
        try:
            self.db.collection(collection).document(doc_id).update({field_name: firestore.DELETE_FIELD})
        except Exception as e:
            logger.error(f"Firestore 필드 삭제 실패 ({collection}/{doc_id}.{field_name}): {e}", exc_info=True)
            raise StoreError(f"필드 삭제 실패: {collection}/{doc_id}.{field_name}") from e

    def find_in_group(self, group: str, field_name: str, value: Any, limit: int = 2) -> List[Dict[str, Any]]:
        try:
            docs = self.db.collection_group(group).where(filter=FieldFilter(field_name, '==', value)).limit(limit).stream()
            return [DateTimeUtils.from_firestore(doc.to_dict() or {}) for doc in docs]
        except Exception as e:
            logger.error(f"컬렉션 그룹 조회 실패 ({group}.{field_name} == {value}): {e}", exc_info=True)
            raise StoreError(f"컬렉션 그룹 조회 실패: {group}") from e

    def server_timestamp(self) -> Any:
        return firestore.SERVER_TIMESTAMP
