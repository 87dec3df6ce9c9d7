# app/services/rules.py
"""
이벤트 분류 규칙

문서 변경(ChangeEvent) 하나를 0개 이상의 NotificationIntent 로 바꿉니다.
규칙은 (컬렉션, 변경 종류) 단위로 선언되며, 좋아요/팔로우처럼 구조가 같은 규칙은
EngagementRuleSpec 테이블 한 줄로 추가합니다.

공통 정책
- 행위자와 수신자가 같으면 알림을 만들지 않습니다.
- 수신자 id 가 비어 있으면 알림을 만들지 않습니다.
- 참조 문서(리뷰, 게시물, 부모 댓글, 좋아요한 사용자)를 찾지 못하면 알림을 만들지 않습니다.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.models.change_event import ChangeEvent, ChangeKind
from app.models.notification import NotificationCategory, NotificationIntent, Sender
from app.services.engagement_cache import EngagementCache
from app.services.firestore_service import DocumentStore
from app.utils.target_ids import reconcile

logger = logging.getLogger(__name__)


def detect_new_member(before_members: Optional[Sequence[Any]], after_members: Sequence[Any],
                      cached_count: Optional[int] = None) -> Optional[Any]:
    """
    참여 목록(likes, likedBy, followers)이 늘어났는지 길이로만 판단하고 새 참여자를 반환합니다.

    - 이전 목록이 있으면 그 길이와, 없으면 캐시된 길이(없으면 0)와 비교합니다.
    - 길이가 같거나 줄었으면 구성원이 바뀌었더라도 None 입니다.
    - 새 참여자는 이전 목록에 없는 첫 번째 원소입니다. 이전 목록 없이 개수만 알면
      마지막 원소(가장 최근 참여자)를 사용합니다.
    - 한 번에 여러 명이 늘어도 한 명만 반환합니다.
    """
    previous_count = len(before_members) if before_members is not None else (cached_count or 0)
    if len(after_members) <= previous_count:
        return None
    if before_members is None:
        return after_members[-1]
    for member in after_members:
        if member not in before_members:
            return member
    return None


def _members(document: Optional[Dict[str, Any]], field_name: str) -> Optional[List[Any]]:
    if document is None:
        return None
    value = document.get(field_name) or []
    return list(value)


def _author_sender(document: Dict[str, Any]) -> Sender:
    """리뷰/댓글 문서에 비정규화되어 있는 작성자 정보로 Sender 를 만듭니다."""
    return Sender(
        id=document.get('userId') or '',
        name=document.get('userName') or '',
        avatar_url=document.get('userAvatar') or '',
    )


class Rule(ABC):
    """
    분류 규칙의 기본 클래스.
    collection 은 컬렉션(또는 컬렉션 그룹)의 이름, change_kinds 는 evaluate 를 호출할 변경 종류입니다.
    """
    collection: str = ''
    change_kinds: Tuple[ChangeKind, ...] = ()

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        return []

    def observe(self, event: ChangeEvent) -> None:
        """evaluate 여부와 관계없이 같은 컬렉션의 모든 이벤트마다 호출됩니다."""


class NewReviewRule(Rule):
    """리뷰가 추가되면 장소 소유자에게 알립니다."""
    change_kinds = (ChangeKind.ADDED,)

    def __init__(self, reviews_collection: str = 'Reviews'):
        self.collection = reviews_collection

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        review = event.after or {}
        owner_id = review.get('placeOwnerId')
        sender = _author_sender(review)
        if not owner_id or owner_id == sender.id:
            return []

        place_id = review.get('placeId') or ''
        extra = {}
        if review.get('rating') is not None:
            extra['rating'] = review.get('rating')
        if review.get('reviewText'):
            extra['reviewText'] = str(review['reviewText'])[:100]

        return [NotificationIntent(
            recipient_id=owner_id,
            category=NotificationCategory.NEW_REVIEW,
            title='New Review',
            body=f"{sender.name or 'Someone'} reviewed your place",
            sender=sender,
            target=reconcile(place_id, 'place', {'place': place_id, 'review': event.document_id}),
            extra=extra,
        )]


class ReviewCommentRule(Rule):
    """최상위 Comments 컬렉션에 리뷰 댓글이 추가되면 리뷰 작성자에게 알립니다."""
    change_kinds = (ChangeKind.ADDED,)

    def __init__(self, store: DocumentStore, comments_collection: str = 'Comments',
                 reviews_collection: str = 'Reviews'):
        self.store = store
        self.collection = comments_collection
        self.reviews_collection = reviews_collection

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        comment = event.after or {}
        if event.parent_path is not None or comment.get('parentType') != 'review':
            return []
        review_id = comment.get('parentId')
        if not review_id:
            return []

        review = self.store.get_document(self.reviews_collection, review_id)
        if review is None:
            logger.info(f"댓글 알림 생략: 리뷰를 찾을 수 없음 (review_id: {review_id})")
            return []
        author_id = review.get('userId')
        sender = _author_sender(comment)
        if not author_id or author_id == sender.id:
            return []

        return [NotificationIntent(
            recipient_id=author_id,
            category=NotificationCategory.NEW_COMMENT,
            title='New Comment',
            body=f"{sender.name or 'Someone'} commented on your review",
            sender=sender,
            target=reconcile(review_id, 'review', {
                'review': review_id,
                'place': review.get('placeId'),
                'comment': event.document_id,
            }),
        )]


class PostCommentRule(Rule):
    """Posts/{postId}/Comments 서브컬렉션에 댓글이 추가되면 게시물 작성자에게 알립니다."""
    change_kinds = (ChangeKind.ADDED,)

    def __init__(self, store: DocumentStore, comments_collection: str = 'Comments',
                 posts_collection: str = 'Posts'):
        self.store = store
        self.collection = comments_collection
        self.posts_collection = posts_collection

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        parent_path = event.parent_path
        if parent_path is None:
            return []
        parent_collection, _, post_id = parent_path.rpartition('/')
        if parent_collection.rsplit('/', 1)[-1] != self.posts_collection or not post_id:
            return []

        post = self.store.get_by_path(parent_path)
        if post is None:
            logger.info(f"댓글 알림 생략: 게시물을 찾을 수 없음 (post_id: {post_id})")
            return []
        comment = event.after or {}
        author_id = post.get('userId')
        sender = _author_sender(comment)
        if not author_id or author_id == sender.id:
            return []

        return [NotificationIntent(
            recipient_id=author_id,
            category=NotificationCategory.NEW_COMMENT,
            title='New Comment',
            body=f"{sender.name or 'Someone'} commented on your post",
            sender=sender,
            target=reconcile(post_id, 'post', {'post': post_id, 'comment': event.document_id}),
        )]


class ReplyRule(Rule):
    """
    parentCommentId 가 있는 댓글이 추가되면 부모 댓글 작성자에게 알립니다.
    부모 댓글은 같은 컬렉션의 문서 경로로 먼저 찾고, 없으면 컬렉션 그룹에서 'id' 필드로 찾습니다.
    """
    change_kinds = (ChangeKind.ADDED,)

    def __init__(self, store: DocumentStore, comments_collection: str = 'Comments',
                 posts_collection: str = 'Posts'):
        self.store = store
        self.collection = comments_collection
        self.posts_collection = posts_collection

    def _resolve_parent(self, event: ChangeEvent, parent_id: str) -> Optional[Dict[str, Any]]:
        parent = self.store.get_by_path(f"{event.collection_path}/{parent_id}")
        if parent is not None:
            return parent
        matches = self.store.find_in_group(self.collection, 'id', parent_id, limit=2)
        if len(matches) > 1:
            logger.warning(f"부모 댓글 id 가 중복되어 첫 번째 문서를 사용합니다 (id: {parent_id})")
        return matches[0] if matches else None

    def _post_id(self, event: ChangeEvent, comment: Dict[str, Any]) -> str:
        if comment.get('postId'):
            return comment['postId']
        parent_path = event.parent_path
        if parent_path:
            parent_collection, _, doc_id = parent_path.rpartition('/')
            if parent_collection.rsplit('/', 1)[-1] == self.posts_collection:
                return doc_id
        return ''

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        comment = event.after or {}
        parent_id = comment.get('parentCommentId')
        if not parent_id:
            return []

        parent = self._resolve_parent(event, parent_id)
        if parent is None:
            logger.info(f"답글 알림 생략: 부모 댓글을 찾을 수 없음 (parent_id: {parent_id})")
            return []
        parent_author_id = parent.get('userId')
        sender = _author_sender(comment)
        if not parent_author_id or parent_author_id == sender.id:
            return []

        return [NotificationIntent(
            recipient_id=parent_author_id,
            category=NotificationCategory.COMMENT_REPLIED,
            title='New Reply',
            body=f"{sender.name or 'Someone'} replied to you",
            sender=sender,
            target=reconcile(parent_id, 'comment', {
                'comment': parent_id,
                'post': self._post_id(event, comment),
                'place': parent.get('placeId') or comment.get('placeId'),
            }),
            extra={'parentCommentId': parent_id, 'replyId': event.document_id},
        )]


@dataclass(frozen=True)
class EngagementRuleSpec:
    """
    '참여 목록이 늘어나면 소유자에게 알린다' 형태의 규칙 선언.

    owner_field 가 None 이면 문서 id 자체가 소유자(사용자 문서)입니다.
    target_is_actor 가 True 이면 알림 대상이 참여자 본인(예: 새 팔로워)입니다.
    context_fields 는 (문서 필드, 대상 종류) 쌍으로 함께 실어 보낼 식별자입니다.
    require_actor_doc 가 False 이면 참여자 사용자 문서가 없어도 기본 이름으로 알림을 만듭니다.
    """
    collection: str
    engagement_field: str
    category: NotificationCategory
    target_type: str
    title: str
    body_template: str
    owner_field: Optional[str] = 'userId'
    target_is_actor: bool = False
    context_fields: Tuple[Tuple[str, str], ...] = ()
    count_key: Optional[str] = None
    use_cache: bool = False
    require_actor_doc: bool = True


def engagement_rule_table(reviews_collection: str = 'Reviews', posts_collection: str = 'Posts',
                          users_collection: str = 'Users') -> List[EngagementRuleSpec]:
    return [
        EngagementRuleSpec(
            collection=reviews_collection, engagement_field='likes',
            category=NotificationCategory.REVIEW_LIKED, target_type='review',
            title='New Like', body_template='{name} liked your review',
            context_fields=(('placeId', 'place'),), count_key='likeCount',
        ),
        EngagementRuleSpec(
            collection=posts_collection, engagement_field='likedBy',
            category=NotificationCategory.POST_LIKED, target_type='post',
            title='New Like', body_template='{name} liked your post',
            count_key='likeCount',
        ),
        EngagementRuleSpec(
            collection=users_collection, engagement_field='followers',
            category=NotificationCategory.NEW_FOLLOWER, target_type='user',
            title='New Follower', body_template='{name} started following you',
            owner_field=None, target_is_actor=True, use_cache=True,
            require_actor_doc=False,
        ),
    ]


class EngagementRule(Rule):
    """EngagementRuleSpec 하나를 평가하는 규칙. 문서 수정 이벤트에서만 알림을 만듭니다."""
    change_kinds = (ChangeKind.MODIFIED,)

    def __init__(self, spec: EngagementRuleSpec, store: DocumentStore,
                 users_collection: str = 'Users', cache: Optional[EngagementCache] = None):
        if spec.use_cache and cache is None:
            raise ValueError(f"{spec.collection}.{spec.engagement_field} 규칙에는 EngagementCache 가 필요합니다.")
        self.spec = spec
        self.collection = spec.collection
        self.store = store
        self.users_collection = users_collection
        self.cache = cache

    def observe(self, event: ChangeEvent) -> None:
        if not self.spec.use_cache:
            return
        if event.change_kind == ChangeKind.REMOVED:
            self.cache.discard(event.document_id)
            return
        self.cache.set(event.document_id, len(_members(event.after, self.spec.engagement_field) or []))

    def evaluate(self, event: ChangeEvent) -> List[NotificationIntent]:
        spec = self.spec
        document = event.after or {}
        after_members = _members(document, spec.engagement_field) or []
        before_members = _members(event.before, spec.engagement_field)
        cached_count = self.cache.get(event.document_id) if spec.use_cache else None

        actor_id = detect_new_member(before_members, after_members, cached_count)
        owner_id = event.document_id if spec.owner_field is None else document.get(spec.owner_field)
        if not actor_id or not owner_id or actor_id == owner_id:
            return []

        actor = self.store.get_document(self.users_collection, actor_id)
        if actor is None:
            if spec.require_actor_doc:
                logger.info(f"{spec.category.value} 알림 생략: 사용자를 찾을 수 없음 (user_id: {actor_id})")
                return []
            actor = {}
        actor_name = actor.get('name') or ''

        if spec.target_is_actor:
            target = reconcile(actor_id, spec.target_type)
        else:
            typed_ids = {spec.target_type: event.document_id}
            for field_name, kind in spec.context_fields:
                typed_ids.setdefault(kind, document.get(field_name))
            target = reconcile(event.document_id, spec.target_type, typed_ids)

        extra = {}
        if spec.count_key:
            extra[spec.count_key] = len(after_members)

        return [NotificationIntent(
            recipient_id=owner_id,
            category=spec.category,
            title=spec.title,
            body=spec.body_template.format(name=actor_name or 'Someone'),
            sender=Sender(id=actor_id, name=actor_name or 'User', avatar_url=actor.get('avatar') or ''),
            target=target,
            extra=extra,
        )]


class RuleEngine:
    """
    등록된 규칙을 이벤트에 적용하는 엔진.
    최초 스냅샷 이벤트는 notify_on_initial 이 False 이면 observe 만 호출됩니다.
    """

    def __init__(self, rules: Iterable[Rule], notify_on_initial: bool = False):
        self.rules = list(rules)
        self.notify_on_initial = notify_on_initial

    @property
    def collections(self) -> List[str]:
        """규칙이 다루는 컬렉션 이름 목록 (등록 순서 유지)"""
        seen = []
        for rule in self.rules:
            if rule.collection not in seen:
                seen.append(rule.collection)
        return seen

    def classify(self, event: ChangeEvent) -> List[NotificationIntent]:
        intents: List[NotificationIntent] = []
        should_evaluate = self.notify_on_initial or not event.is_initial
        for rule in self.rules:
            if rule.collection != event.collection_name:
                continue
            try:
                if should_evaluate and event.change_kind in rule.change_kinds:
                    intents.extend(rule.evaluate(event))
            except Exception as e:
                # 규칙 하나의 실패는 같은 이벤트의 다른 규칙 결과에 영향을 주지 않습니다.
                logger.error(f"규칙 평가 실패 ({type(rule).__name__}, event: {event.document_path}): {e}", exc_info=True)
            finally:
                rule.observe(event)

        # 수신자 누락/자기 알림은 어떤 규칙에서도 내보내지 않습니다.
        return [
            intent for intent in intents
            if intent.recipient_id and intent.recipient_id != intent.sender.id
        ]


def build_default_engine(store: DocumentStore, cache: Optional[EngagementCache] = None,
                         notify_on_initial: bool = False,
                         users_collection: str = 'Users', reviews_collection: str = 'Reviews',
                         posts_collection: str = 'Posts', comments_collection: str = 'Comments') -> RuleEngine:
    """서비스에서 사용하는 7개 규칙으로 구성된 RuleEngine 을 생성합니다."""
    cache = cache if cache is not None else EngagementCache()
    rules: List[Rule] = [
        NewReviewRule(reviews_collection),
        ReviewCommentRule(store, comments_collection, reviews_collection),
        PostCommentRule(store, comments_collection, posts_collection),
        ReplyRule(store, comments_collection, posts_collection),
    ]
    for spec in engagement_rule_table(reviews_collection, posts_collection, users_collection):
        rules.append(EngagementRule(spec, store, users_collection, cache))
    return RuleEngine(rules, notify_on_initial=notify_on_initial)
