# app/core/config.py

import os


def _env_flag(name: str, default: bool) -> bool:
    """'true', '1', 'yes' 형태의 환경 변수를 bool 로 해석합니다."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes')


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # 서버 바인딩 주소와 포트. run.py 에서 사용합니다.
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', 3000))

    # Firebase 서비스 계정. JSON 문자열(GOOGLE_SERVICE_ACCOUNT_KEY)이 우선이며,
    # 없으면 키 파일 경로(FIREBASE_CREDENTIALS_PATH)를 사용합니다.
    GOOGLE_SERVICE_ACCOUNT_KEY = os.getenv('GOOGLE_SERVICE_ACCOUNT_KEY')
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

    SERVICE_NAME = os.getenv('SERVICE_NAME', 'Notification Server')

    # Firestore 컬렉션 이름
    USERS_COLLECTION = 'Users'
    NOTIFICATIONS_SUBCOLLECTION = 'Notifications'
    REVIEWS_COLLECTION = 'Reviews'
    POSTS_COLLECTION = 'Posts'
    COMMENTS_COLLECTION = 'Comments'
    # 사용자 문서에 저장되는 FCM 토큰 필드
    PUSH_TOKEN_FIELD = 'fcmToken'

    # 변경 피드 리스너 설정
    ENABLE_LISTENERS = _env_flag('ENABLE_LISTENERS', True)
    # 구독 직후 전달되는 최초 스냅샷(기존 문서 전체)에 대해서도 알림을 보낼지 여부
    NOTIFY_ON_INITIAL_SNAPSHOT = _env_flag('NOTIFY_ON_INITIAL_SNAPSHOT', False)
    LISTENER_WORKERS = int(os.getenv('LISTENER_WORKERS', 4))
    LISTENER_QUEUE_SIZE = int(os.getenv('LISTENER_QUEUE_SIZE', 1000))
    LISTENER_SUBMIT_TIMEOUT = float(os.getenv('LISTENER_SUBMIT_TIMEOUT', 5))

    # 푸시 메시지 표현 관련 설정
    APP_COLOR = os.getenv('APP_COLOR', '#1C59A4')
    ANDROID_CHANNEL_ID = os.getenv('ANDROID_CHANNEL_ID', 'reviews_channel')
    ANDROID_ICON = os.getenv('ANDROID_ICON', 'ic_notification')
    CLICK_ACTION = os.getenv('CLICK_ACTION', 'FLUTTER_NOTIFICATION_CLICK')
    AVATAR_URL_TEMPLATE = os.getenv(
        'AVATAR_URL_TEMPLATE',
        'https://ui-avatars.com/api/?name={initial}&background=1C59A4&color=fff&size=200&bold=true'
    )


class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True


class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False


class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    # 테스트에서는 Firestore 리스너를 띄우지 않습니다.
    ENABLE_LISTENERS = False


# FLASK_ENV 값에 따라 create_app 에서 적절한 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    production=ProductionConfig,
    testing=TestingConfig
)
