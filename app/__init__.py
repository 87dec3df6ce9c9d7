# app/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import json
import logging
from flask import Flask, jsonify
from flask_cors import CORS
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials

# - 설정
from app.core.config import config_by_name

# - API 블루프린트
from app.api.health.routes import health_bp
from app.api.notifications.routes import notifications_bp

# - 서비스 모듈
from app.services.firestore_service import FirestoreDocumentStore
from app.services.push_service import FcmPushService
from app.services.notification_service import NotificationService
from app.services.engagement_cache import EngagementCache
from app.services.rules import build_default_engine
from app.services.change_feed import ChangeFeedAdapter
from app.services.listeners import NotificationListeners


def _init_firebase(app: Flask) -> None:
    """서비스 계정 JSON 문자열 또는 키 파일 경로로 Firebase Admin SDK 를 초기화합니다."""
    if firebase_admin._apps:
        return
    key_json = app.config.get('GOOGLE_SERVICE_ACCOUNT_KEY')
    cred_path = app.config.get('FIREBASE_CREDENTIALS_PATH')
    if key_json:
        try:
            cred = credentials.Certificate(json.loads(key_json))
        except ValueError as e:
            raise ValueError(f"GOOGLE_SERVICE_ACCOUNT_KEY 를 해석할 수 없습니다: {e}") from e
    elif cred_path:
        if not os.path.exists(cred_path):
            raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
        cred = credentials.Certificate(cred_path)
    else:
        raise ValueError("GOOGLE_SERVICE_ACCOUNT_KEY 또는 FIREBASE_CREDENTIALS_PATH 환경 변수가 필요합니다.")
    firebase_admin.initialize_app(cred)
    logging.info("Firebase Admin SDK initialized successfully")


def create_app(config_name=None, services=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development' / 'production' / 'testing'. 없으면 FLASK_ENV 를 사용합니다.
    :param services: 미리 만든 서비스 인스턴스(dict). 'store' 가 주어지면 Firebase 초기화를 건너뜁니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')
    injected = dict(services or {})

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    CORS(app)

    if 'store' not in injected:
        _init_firebase(app)

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 저장소/푸시 서비스 먼저 생성
    try:
        app.services['store'] = injected.get('store') or FirestoreDocumentStore()
        push_instance = injected.get('push')
        if push_instance is None:
            push_instance = FcmPushService()
            push_instance.init_app(app)
        app.services['push'] = push_instance
        logging.info("Store and push services initialized successfully")
    except Exception as e:
        logging.error(f"Failed to initialize core services: {e}")
        raise

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    app.services['notifications'] = injected.get('notifications') or NotificationService.from_config(
        app.config, app.services['store'], app.services['push']
    )
    app.services['cache'] = injected['cache'] if 'cache' in injected else EngagementCache()
    app.services['engine'] = injected.get('engine') or build_default_engine(
        app.services['store'],
        cache=app.services['cache'],
        notify_on_initial=app.config['NOTIFY_ON_INITIAL_SNAPSHOT'],
        users_collection=app.config['USERS_COLLECTION'],
        reviews_collection=app.config['REVIEWS_COLLECTION'],
        posts_collection=app.config['POSTS_COLLECTION'],
        comments_collection=app.config['COMMENTS_COLLECTION'],
    )

    # - 변경 피드 리스너 (설정으로 끌 수 있음)
    listeners = injected.get('listeners')
    if listeners is None and app.config['ENABLE_LISTENERS']:
        listeners = NotificationListeners.from_config(
            app.config, injected.get('feed') or ChangeFeedAdapter(),
            app.services['engine'], app.services['notifications']
        )
    app.services['listeners'] = listeners

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(health_bp)
    app.register_blueprint(notifications_bp)

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"success": False, "error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 404/405 같은 HTTP 예외는 Flask 기본 응답을 그대로 사용
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"success": False, "error_code": "INTERNAL_SERVER_ERROR",
                    "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 리스너 시작 및 앱 반환
    # =====================================================================================
    if listeners is not None and app.config['ENABLE_LISTENERS']:
        listeners.start()

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
