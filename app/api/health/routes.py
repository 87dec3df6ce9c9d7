# app/api/health/routes.py
from flask import Blueprint, jsonify, current_app

from app.utils.datetime_utils import DateTimeUtils

health_bp = Blueprint('health_bp', __name__)


@health_bp.route('/health', methods=['GET'])
def health():
    """헬스 체크"""
    return jsonify({
        "status": "OK",
        "timestamp": DateTimeUtils.to_iso_string(DateTimeUtils.now()),
        "service": current_app.config['SERVICE_NAME']
    }), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'Server is awake!', 200


@health_bp.route('/', methods=['GET'])
def index():
    return f"{current_app.config['SERVICE_NAME']} is running!", 200
