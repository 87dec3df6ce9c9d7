# run.py
from dotenv import load_dotenv
import os
from app import create_app

basedir = os.path.abspath(os.path.dirname(__file__))
# 실행 디렉터리와 관계없이 run.py 옆의 .env 파일을 로드합니다.
dotenv_path = os.path.join(basedir, '.env')
load_dotenv(dotenv_path=dotenv_path)

app = create_app()

if __name__ == '__main__':
    host = app.config['HOST']
    port = app.config['PORT']
    debug = app.config.get('DEBUG', False)
    print(f"{app.config['SERVICE_NAME']} running on port {port}")
    # 리로더가 프로세스를 두 번 띄우면 리스너도 두 번 구독하므로 끕니다.
    app.run(host=host, port=port, debug=debug, use_reloader=False)
