# packledger/core/__init__.py

"""
애플리케이션 전반에 걸쳐 사용되는 핵심 구성 요소 패키지입니다.

- `config.py`: 설정 및 환경 변수 관리 (Pydantic Settings).
- `database.py`: 비동기 엔진, 세션, 트랜잭션 경계.
- `security.py`: 비밀번호 해싱, JWT, 현재 사용자 의존성.
- `dependencies.py`: 라우터에서 사용하는 공통 의존성 함수.
- `exceptions.py`: 원장 연산의 오류 분류 체계.
- `crud_base.py`: 공통 비동기 CRUD 기본 클래스.
- `tasks.py`: ARQ 워커가 실행하는 공통 태스크.
"""

__title__ = "packledger Core"
__version__ = "0.1.0"
__all__ = []
