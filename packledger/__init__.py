# packledger/__init__.py

"""
packledger FastAPI 애플리케이션의 메인 패키지입니다.

재고 원장(movement ledger)과 할당(allocation) 코어를 제공합니다.
공통 설정, 데이터베이스 연결, 보안 관련 유틸리티를 담는 core 서브패키지,
각 비즈니스 도메인을 대표하는 domains 서브패키지,
그리고 여러 도메인에 걸친 원장 연산을 담는 services 서브패키지로 구성됩니다.
"""

APP_NAME = "packledger API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # API 라우트의 공통 접두사 (main.py에서 적용)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Stock ledger and allocation core API backend."
__all__ = []
