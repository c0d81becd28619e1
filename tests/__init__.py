# tests/__init__.py

"""
packledger 테스트 스위트 패키지입니다.

- `domains/`: 도메인별(usr, cat, inv, ord, prd, exp) API 엔드포인트 통합 테스트
- `services/`: 원장/할당/롤업 서비스를 세션으로 직접 호출하는 테스트
- `conftest.py`: 테스트 DB, 인증 클라이언트, 카탈로그/주문 픽스처
"""

__title__ = "packledger Tests"
__all__ = []
