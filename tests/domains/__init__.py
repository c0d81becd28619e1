# tests/domains/__init__.py

"""
도메인별 API 엔드포인트 테스트 패키지입니다.
각 모듈(test_<도메인>_n.py)은 해당 도메인 라우터를 HTTP 클라이언트로 호출해 검증합니다.
"""

__all__ = []
