# packledger/services/__init__.py

"""
여러 도메인(inv, ord, prd, exp)에 걸친 재고 원장/할당 연산을 담는 서비스 패키지입니다.
"""
