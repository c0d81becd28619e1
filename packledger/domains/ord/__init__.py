# packledger/domains/ord/__init__.py

"""
'ord' 도메인 (고객 주문) 패키지입니다.

고객(Customer), 프로젝트(Project), 주문(Order)과
변형 단위 수요 기록인 주문 항목(OrderItem)을 관리합니다.
"""
