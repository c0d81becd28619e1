# packledger/domains/prd/__init__.py

"""
'prd' 도메인 (생산 오더 / 공급) 패키지입니다.

계획 수량(planned_quantity)과 원장 입고로 누적되는 납품 수량(delivered_quantity),
그리고 Aberto → Parcial → Finalizada 상태 이벤트를 관리합니다.
"""
