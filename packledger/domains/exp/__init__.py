# packledger/domains/exp/__init__.py

"""
'exp' 도메인 (출하) 패키지입니다.

포장(Package), 박스(Box)와 박스 항목(BoxItem, 할당 기록),
납품서(DeliveryNote)와 박스 소속(DeliveryNoteItem),
출하(Expedition), 송장(Invoice), 엔티티 이동 로그(MovementLogEntity)를 관리합니다.
"""
