# packledger/domains/inv/__init__.py

"""
'inv' 도메인 (재고 원장) 패키지입니다.

- Movement / MovementItem: 부호 있는 수량 변화만 추가되는(append-only) 입출고 원장.
- Stock / StockItem: 원장에서 파생되는 품목 단위/변형 단위 재고 집계.
- StockAdditionalItem: 같은 입출고에 붙은 보조 특성/옵션 연결.
"""
