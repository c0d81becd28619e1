# packledger/domains/cat/__init__.py

"""
'cat' 도메인 (품목 카탈로그) 패키지입니다.

재고의 변형 키(variant key)를 구성하는 품목(Item), 특성(Feature),
품목-특성 연결(ItemFeature), 특성 옵션(FeatureOption)을 관리합니다.
"""
