# packledger/domains/models/__init__.py

"""
이 파일은 모든 도메인의 SQLModel 모델들을 한 곳에서 중앙 관리하여,
다른 모듈에서 쉽게 임포트할 수 있도록 하는 역할을 합니다.
SQLModel.metadata가 모든 테이블을 인식하도록 보장합니다. (Alembic, 테스트용 create_all)
"""

# usr (User, UserRole)
from packledger.domains.usr.models import User, UserRole

# cat (Item, Feature, ItemFeature, FeatureOption)
from packledger.domains.cat.models import Item, Feature, ItemFeature, FeatureOption

# ord (Customer, Project, Order, OrderItem, OrderItemAdditionalFeatureOption)
from packledger.domains.ord.models import Customer, Project, Order, OrderItem, OrderItemAdditionalFeatureOption

# prd (ProductionOrder, ProductionOrderItem, ProductionOrderStatus, 보조 특성)
from packledger.domains.prd.models import (
    ProductionOrder, ProductionOrderItem, ProductionOrderStatus, ProductionOrderType, ProductionStatus,
    ProductionOrderItemAdditionalFeatureOption
)

# inv (Stock, StockItem, Movement, MovementItem, StockAdditionalItem)
from packledger.domains.inv.models import (
    Stock, StockItem, Movement, MovementItem, StockAdditionalItem, MovementType
)

# exp (Package, Box, BoxItem, DeliveryNote, DeliveryNoteItem, Expedition, Invoice, 이동 로그)
from packledger.domains.exp.models import (
    Package, Box, BoxItem, DeliveryNote, DeliveryNoteItem, Expedition, Invoice,
    MovementLogEntity, MovementLogEntityItem, EntityKind, LogMethod, LogStatus
)

__all__ = [
    "User", "UserRole",
    "Item", "Feature", "ItemFeature", "FeatureOption",
    "Customer", "Project", "Order", "OrderItem", "OrderItemAdditionalFeatureOption",
    "ProductionOrder", "ProductionOrderItem", "ProductionOrderStatus", "ProductionOrderType", "ProductionStatus",
    "ProductionOrderItemAdditionalFeatureOption",
    "Stock", "StockItem", "Movement", "MovementItem", "StockAdditionalItem", "MovementType",
    "Package", "Box", "BoxItem", "DeliveryNote", "DeliveryNoteItem", "Expedition", "Invoice",
    "MovementLogEntity", "MovementLogEntityItem", "EntityKind", "LogMethod", "LogStatus",
]
