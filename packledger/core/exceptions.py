# packledger/core/exceptions.py

"""
재고 원장/할당 코어의 오류 분류 체계를 정의하는 모듈입니다.

모든 예외는 LedgerError를 상속하며, HTTP 상태 코드(status_code)와
기계가 읽을 수 있는 코드(code), 사람이 읽을 수 있는 메시지(message)를 가집니다.
main.py의 예외 처리기가 이를 {"detail": ..., "code": ...} 응답으로 변환합니다.

    LedgerError
    +-- NotFound              (404) 참조한 엔티티가 없음
    +-- InsufficientStock     (409) 차감량이 변형(variant) 재고를 초과
    +-- AllocationConflict    (409) 마감된 생산오더, 초과 할당, 중복 소속 등
    +-- ValidationError       (422) 트랜잭션 시작 전에 걸러지는 잘못된 입력
"""

from typing import Any, Dict, Optional
import uuid


class LedgerError(Exception):
    """원장 코어 예외의 기본 클래스"""
    status_code: int = 400
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["context"] = {
                key: str(value) if isinstance(value, uuid.UUID) else value
                for key, value in self.details.items()
            }
        return body


class NotFound(LedgerError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Optional[Any] = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message, entity=entity, entity_id=entity_id)


class InsufficientStock(LedgerError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: Any, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}",
            item_id=item_id, requested=requested, available=available,
        )


class AllocationConflict(LedgerError):
    status_code = 409
    code = "ALLOCATION_CONFLICT"


class ValidationError(LedgerError):
    status_code = 422
    code = "VALIDATION_ERROR"
