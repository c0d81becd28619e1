# tests/domains/test_cat_n.py

"""
'cat' 도메인 (품목 카탈로그) 관련 API 엔드포인트 및 변형 키 검증에 대한 테스트 모듈입니다.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.exceptions import NotFound, ValidationError
from packledger.domains.cat.crud import validate_variant


# =============================================================================
# 1. items 엔드포인트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_create_item_success_admin(admin_client: AsyncClient):
    """관리자는 품목을 만들 수 있습니다. (성공)"""
    item_data = {"code": "CAL-010", "name": "Calça Jeans", "weight": 0.6, "min_stock": 20}
    response = await admin_client.post("/api/v1/cat/items", json=item_data)

    assert response.status_code == 201
    created = response.json()
    assert created["code"] == "CAL-010"
    assert created["unit_of_measure"] == "EA"
    assert created["weight"] == 0.6


@pytest.mark.asyncio
async def test_create_item_duplicate_code(admin_client: AsyncClient, catalog):
    """같은 코드의 품목은 만들 수 없습니다. (실패)"""
    response = await admin_client.post("/api/v1/cat/items", json={"code": "CAM-001", "name": "Duplicado"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_item_forbidden_for_operator(authorized_client: AsyncClient):
    """일반 담당자는 품목을 만들 수 없습니다. (실패)"""
    response = await authorized_client.post("/api/v1/cat/items", json={"code": "X-1", "name": "X"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_read_and_update_item(admin_client: AsyncClient, catalog):
    """품목 조회 및 수정. (성공)"""
    response = await admin_client.get(f"/api/v1/cat/items/{catalog.item_id}")
    assert response.status_code == 200
    assert response.json()["name"] == "Camiseta Polo"

    response = await admin_client.put(f"/api/v1/cat/items/{catalog.item_id}", json={"name": "Camiseta Polo Azul"})
    assert response.status_code == 200
    assert response.json()["name"] == "Camiseta Polo Azul"
    assert response.json()["code"] == "CAM-001"


@pytest.mark.asyncio
async def test_read_item_not_found(client: AsyncClient):
    """없는 품목 조회는 404. (실패)"""
    response = await client.get(f"/api/v1/cat/items/{uuid.uuid4()}")
    assert response.status_code == 404


# =============================================================================
# 2. features / item_features / feature_options 엔드포인트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_feature_option_flow(admin_client: AsyncClient):
    """특성 생성 → 품목 연결 → 옵션 생성 → 필터 조회. (성공)"""
    item = (await admin_client.post("/api/v1/cat/items", json={"code": "BON-1", "name": "Boné"})).json()
    feature = (await admin_client.post("/api/v1/cat/features", json={"name": "Tamanho"})).json()

    link = await admin_client.post(
        "/api/v1/cat/item_features", json={"item_id": item["id"], "feature_id": feature["id"]}
    )
    assert link.status_code == 201

    # 같은 연결을 다시 요청하면 기존 연결을 돌려줍니다.
    again = await admin_client.post(
        "/api/v1/cat/item_features", json={"item_id": item["id"], "feature_id": feature["id"]}
    )
    assert again.status_code == 201
    assert again.json()["id"] == link.json()["id"]

    for name in ("P", "M"):
        response = await admin_client.post(
            "/api/v1/cat/feature_options", json={"feature_id": feature["id"], "name": name}
        )
        assert response.status_code == 201

    options = await admin_client.get("/api/v1/cat/feature_options", params={"feature_id": feature["id"]})
    assert {o["name"] for o in options.json()} == {"P", "M"}

    links = await admin_client.get("/api/v1/cat/item_features", params={"item_id": item["id"]})
    assert len(links.json()) == 1


@pytest.mark.asyncio
async def test_create_feature_duplicate_name(admin_client: AsyncClient, catalog):
    """같은 이름의 특성은 만들 수 없습니다. (실패)"""
    response = await admin_client.post("/api/v1/cat/features", json={"name": "Tamanho"})
    assert response.status_code == 400


# =============================================================================
# 3. 변형 키 검증 (validate_variant)
# =============================================================================
@pytest.mark.asyncio
async def test_validate_variant_success(db_session: AsyncSession, catalog):
    """품목-특성-옵션이 일관되면 품목을 반환합니다. (성공)"""
    db_item = await validate_variant(
        db_session, item_id=catalog.item_id, item_feature_id=catalog.size_id, feature_option_id=catalog.size_m_id
    )
    assert db_item.id == catalog.item_id


@pytest.mark.asyncio
async def test_validate_variant_option_of_other_feature(db_session: AsyncSession, catalog):
    """사이즈 특성에 색상 옵션을 붙이면 ValidationError. (실패)"""
    with pytest.raises(ValidationError):
        await validate_variant(
            db_session, item_id=catalog.item_id, item_feature_id=catalog.size_id, feature_option_id=catalog.blue_id
        )


@pytest.mark.asyncio
async def test_validate_variant_feature_of_other_item(db_session: AsyncSession, admin_client: AsyncClient, catalog):
    """다른 품목의 item_feature 를 쓰면 ValidationError. (실패)"""
    other = (await admin_client.post("/api/v1/cat/items", json={"code": "MEI-1", "name": "Meia"})).json()
    with pytest.raises(ValidationError):
        await validate_variant(
            db_session,
            item_id=uuid.UUID(other["id"]),
            item_feature_id=catalog.size_id,
            feature_option_id=catalog.size_m_id,
        )


@pytest.mark.asyncio
async def test_validate_variant_unknown_item(db_session: AsyncSession):
    """없는 품목은 NotFound. (실패)"""
    with pytest.raises(NotFound):
        await validate_variant(db_session, item_id=uuid.uuid4(), item_feature_id=None, feature_option_id=None)
