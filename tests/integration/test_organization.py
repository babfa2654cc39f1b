from fastapi import status
from httpx import AsyncClient


class TestUsers:
    """Administrator user management"""

    async def test_create_user_returns_temporary_password(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/users/",
            json={
                "name": "New Hire",
                "payroll_no": "NH-001",
                "role": "STAFF",
                "department_id": org.operations.id,
                "reports_to_user_id": org.hod.id,
            },
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_201_CREATED

        data = response.json()
        assert len(data["temporary_password"]) >= 6
        assert data["user"]["must_change_password"] is True
        assert data["user"]["department_name"] == "Operations"
        assert data["user"]["reports_to_name"] == org.hod.name

        login = await client.post(
            "/api/v1/auth/login",
            json={"payroll_no": "NH-001", "password": data["temporary_password"]},
        )
        assert login.status_code == status.HTTP_200_OK
        assert login.json()["requires_password_change"] is True

    async def test_duplicate_payroll(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/users/",
            json={"name": "Clone", "payroll_no": org.staff.payroll_no},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_only_admin_creates_users(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/users/",
            json={"name": "Sneaky", "payroll_no": "SN-1"},
            headers=auth_headers(org.ceo),
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_payroll_is_immutable(self, client: AsyncClient, org, auth_headers):
        response = await client.put(
            f"/api/v1/users/{org.staff.id}",
            json={"payroll_no": "CHANGED"},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_update_role_and_supervisor(self, client: AsyncClient, org, auth_headers):
        response = await client.put(
            f"/api/v1/users/{org.staff.id}",
            json={"role": "SECURITY", "reports_to_user_id": org.ceo.id},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["role"] == "SECURITY"
        assert response.json()["reports_to_name"] == org.ceo.name

    async def test_reset_password(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            f"/api/v1/users/{org.staff.id}/reset-password",
            json={"temporary_password": "Temp1234"},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["temporary_password"] == "Temp1234"

        login = await client.post(
            "/api/v1/auth/login", json={"payroll_no": org.staff.payroll_no, "password": "Temp1234"}
        )
        assert login.json()["requires_password_change"] is True

    async def test_list_users_with_search(self, client: AsyncClient, org, auth_headers):
        response = await client.get(
            "/api/v1/users/", params={"search": "Warehouse"}, headers=auth_headers(org.admin)
        )
        assert response.status_code == status.HTTP_200_OK
        assert [u["id"] for u in response.json()["users"]] == [org.warehouse_staff.id]


class TestDepartments:
    async def test_list(self, client: AsyncClient, org, auth_headers):
        response = await client.get("/api/v1/departments/", headers=auth_headers(org.staff))
        assert response.status_code == status.HTTP_200_OK
        by_name = {d["name"]: d for d in response.json()}
        assert by_name["Operations"]["head_name"] == org.hod.name
        assert by_name["Warehouse"]["parent_department_id"] == org.operations.id

    async def test_create(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/departments/",
            json={"name": "Finance", "head_user_id": org.other_hod.id},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["head_name"] == org.other_hod.name

    async def test_duplicate_name(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/departments/", json={"name": "Operations"}, headers=auth_headers(org.admin)
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_cycle_rejected(self, client: AsyncClient, org, auth_headers):
        response = await client.put(
            f"/api/v1/departments/{org.operations.id}",
            json={"parent_department_id": org.warehouse.id},
            headers=auth_headers(org.admin),
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_staff_cannot_create(self, client: AsyncClient, org, auth_headers):
        response = await client.post(
            "/api/v1/departments/", json={"name": "Shadow"}, headers=auth_headers(org.staff)
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
