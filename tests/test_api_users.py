from factories import make_user


class TestMeEndpoint:
    def test_me(self, client, auth_headers, person):
        resp = client.get("/me", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["user"]["email"] == "alice@example.com"
        assert data["role_name"] == "Employee"
        assert data["department_name"] == "Engineering"
        assert "inbox:read:own" in data["permissions"]

    def test_archived_user_rejected(self, client, admin_headers, auth_headers, person):
        resp = client.post(f"/users/{person.id}/archive", headers=admin_headers)
        assert resp.json()["status"] == "archived"
        assert client.get("/me", headers=auth_headers).status_code == 401


class TestUserEndpoints:
    def test_list_users_envelope(self, client, admin_headers, person):
        resp = client.get("/users?order_by=email&order_dir=asc", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert [u["email"] for u in data["items"]] == ["admin@example.com", "alice@example.com"]
        assert (data["limit"], data["offset"]) == (50, 0)

    def test_list_users_forbidden(self, client, auth_headers):
        resp = client.get("/users", headers=auth_headers)
        assert resp.status_code == 403
        assert resp.json()["details"] == {"missing_permissions": ["user:read:any"]}

    def test_create_user(self, client, admin_headers, roles):
        resp = client.post(
            "/users",
            json={"email": "New@Example.com", "role_id": str(roles["Employee"].id)},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["email"] == "new@example.com"

    def test_import_users(self, client, admin_headers):
        resp = client.post(
            "/users/import",
            json={
                "csv_data": "name,email,departmentName,roleName\n"
                "Bob,bob@example.com,Sales,Employee\n"
                "Eve,eve@example.com,Mars,Employee\n"
            },
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert [u["email"] for u in data["created"]] == ["bob@example.com"]
        assert data["skipped"][0]["line"] == 3

    def test_controlled_departments(self, client, db_session, admin_headers, roles, departments):
        head = make_user(db_session, "hank@example.com", roles["Head of Department"])
        resp = client.put(
            f"/users/{head.id}/controlled-departments",
            json={"department_ids": [str(departments["Sales"].id)]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["controlled_department_ids"] == [str(departments["Sales"].id)]

    def test_update_user(self, client, admin_headers, person, departments):
        resp = client.patch(
            f"/users/{person.id}",
            json={"department_id": str(departments["Sales"].id)},
            headers=admin_headers,
        )
        assert resp.json()["department_id"] == str(departments["Sales"].id)

    def test_share_candidates(self, client, auth_headers, admin):
        resp = client.get("/users/share-candidates", headers=auth_headers)
        assert [u["id"] for u in resp.json()] == [str(admin.id)]

    def test_directory_forbidden_for_employee(self, client, auth_headers):
        assert client.get("/users/directory", headers=auth_headers).status_code == 403
