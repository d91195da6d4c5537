"""End-to-end tests for the RBAC and group administration API."""

import logging
import uuid

import pytest

from appforge.db.models import Role, UserRoleAssignment
from tests.factories import assign_group_role, assign_role, create_group, create_user

pytestmark = pytest.mark.integration


@pytest.fixture
def viewer_headers(db_session, system_roles, auth_headers):
    user = create_user(db_session, email="viewer@example.com")
    assign_role(db_session, user, system_roles["viewer"])
    db_session.commit()
    return auth_headers(user)


class TestAuthentication:

    def test_missing_token_is_401(self, client, system_roles):
        response = client.get("/api/rbac/roles")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json() == {"success": False, "detail": "Authentication required"}

    def test_missing_permission_is_403(self, client, viewer_headers):
        response = client.get("/api/rbac/roles", headers=viewer_headers)

        assert response.status_code == 403
        assert "role:read" in response.json()["detail"]

    def test_request_id_header(self, client, admin_headers):
        response = client.get("/api/rbac/roles", headers={**admin_headers, "X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_generated(self, client, admin_headers):
        response = client.get("/api/rbac/roles", headers=admin_headers)

        assert len(response.headers["X-Request-ID"]) == 8


class TestInitialize:

    def test_open_before_bootstrap(self, client, db_session):
        response = client.post("/api/rbac/initialize")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert db_session.query(Role).filter(Role.is_system.is_(True)).count() == 4

    def test_repeatable(self, client, db_session):
        client.post("/api/rbac/initialize")
        response = client.post("/api/rbac/initialize")

        assert response.status_code == 200
        assert db_session.query(Role).count() == 4

    def test_requires_system_admin_after_bootstrap(self, client, admin_user, viewer_headers, admin_headers):
        assert client.post("/api/rbac/initialize").status_code == 401
        assert client.post("/api/rbac/initialize", headers=viewer_headers).status_code == 403
        assert client.post("/api/rbac/initialize", headers=admin_headers).status_code == 200


class TestRoles:

    def test_list_roles(self, client, admin_headers):
        response = client.get("/api/rbac/roles", headers=admin_headers)

        assert response.status_code == 200
        names = [r["name"] for r in response.json()]
        assert names == sorted(names)
        assert "Administrator" in names
        viewer = next(r for r in response.json() if r["name"] == "Viewer")
        assert viewer["is_system"] is True
        assert "project:read" in viewer["permissions"]

    def test_create_role(self, client, admin_headers, caplog):
        with caplog.at_level(logging.INFO, logger="appforge.audit"):
            response = client.post(
                "/api/rbac/roles",
                json={"name": "Editor", "description": "Edits pages", "permissions": ["page:write", "page:fly"]},
                headers=admin_headers,
            )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Editor"
        assert data["is_system"] is False
        assert data["permissions"] == ["page:write"]

        events = [r.audit for r in caplog.records if r.name == "appforge.audit"]
        assert events[-1]["action"] == "create"
        assert events[-1]["resource_id"] == data["id"]
        assert events[-1]["request_id"]

    def test_create_duplicate_is_409(self, client, admin_headers):
        client.post("/api/rbac/roles", json={"name": "Editor"}, headers=admin_headers)

        response = client.post("/api/rbac/roles", json={"name": "Editor"}, headers=admin_headers)

        assert response.status_code == 409

    def test_create_with_missing_parent_is_404(self, client, admin_headers):
        response = client.post(
            "/api/rbac/roles",
            json={"name": "Lead", "parent_role_id": str(uuid.uuid4())},
            headers=admin_headers,
        )

        assert response.status_code == 404

    def test_create_validation(self, client, admin_headers):
        response = client.post("/api/rbac/roles", json={"name": ""}, headers=admin_headers)

        assert response.status_code == 422

    def test_get_role_with_children(self, client, admin_headers, role_factory, db_session):
        parent = role_factory(name="Builder", permissions=["workflow:execute"])
        role_factory(name="Lead", parent=parent)
        db_session.commit()

        response = client.get(f"/api/rbac/roles/{parent.id}", headers=admin_headers)

        assert response.status_code == 200
        assert [c["name"] for c in response.json()["children"]] == ["Lead"]

    def test_get_missing_role_is_404(self, client, admin_headers):
        response = client.get(f"/api/rbac/roles/{uuid.uuid4()}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_update_replaces_permissions(self, client, admin_headers, role_factory, db_session):
        role = role_factory(name="Editor", description="Edits pages", permissions=["page:read", "page:write"])
        db_session.commit()

        response = client.put(
            f"/api/rbac/roles/{role.id}",
            json={"permissions": ["project:read"]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["permissions"] == ["project:read"]
        assert response.json()["description"] == "Edits pages"

    def test_update_cycle_is_409(self, client, admin_headers, role_factory, db_session):
        parent = role_factory(name="Builder")
        child = role_factory(name="Lead", parent=parent)
        db_session.commit()

        response = client.put(
            f"/api/rbac/roles/{parent.id}",
            json={"parent_role_id": str(child.id)},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert "cycle" in response.json()["detail"]

    def test_update_clears_parent_with_null(self, client, admin_headers, role_factory, db_session):
        parent = role_factory(name="Builder")
        child = role_factory(name="Lead", parent=parent)
        db_session.commit()

        response = client.put(
            f"/api/rbac/roles/{child.id}",
            json={"parent_role_id": None},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["parent_role_id"] is None

    def test_rename_system_role_is_409(self, client, admin_headers, system_roles):
        response = client.put(
            f"/api/rbac/roles/{system_roles['viewer'].id}",
            json={"name": "Reader"},
            headers=admin_headers,
        )

        assert response.status_code == 409

    def test_rename_to_taken_name_is_409(self, client, admin_headers, role_factory, db_session):
        role_factory(name="Editor")
        author = role_factory(name="Author")
        db_session.commit()

        response = client.put(
            f"/api/rbac/roles/{author.id}",
            json={"name": "Editor"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert "Editor" in response.json()["detail"]
        assert client.get(f"/api/rbac/roles/{author.id}", headers=admin_headers).json()["name"] == "Author"

    @pytest.mark.parametrize("body", [{"name": None}, {"permissions": None}])
    def test_null_for_required_field_is_422(self, client, admin_headers, role_factory, db_session, body):
        role = role_factory(name="Editor", permissions=["page:read"])
        db_session.commit()

        response = client.put(f"/api/rbac/roles/{role.id}", json=body, headers=admin_headers)

        assert response.status_code == 422
        current = client.get(f"/api/rbac/roles/{role.id}", headers=admin_headers).json()
        assert current["name"] == "Editor"
        assert current["permissions"] == ["page:read"]

    def test_delete_role(self, client, admin_headers, role_factory, user_factory, db_session):
        role = role_factory(name="Temp", permissions=["project:read"])
        user = user_factory()
        assign_role(db_session, user, role)
        db_session.commit()

        response = client.delete(f"/api/rbac/roles/{role.id}", headers=admin_headers)

        assert response.status_code == 200
        assert db_session.query(UserRoleAssignment).filter_by(role_id=role.id).count() == 0

    def test_delete_system_role_is_409(self, client, admin_headers, system_roles):
        response = client.delete(f"/api/rbac/roles/{system_roles['viewer'].id}", headers=admin_headers)

        assert response.status_code == 409

    def test_effective_role_permissions(self, client, admin_headers, role_factory, db_session):
        parent = role_factory(name="Builder", permissions=["workflow:execute"])
        child = role_factory(name="Lead", permissions=["role:read"], parent=parent)
        db_session.commit()

        response = client.get(f"/api/rbac/roles/{child.id}/permissions", headers=admin_headers)

        assert response.status_code == 200
        keys = [p["key"] for p in response.json()["permissions"]]
        assert keys == ["role:read", "workflow:execute"]

    def test_list_permissions(self, client, admin_headers):
        response = client.get("/api/rbac/permissions", headers=admin_headers)

        assert response.status_code == 200
        keys = [p["key"] for p in response.json()]
        assert "system:admin" in keys
        assert keys == sorted(keys, key=lambda k: tuple(k.split(":")))


class TestUserAssignments:

    def test_assign_role_is_idempotent(self, client, admin_headers, admin_user, user_factory, system_roles, db_session):
        user = user_factory()
        db_session.commit()
        body = {"user_id": str(user.id), "role_id": str(system_roles["developer"].id)}

        first = client.post("/api/rbac/users/assign-role", json=body, headers=admin_headers)
        second = client.post("/api/rbac/users/assign-role", json=body, headers=admin_headers)

        assert first.status_code == second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["assigned_by"] == str(admin_user.id)

    def test_assign_unknown_user_is_404(self, client, admin_headers, system_roles):
        body = {"user_id": str(uuid.uuid4()), "role_id": str(system_roles["viewer"].id)}

        response = client.post("/api/rbac/users/assign-role", json=body, headers=admin_headers)

        assert response.status_code == 404

    def test_scoped_assignment_round_trip(self, client, admin_headers, user_factory, role_factory, db_session, auth_headers):
        editor = role_factory(name="Editor", permissions=["page:write"])
        user = user_factory()
        db_session.commit()
        body = {"user_id": str(user.id), "role_id": str(editor.id), "resource_id": "page_1"}

        client.post("/api/rbac/users/assign-role", json=body, headers=admin_headers)

        def check(resource_id):
            return client.post(
                "/api/rbac/check-permission",
                json={"permission": "page:write", "resource_id": resource_id},
                headers=auth_headers(user),
            ).json()["has_permission"]

        assert check("page_1") is True
        assert check("page_2") is False
        assert check(None) is False

        removed = client.post("/api/rbac/users/remove-role", json=body, headers=admin_headers)
        assert removed.json()["message"] == "Role removed successfully"
        assert check("page_1") is False

    def test_remove_missing_grant_is_noop(self, client, admin_headers, user_factory, system_roles, db_session):
        user = user_factory()
        db_session.commit()
        body = {"user_id": str(user.id), "role_id": str(system_roles["viewer"].id)}

        response = client.post("/api/rbac/users/remove-role", json=body, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Role was not assigned"

    def test_remove_unknown_user_is_404(self, client, admin_headers, system_roles):
        body = {"user_id": str(uuid.uuid4()), "role_id": str(system_roles["viewer"].id)}

        response = client.post("/api/rbac/users/remove-role", json=body, headers=admin_headers)

        assert response.status_code == 404

    def test_get_user_roles(self, client, admin_headers, user_factory, system_roles, db_session):
        user = user_factory(email="dev@example.com")
        assign_role(db_session, user, system_roles["developer"])
        group = create_group(db_session, members=[user])
        assign_group_role(db_session, group, system_roles["viewer"])
        db_session.commit()

        response = client.get(f"/api/rbac/users/{user.id}/roles", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "dev@example.com"
        assert [e["role"]["name"] for e in data["roles"]] == ["Developer", "Viewer"]
        assert data["roles"][1]["group_id"] == str(group.id)
        assert "workflow:execute" in data["permissions"]
        assert data["permissions"] == sorted(data["permissions"])

    def test_get_unknown_user_roles_is_404(self, client, admin_headers):
        response = client.get(f"/api/rbac/users/{uuid.uuid4()}/roles", headers=admin_headers)

        assert response.status_code == 404


class TestCheckPermission:

    def test_self_check(self, client, viewer_headers):
        allowed = client.post("/api/rbac/check-permission", json={"permission": "project:read"}, headers=viewer_headers)
        denied = client.post("/api/rbac/check-permission", json={"permission": "project:delete"}, headers=viewer_headers)

        assert allowed.json()["has_permission"] is True
        assert denied.json()["has_permission"] is False
        assert denied.json()["permission"] == "project:delete"

    def test_requires_authentication(self, client):
        response = client.post("/api/rbac/check-permission", json={"permission": "project:read"})

        assert response.status_code == 401

    def test_checking_others_requires_user_read(self, client, viewer_headers, admin_user, admin_headers, user_factory, db_session):
        other = user_factory()
        db_session.commit()
        body = {"permission": "project:read", "user_id": str(other.id)}

        assert client.post("/api/rbac/check-permission", json=body, headers=viewer_headers).status_code == 403

        response = client.post("/api/rbac/check-permission", json=body, headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {
            "user_id": str(other.id),
            "permission": "project:read",
            "resource_id": None,
            "has_permission": False,
        }

    def test_malformed_permission_is_422(self, client, viewer_headers):
        response = client.post("/api/rbac/check-permission", json={"permission": "project"}, headers=viewer_headers)

        assert response.status_code == 422


class TestGroups:

    def test_group_lifecycle(self, client, admin_headers, org_factory, user_factory, system_roles, db_session, auth_headers):
        org = org_factory()
        member = user_factory()
        db_session.commit()

        created = client.post(
            "/api/groups",
            json={"name": "Engineers", "organization_id": str(org.id)},
            headers=admin_headers,
        )
        assert created.status_code == 201
        group_id = created.json()["id"]

        added = client.post(f"/api/groups/{group_id}/users", json={"user_id": str(member.id)}, headers=admin_headers)
        assert added.status_code == 201

        granted = client.post(
            f"/api/groups/{group_id}/roles",
            json={"role_id": str(system_roles["developer"].id), "organization_id": str(org.id)},
            headers=admin_headers,
        )
        assert granted.status_code == 201
        assert granted.json()["role"]["name"] == "Developer"

        check = {"permission": "workflow:execute", "organization_id": str(org.id)}
        response = client.post("/api/rbac/check-permission", json=check, headers=auth_headers(member))
        assert response.json()["has_permission"] is True

        users = client.get(f"/api/groups/{group_id}/users", headers=admin_headers)
        assert [u["id"] for u in users.json()] == [str(member.id)]

        roles = client.get(f"/api/groups/{group_id}/roles", headers=admin_headers)
        assert len(roles.json()) == 1

        revoked = client.delete(
            f"/api/groups/{group_id}/roles/{system_roles['developer'].id}",
            params={"organization_id": str(org.id)},
            headers=admin_headers,
        )
        assert revoked.json()["message"] == "Role removed from group"

        response = client.post("/api/rbac/check-permission", json=check, headers=auth_headers(member))
        assert response.json()["has_permission"] is False

        removed = client.delete(f"/api/groups/{group_id}/users/{member.id}", headers=admin_headers)
        assert removed.json()["message"] == "User removed from group"

        deleted = client.delete(f"/api/groups/{group_id}", headers=admin_headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/groups/{group_id}", headers=admin_headers).status_code == 404

    def test_duplicate_group_is_409(self, client, admin_headers, org_factory, db_session):
        org = org_factory()
        db_session.commit()
        body = {"name": "Engineers", "organization_id": str(org.id)}

        client.post("/api/groups", json=body, headers=admin_headers)
        response = client.post("/api/groups", json=body, headers=admin_headers)

        assert response.status_code == 409

    def test_rename_to_taken_name_is_409(self, client, admin_headers, org_factory, db_session):
        org = org_factory()
        db_session.commit()
        client.post("/api/groups", json={"name": "A", "organization_id": str(org.id)}, headers=admin_headers)
        b = client.post("/api/groups", json={"name": "B", "organization_id": str(org.id)}, headers=admin_headers)
        group_id = b.json()["id"]

        response = client.put(f"/api/groups/{group_id}", json={"name": "A"}, headers=admin_headers)

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]
        assert client.get(f"/api/groups/{group_id}", headers=admin_headers).json()["name"] == "B"

    def test_rename_to_name_used_in_other_organization(self, client, admin_headers, org_factory, db_session):
        org = org_factory()
        other = org_factory()
        create_group(db_session, org=other, name="A")
        group = create_group(db_session, org=org, name="B")
        db_session.commit()

        response = client.put(f"/api/groups/{group.id}", json={"name": "A"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["name"] == "A"

    def test_null_name_is_422(self, client, admin_headers, org_factory, db_session):
        group = create_group(db_session, org=org_factory(), name="B")
        db_session.commit()

        response = client.put(f"/api/groups/{group.id}", json={"name": None}, headers=admin_headers)

        assert response.status_code == 422
        assert client.get(f"/api/groups/{group.id}", headers=admin_headers).json()["name"] == "B"

    def test_list_groups_by_organization(self, client, admin_headers, org_factory, db_session):
        org = org_factory()
        create_group(db_session, org=org, name="b")
        create_group(db_session, org=org, name="a")
        create_group(db_session, name="elsewhere")
        db_session.commit()

        response = client.get("/api/groups", params={"organization_id": str(org.id)}, headers=admin_headers)

        assert [g["name"] for g in response.json()] == ["a", "b"]

    def test_viewer_cannot_create_groups(self, client, viewer_headers, org_factory, db_session):
        org = org_factory()
        db_session.commit()

        response = client.post(
            "/api/groups",
            json={"name": "Engineers", "organization_id": str(org.id)},
            headers=viewer_headers,
        )

        assert response.status_code == 403
