"""Tests for group administration."""

import uuid

import pytest

from appforge.core.errors import ConflictError, NotFoundError
from appforge.core.rbac.assignments import AssignmentStore
from appforge.core.rbac.groups import GroupService
from appforge.db.models import Group, GroupMembership, GroupRoleAssignment


@pytest.fixture
def service(db_session):
    return GroupService(db_session)


class TestGroupCrud:

    def test_create_group(self, service, org_factory):
        org = org_factory()

        group = service.create_group("Editors", org.id, "Page editors")

        assert group.id is not None
        assert group.organization_id == org.id
        assert group.description == "Page editors"

    def test_unknown_organization_raises(self, service):
        with pytest.raises(NotFoundError):
            service.create_group("Editors", uuid.uuid4())

    def test_name_unique_within_organization(self, service, org_factory):
        org = org_factory()
        other = org_factory()
        service.create_group("Editors", org.id)

        service.create_group("Editors", other.id)
        with pytest.raises(ConflictError):
            service.create_group("Editors", org.id)

    def test_list_groups(self, service, org_factory):
        org = org_factory()
        other = org_factory()
        service.create_group("b-team", org.id)
        service.create_group("a-team", org.id)
        service.create_group("elsewhere", other.id)

        assert [g.name for g in service.list_groups(org.id)] == ["a-team", "b-team"]
        assert len(service.list_groups()) == 3

    def test_update_group(self, service, org_factory):
        group = service.create_group("Editors", org_factory().id, "Page editors")

        service.update_group(group.id, name="Writers")
        assert group.name == "Writers"
        assert group.description == "Page editors"

        service.update_group(group.id, description=None)
        assert group.description is None

    def test_update_to_taken_name_conflicts(self, service, org_factory):
        org = org_factory()
        service.create_group("Editors", org.id)
        group = service.create_group("Writers", org.id)

        with pytest.raises(ConflictError):
            service.update_group(group.id, name="Editors")

        assert group.name == "Writers"
        service.update_group(group.id, description="Still usable")
        assert service.get_group(group.id).description == "Still usable"

    def test_same_name_in_other_organization_is_allowed(self, service, org_factory):
        service.create_group("Editors", org_factory().id)
        group = service.create_group("Writers", org_factory().id)

        service.update_group(group.id, name="Editors")

        assert group.name == "Editors"

    def test_get_missing_group_raises(self, service):
        with pytest.raises(NotFoundError):
            service.get_group(uuid.uuid4())

    def test_delete_cascades(self, service, db_session, group_factory, user_factory, role_factory):
        user = user_factory()
        group = group_factory(members=[user])
        role = role_factory()
        AssignmentStore(db_session).assign_role_to_group(group.id, role.id, group.organization_id)

        service.delete_group(group.id)

        assert db_session.query(Group).filter_by(id=group.id).first() is None
        assert db_session.query(GroupMembership).count() == 0
        assert db_session.query(GroupRoleAssignment).count() == 0


class TestMembership:

    def test_add_user_is_idempotent(self, service, db_session, group_factory, user_factory):
        group = group_factory()
        user = user_factory()

        first = service.add_user_to_group(group.id, user.id)
        second = service.add_user_to_group(group.id, user.id)

        assert first.id == second.id
        assert db_session.query(GroupMembership).filter_by(group_id=group.id).count() == 1

    def test_add_unknown_user_raises(self, service, group_factory):
        group = group_factory()

        with pytest.raises(NotFoundError):
            service.add_user_to_group(group.id, uuid.uuid4())

    def test_add_to_unknown_group_raises(self, service, user_factory):
        with pytest.raises(NotFoundError):
            service.add_user_to_group(uuid.uuid4(), user_factory().id)

    def test_remove_user(self, service, group_factory, user_factory):
        user = user_factory()
        group = group_factory(members=[user])

        assert service.remove_user_from_group(group.id, user.id) is True
        assert service.remove_user_from_group(group.id, user.id) is False
        assert service.list_group_users(group.id) == []

    def test_list_group_users_ordered_by_email(self, service, group_factory, user_factory):
        b = user_factory(email="b@example.com")
        a = user_factory(email="a@example.com")
        group = group_factory(members=[b, a])

        assert [u.email for u in service.list_group_users(group.id)] == ["a@example.com", "b@example.com"]

    def test_list_groups_for_user(self, service, group_factory, user_factory):
        user = user_factory()
        group_factory(name="beta", members=[user])
        group_factory(name="alpha", members=[user])
        group_factory(name="other")

        assert [g.name for g in service.list_groups_for_user(user.id)] == ["alpha", "beta"]
