"""
Unit Tests for Strategy Access Policy

Pure permission rules and role-dispatched listing over in-memory strategies.
"""

from datetime import datetime

import pytest

from quant_desk import access_policy
from quant_desk.models import Role, Strategy, User


RESEARCHER = User(id=7, username='r7', role=Role.RESEARCHER)
OTHER_RESEARCHER = User(id=8, username='r8', role=Role.RESEARCHER)
PM = User(id=20, username='pm', role=Role.PORTFOLIO_MANAGER)
CLIENT = User(id=30, username='client', role=Role.CLIENT)

ALL_USERS = [RESEARCHER, OTHER_RESEARCHER, PM, CLIENT]


def make_strategy(id, owner_id=7, name='Alpha', is_public=False,
                  updated_at=None, published_at=None):
    return Strategy(
        id=id,
        name=name,
        owner_id=owner_id,
        is_public=is_public,
        created_at=datetime(2025, 1, 1),
        updated_at=updated_at or datetime(2025, 1, 1),
        published_at=published_at if is_public else None,
    )


class TestCanView:
    """Test read access rules"""

    @pytest.mark.parametrize('is_public', [True, False])
    def test_owner_always_views(self, is_public):
        strategy = make_strategy(1, owner_id=RESEARCHER.id, is_public=is_public,
                                 published_at=datetime(2025, 1, 2))
        assert access_policy.can_view(RESEARCHER, strategy)

    @pytest.mark.parametrize('is_public', [True, False])
    def test_portfolio_manager_views_everything(self, is_public):
        strategy = make_strategy(1, is_public=is_public, published_at=datetime(2025, 1, 2))
        assert access_policy.can_view(PM, strategy)

    def test_client_views_public(self):
        strategy = make_strategy(1, is_public=True, published_at=datetime(2025, 1, 2))
        assert access_policy.can_view(CLIENT, strategy)

    def test_client_cannot_view_private(self):
        assert not access_policy.can_view(CLIENT, make_strategy(1))

    def test_other_researcher_cannot_view_even_public(self):
        strategy = make_strategy(1, is_public=True, published_at=datetime(2025, 1, 2))
        assert not access_policy.can_view(OTHER_RESEARCHER, strategy)

    def test_anonymous_cannot_view(self):
        strategy = make_strategy(1, is_public=True, published_at=datetime(2025, 1, 2))
        assert not access_policy.can_view(None, strategy)


class TestCanModify:
    """Test write access rules"""

    def test_owner_researcher_can_modify(self):
        assert access_policy.can_modify(RESEARCHER, make_strategy(1, owner_id=RESEARCHER.id))

    def test_non_owner_researcher_cannot_modify(self):
        assert not access_policy.can_modify(OTHER_RESEARCHER, make_strategy(1, owner_id=RESEARCHER.id))

    def test_portfolio_manager_owner_cannot_modify(self):
        """A record owned by a PM (not creatable through the service) is still read-only to them"""
        assert not access_policy.can_modify(PM, make_strategy(1, owner_id=PM.id))

    def test_client_owner_cannot_modify(self):
        assert not access_policy.can_modify(CLIENT, make_strategy(1, owner_id=CLIENT.id))

    def test_publish_flags_follow_visibility(self):
        private = make_strategy(1, owner_id=RESEARCHER.id)
        public = make_strategy(2, owner_id=RESEARCHER.id, is_public=True, published_at=datetime(2025, 1, 2))

        assert access_policy.can_publish(RESEARCHER, private)
        assert not access_policy.can_publish(RESEARCHER, public)
        assert access_policy.can_unpublish(RESEARCHER, public)
        assert not access_policy.can_unpublish(RESEARCHER, private)
        assert not access_policy.can_publish(PM, private)


class TestListVisible:
    """Test role-dispatched listing"""

    @pytest.fixture
    def strategies(self):
        return [
            make_strategy(1, owner_id=7, name='Alpha Momentum', updated_at=datetime(2025, 1, 3)),
            make_strategy(2, owner_id=7, name='Beta Carry', is_public=True,
                          updated_at=datetime(2025, 1, 5), published_at=datetime(2025, 1, 4)),
            make_strategy(3, owner_id=8, name='Gamma Value', is_public=True,
                          updated_at=datetime(2025, 1, 4), published_at=datetime(2025, 1, 4)),
            make_strategy(4, owner_id=8, name='Delta Momentum', updated_at=datetime(2025, 1, 6)),
        ]

    def test_researcher_sees_own_by_updated_desc(self, strategies):
        result = access_policy.list_visible(RESEARCHER, strategies)
        assert [s.id for s in result] == [2, 1]

    def test_portfolio_manager_sees_all_by_updated_desc(self, strategies):
        result = access_policy.list_visible(PM, strategies)
        assert [s.id for s in result] == [4, 2, 3, 1]

    def test_client_sees_public_by_published_then_updated(self, strategies):
        result = access_policy.list_visible(CLIENT, strategies)
        assert [s.id for s in result] == [2, 3]

    def test_search_is_case_insensitive_on_name(self, strategies):
        result = access_policy.list_visible(PM, strategies, search_term='MOMENTUM')
        assert [s.id for s in result] == [4, 1]

    def test_search_combines_with_role_filter(self, strategies):
        assert [s.id for s in access_policy.list_visible(CLIENT, strategies, 'momentum')] == []
        assert [s.id for s in access_policy.list_visible(RESEARCHER, strategies, 'momentum')] == [1]

    def test_every_role_is_dispatched(self, strategies):
        for role in Role:
            user = User(id=99, username='u', role=role)
            assert isinstance(access_policy.list_visible(user, strategies), list)
