##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""
Tests for the `redis_query.py` module.
"""
from decimal import Decimal
from typing import Set

import pytest
from pytest_mock import MockerFixture

from rohm.common.enums import Condition, ErrorKind
from rohm.exceptions import ValidationError
from rohm.query import Constraint
from tests.data_models import Account, Country, Ledger, Shelf, User
from tests.fixture_types import FixtureBackend, FixtureCallable, FixtureRedis


@pytest.fixture
def scenario_users(backend: FixtureBackend) -> FixtureBackend:
    """
    Save two users sharing an employee number:
    U1(employee_number=1, age=88, name="model1") and
    U2(employee_number=1, age=8, name="zmodel2").

    Args:
        backend: A backend on a fake Redis server.

    Returns:
        The backend holding the two users.
    """
    backend.save(User(employee_number=1, age=88, name="model1"))
    backend.save(User(employee_number=1, age=8, name="zmodel2"))
    return backend


@pytest.fixture
def aged_users(backend: FixtureBackend) -> FixtureBackend:
    """
    Save three users aged 10, 20 and 30 (ids 1, 2 and 3).

    Args:
        backend: A backend on a fake Redis server.

    Returns:
        The backend holding the three users.
    """
    for age in (10, 20, 30):
        backend.save(User(name=f"user{age}", age=age, employee_number=age // 10 % 2))
    return backend


class TestFind:
    """Tests for equality, range and combined queries."""

    def test_scenario(self, scenario_users: FixtureBackend):
        """
        Test the reference scenario with equality, range and mixed constraints.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        backend = scenario_users

        by_age = backend.find(User, [Constraint("age", Condition.EQUALS, 88)])
        assert [user.name for user in by_age] == ["model1"]

        older = backend.find(User, [Constraint("age", Condition.GREATERTHANEQUALTO, 50)])
        assert [user.name for user in older] == ["model1"]

        mixed = backend.find(
            User, [Constraint("employee_number", Condition.EQUALS, 1), Constraint("age", Condition.LESSTHAN, 50)]
        )
        assert [user.name for user in mixed] == ["zmodel2"]

    @pytest.mark.parametrize(
        "condition, expected",
        [
            (Condition.GREATERTHANEQUALTO, {2, 3}),
            (Condition.GREATERTHAN, {3}),
            (Condition.LESSTHANEQUALTO, {1, 2}),
            (Condition.LESSTHAN, {1}),
        ],
    )
    def test_range_boundaries(self, aged_users: FixtureBackend, condition: Condition, expected: Set[int]):
        """
        Test inclusive and exclusive bounds around the middle value.

        Args:
            aged_users: A backend holding users aged 10, 20 and 30.
            condition: The range condition.
            expected: The ids it should match.
        """
        assert aged_users.find_ids(User, [Constraint("age", condition, 20)]) == expected

    def test_two_ranges(self, aged_users: FixtureBackend):
        """
        Test that several range constraints are intersected.

        Args:
            aged_users: A backend holding users aged 10, 20 and 30.
        """
        constraints = [
            Constraint("age", Condition.GREATERTHAN, 10),
            Constraint("age", Condition.LESSTHANEQUALTO, 30),
            Constraint("salary", Condition.GREATERTHANEQUALTO, 0),
        ]
        assert aged_users.find_ids(User, constraints[:2]) == {2, 3}
        assert aged_users.find_ids(User, constraints) == set()

    def test_and_is_intersection(self, backend: FixtureBackend):
        """
        Test that two equality constraints return the intersection of their
        single-constraint results.

        Args:
            backend: A backend on a fake Redis server.
        """
        for number, name in ((1, "a"), (1, "b"), (2, "a"), (2, "b"), (1, "a")):
            backend.save(User(employee_number=number, name=name))

        by_number = backend.find_ids(User, [Constraint("employee_number", Condition.EQUALS, 1)])
        by_name = backend.find_ids(User, [Constraint("name", Condition.EQUALS, "a")])
        both = backend.find_ids(
            User, [Constraint("employee_number", Condition.EQUALS, 1), Constraint("name", Condition.EQUALS, "a")]
        )
        assert both == by_number & by_name == {1, 5}

    def test_equality_with_range(self, aged_users: FixtureBackend):
        """
        Test that range results are restricted to equality matches.

        Args:
            aged_users: A backend holding users aged 10, 20 and 30.
        """
        constraints = [Constraint("employee_number", Condition.EQUALS, 1), Constraint("age", Condition.GREATERTHAN, 5)]
        assert aged_users.find_ids(User, constraints) == {1, 3}

    def test_values_are_normalized(self, scenario_users: FixtureBackend):
        """
        Test that compared values are coerced to the property type.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        assert scenario_users.find_ids(User, [Constraint("age", Condition.EQUALS, "88")]) == {1}
        assert scenario_users.find_ids(User, [Constraint("age", Condition.GREATERTHAN, "8")]) == {1}

    def test_no_match(self, scenario_users: FixtureBackend):
        """
        Test that unmatched queries return empty results.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        assert scenario_users.find(User, [Constraint("name", Condition.EQUALS, "nobody")]) == []
        assert scenario_users.find_ids(User, [Constraint("age", Condition.GREATERTHAN, 100)]) == set()

    def test_find_by(self, scenario_users: FixtureBackend):
        """
        Test the single-equality shorthand.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        assert [user.id for user in scenario_users.find_by(User, "employee_number", 1)] == [1, 2]
        assert scenario_users.find_by(User, "name", "zmodel2", return_ids_only=True) == {2}

    def test_index_symmetry(self, scenario_users: FixtureBackend):
        """
        Test that deleted records disappear from query results.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        scenario_users.delete(User, 1)
        assert scenario_users.find_ids(User, [Constraint("employee_number", Condition.EQUALS, 1)]) == {2}
        assert scenario_users.find_ids(User, [Constraint("age", Condition.GREATERTHAN, 0)]) == {2}

    def test_vanished_records_are_skipped(self, scenario_users: FixtureBackend):
        """
        Test that ids whose record no longer loads are left out of model results.

        Args:
            scenario_users: A backend holding U1 and U2.
        """
        scenario_users.delete(User, 1, delete_indexes=False)
        constraint = Constraint("employee_number", Condition.EQUALS, 1)
        assert scenario_users.find_ids(User, [constraint]) == {1, 2}
        assert [user.id for user in scenario_users.find(User, [constraint])] == [2]


class TestDrilldown:
    """Tests for constraints on referenced models."""

    @pytest.fixture
    def citizens(self, backend: FixtureBackend) -> FixtureBackend:
        """
        Save users 1 and 2 living in France (population 67) and user 3 in
        Peru (population 33).

        Args:
            backend: A backend on a fake Redis server.

        Returns:
            The backend holding the users and countries.
        """
        france = backend.save(Country(name="France", population=67))
        peru = backend.save(Country(name="Peru", population=33))
        backend.save(User(name="ana", age=30, country=france))
        backend.save(User(name="bob", age=40, country=france))
        backend.save(User(name="eva", age=50, country=peru))
        return backend

    def test_reference_equality(self, citizens: FixtureBackend):
        """
        Test queries on the referenced model itself, by model and by id.

        Args:
            citizens: A backend holding users and their countries.
        """
        france = citizens.get(Country, 1)
        assert citizens.find_by(User, "country", france, return_ids_only=True) == {1, 2}
        assert citizens.find_by(User, "country", 2, return_ids_only=True) == {3}

    def test_child_equality(self, citizens: FixtureBackend):
        """
        Test an equality constraint on an attribute of the referenced model.

        Args:
            citizens: A backend holding users and their countries.
        """
        constraint = Constraint.on_reference("country", "name", "Peru")
        assert constraint.is_drilldown()
        assert [user.name for user in citizens.find(User, [constraint])] == ["eva"]

    def test_child_range(self, citizens: FixtureBackend):
        """
        Test a range constraint on a comparable attribute of the referenced
        model, combined with constraints on the model itself.

        Args:
            citizens: A backend holding users and their countries.
        """
        bigger = Constraint.on_reference("country", "population", 50, Condition.GREATERTHAN)
        assert citizens.find_ids(User, [bigger]) == {1, 2}
        assert citizens.find_ids(User, [bigger, Constraint("age", Condition.GREATERTHAN, 35)]) == {2}
        assert citizens.find_ids(User, [bigger, Constraint("name", Condition.EQUALS, "ana")]) == {1}

    def test_child_must_be_indexed(self, citizens: FixtureBackend):
        """
        Test that drill-down constraints are validated against the child schema.

        Args:
            citizens: A backend holding users and their countries.
        """
        with pytest.raises(ValidationError) as excinfo:
            citizens.find(User, [Constraint.on_reference("country", "name", "Peru", Condition.LESSTHAN)])
        assert excinfo.value.kind is ErrorKind.MISSING_COMPARABLE

        with pytest.raises(ValidationError) as excinfo:
            citizens.find(User, [Constraint.on_reference("country", "capital", "Lima")])
        assert excinfo.value.kind is ErrorKind.NO_SUCH_PROPERTY


class TestHashTags:
    """Tests for queries on hash-tagged models."""

    @pytest.fixture
    def accounts(self, backend: FixtureBackend) -> FixtureBackend:
        """
        Save the same owner in two regions: id 1 in "eu" and id 2 in "us".

        Args:
            backend: A backend on a fake Redis server.

        Returns:
            The backend holding the accounts.
        """
        backend.save(Account(region="eu", owner="ann", balance=Decimal("10")))
        backend.save(Account(region="us", owner="ann", balance=Decimal("20")))
        return backend

    def test_isolation_with_explicit_tag(self, accounts: FixtureBackend):
        """
        Test that the same property/value pair does not collide across tags.

        Args:
            accounts: A backend holding two accounts.
        """
        owner = [Constraint("owner", Condition.EQUALS, "ann")]
        assert accounts.find_ids(Account, owner, hash_tag="{region_eu}") == {1}
        assert accounts.find_ids(Account, owner, hash_tag="{region_us}") == {2}

    def test_tag_from_constraint(self, accounts: FixtureBackend):
        """
        Test that an equality constraint on the hash-tagged attribute selects the tag.

        Args:
            accounts: A backend holding two accounts.
        """
        constraints = [Constraint("owner", Condition.EQUALS, "ann"), Constraint("region", Condition.EQUALS, "us")]
        assert accounts.find_ids(Account, constraints) == {2}

        ranged = [Constraint("region", Condition.EQUALS, "eu"), Constraint("balance", Condition.GREATERTHAN, 5)]
        assert [account.balance for account in accounts.find(Account, ranged)] == [Decimal("10")]

    def test_missing_tag(self, accounts: FixtureBackend):
        """
        Test that a query that does not identify a tag is rejected.

        Args:
            accounts: A backend holding two accounts.
        """
        with pytest.raises(ValidationError) as excinfo:
            accounts.find(Account, [Constraint("owner", Condition.EQUALS, "ann")])
        assert excinfo.value.kind is ErrorKind.MISSING_HASH_TAG

    @pytest.mark.parametrize("hash_tag", ["region_eu", "{owner_ann}", "{}"])
    def test_invalid_tag(self, accounts: FixtureBackend, hash_tag: str):
        """
        Test that malformed or foreign tags are rejected.

        Args:
            accounts: A backend holding two accounts.
            hash_tag: The invalid tag.
        """
        with pytest.raises(ValidationError) as excinfo:
            accounts.find(Account, [Constraint("owner", Condition.EQUALS, "ann")], hash_tag=hash_tag)
        assert excinfo.value.kind is ErrorKind.INVALID_HASH_TAG

    def test_tag_on_untagged_model(self, backend: FixtureBackend):
        """
        Test that a hash tag cannot be given for a model without tagged attributes.

        Args:
            backend: A backend on a fake Redis server.
        """
        with pytest.raises(ValidationError) as excinfo:
            backend.find(User, [Constraint("name", Condition.EQUALS, "a")], hash_tag="{region_eu}")
        assert excinfo.value.kind is ErrorKind.INVALID_HASH_TAG


class TestTwoHashTags:
    """Tests for queries on a model with two hash-tagged attributes."""

    @pytest.fixture
    def ledgers(self, backend: FixtureBackend) -> FixtureBackend:
        """
        Save three ledgers owned by "ann": 1 (region "eu", desk "fx", amount 10),
        2 (region "eu", desk "rates", amount 20) and 3 (region "us", desk "fx", amount 30).

        Args:
            backend: A backend on a fake Redis server.

        Returns:
            The backend holding the ledgers.
        """
        backend.save(Ledger(region="eu", desk="fx", owner="ann", amount=10))
        backend.save(Ledger(region="eu", desk="rates", owner="ann", amount=20))
        backend.save(Ledger(region="us", desk="fx", owner="ann", amount=30))
        return backend

    def test_tag_from_either_attribute(self, ledgers: FixtureBackend):
        """
        Test that an equality constraint on either hash-tagged attribute selects its tag.

        Args:
            ledgers: A backend holding three ledgers.
        """
        owner = Constraint("owner", Condition.EQUALS, "ann")
        assert ledgers.find_ids(Ledger, [owner, Constraint("region", Condition.EQUALS, "eu")]) == {1, 2}
        assert ledgers.find_ids(Ledger, [owner, Constraint("desk", Condition.EQUALS, "fx")]) == {1, 3}
        ranged = [Constraint("desk", Condition.EQUALS, "fx"), Constraint("amount", Condition.GREATERTHAN, 15)]
        assert ledgers.find_ids(Ledger, ranged) == {3}

    def test_explicit_tag_of_either_attribute(self, ledgers: FixtureBackend):
        """
        Test that an explicit tag may name either hash-tagged attribute.

        Args:
            ledgers: A backend holding three ledgers.
        """
        owner = [Constraint("owner", Condition.EQUALS, "ann")]
        assert ledgers.find_ids(Ledger, owner, hash_tag="{region_us}") == {3}
        assert ledgers.find_ids(Ledger, owner, hash_tag="{desk_rates}") == {2}

    def test_first_tagged_attribute_wins(self, ledgers: FixtureBackend, mocker: MockerFixture):
        """
        Test that with equality constraints on both tagged attributes, the
        query runs under the tag of the first one in declaration order.

        Args:
            ledgers: A backend holding three ledgers.
            mocker: A built-in fixture from the pytest-mock library to create a Mock object.
        """
        apply_spy = mocker.spy(ledgers.store_client, "apply")
        constraints = [Constraint("desk", Condition.EQUALS, "fx"), Constraint("region", Condition.EQUALS, "eu")]
        assert ledgers.find_ids(Ledger, constraints) == {1}

        intersected = apply_spy.call_args.args[0][0].args[1]
        assert len(intersected) == 2
        assert all(key.startswith("Ledger:{region_eu}:") for key in intersected)

    def test_deleted_under_both_tags(self, ledgers: FixtureBackend):
        """
        Test that a deleted ledger is found under neither of its tags.

        Args:
            ledgers: A backend holding three ledgers.
        """
        assert ledgers.delete(Ledger, 1) is True
        owner = [Constraint("owner", Condition.EQUALS, "ann")]
        assert ledgers.find_ids(Ledger, owner, hash_tag="{region_eu}") == {2}
        assert ledgers.find_ids(Ledger, owner, hash_tag="{desk_fx}") == {3}


class TestMovedRecords:
    """Tests for queries after indexed values of a record moved."""

    def test_moved_hash_tag(self, backend: FixtureBackend):
        """
        Test that array and collection memberships are only found under the
        new hash tag of a record.

        Args:
            backend: A backend on a fake Redis server.
        """
        shelf = backend.save(Shelf(region="eu", tags=["red"], bins={"a1"}))
        shelf.region = "us"
        backend.save(shelf)

        red = [Constraint("tags", Condition.EQUALS, "red")]
        assert backend.find_ids(Shelf, red, hash_tag="{region_eu}") == set()
        assert backend.find_ids(Shelf, red, hash_tag="{region_us}") == {1}
        in_bin = [Constraint("bins", Condition.EQUALS, "a1"), Constraint("region", Condition.EQUALS, "us")]
        assert backend.find_ids(Shelf, in_bin) == {1}

    def test_renamed_reference_target(self, backend: FixtureBackend):
        """
        Test that drill-down queries follow a renamed referenced model once
        the referencing model is saved again.

        Args:
            backend: A backend on a fake Redis server.
        """
        country = backend.save(Country(name="Old", population=10))
        user = backend.save(User(name="ann", country=country))
        country.name = "New"
        backend.save(country)
        backend.save(user)

        assert backend.find_ids(User, [Constraint.on_reference("country", "name", "Old")]) == set()
        assert backend.find_ids(User, [Constraint.on_reference("country", "name", "New")]) == {1}

class TestTemporaryKeys:
    """Tests for the handling of destination and filtered keys."""

    def test_keys_are_deleted(self, aged_users: FixtureBackend, fake_redis: FixtureRedis):
        """
        Test that no temporary key outlives a query.

        Args:
            aged_users: A backend holding users aged 10, 20 and 30.
            fake_redis: A fake Redis client on the same server.
        """
        before = set(fake_redis.keys("*"))
        aged_users.find(
            User,
            [
                Constraint("employee_number", Condition.EQUALS, 1),
                Constraint("name", Condition.EQUALS, "user10"),
                Constraint("age", Condition.LESSTHAN, 50),
            ],
        )
        assert set(fake_redis.keys("*")) == before

    def test_keys_expire_without_cleanup(
        self, aged_users: FixtureBackend, make_backend: FixtureCallable, fake_redis: FixtureRedis
    ):
        """
        Test that temporary keys get a TTL when cleanup is disabled.

        Args:
            aged_users: A backend holding users aged 10, 20 and 30.
            make_backend: Builds another backend on the same server.
            fake_redis: A fake Redis client on the same server.
        """
        lingering = make_backend(cleanup_destination_keys=False, destination_key_ttl=30)
        ids = lingering.find_ids(
            User, [Constraint("employee_number", Condition.EQUALS, 1), Constraint("age", Condition.LESSTHAN, 50)]
        )

        assert ids == {1, 3}
        filtered = "User:age:User:employee_number:1"
        assert 0 < fake_redis.ttl(filtered) <= 30

    def test_queries_run_atomically(self, scenario_users: FixtureBackend, mocker: MockerFixture):
        """
        Test that materialization, reads and cleanup are sent as one transaction.

        Args:
            scenario_users: A backend holding U1 and U2.
            mocker: A built-in fixture from the pytest-mock library to create a Mock object.
        """
        apply_spy = mocker.spy(scenario_users.store_client, "apply")
        scenario_users.find_ids(
            User, [Constraint("employee_number", Condition.EQUALS, 1), Constraint("name", Condition.EQUALS, "model1")]
        )

        apply_spy.assert_called_once()
        operations = apply_spy.call_args.args[0]
        assert apply_spy.call_args.kwargs == {"atomic": True}
        assert [operation.command for operation in operations] == ["sinterstore", "smembers", "delete"]
        assert operations[0].args[0] == "User:employee_number:1:User:name:model1"


@pytest.mark.parametrize(
    "constraints, kind",
    [
        ([], ErrorKind.INVALID_VALUE),
        ([Constraint("nickname", Condition.EQUALS, "x")], ErrorKind.NO_SUCH_PROPERTY),
        ([Constraint("active", Condition.EQUALS, True)], ErrorKind.MISSING_INDEXED),
        ([Constraint("name", Condition.GREATERTHAN, "a")], ErrorKind.MISSING_COMPARABLE),
        ([Constraint("age", Condition.EQUALS, None)], ErrorKind.INVALID_VALUE),
        ([Constraint("name", Condition.EQUALS, " ")], ErrorKind.INVALID_VALUE),
        ([Constraint("age", Condition.EQUALS, "old")], ErrorKind.INVALID_VALUE),
        ([Constraint.on_reference("name", "name", "x")], ErrorKind.NO_SUCH_PROPERTY),
        (["age = 5"], ErrorKind.INVALID_VALUE),
    ],
)
def test_invalid_constraints(backend: FixtureBackend, fake_redis: FixtureRedis, constraints: list, kind: ErrorKind):
    """
    Test that invalid queries are rejected before anything is sent to Redis.

    Args:
        backend: A backend on a fake Redis server.
        fake_redis: A fake Redis client on the same server.
        constraints: The invalid constraints.
        kind: The expected error kind.
    """
    with pytest.raises(ValidationError) as excinfo:
        backend.find(User, constraints)
    assert excinfo.value.kind is kind
    assert fake_redis.keys("*") == []
