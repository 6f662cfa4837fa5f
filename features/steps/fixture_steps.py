"""Steps that create and inspect announcement fixtures through the API."""

from behave import given, then, when
from behave.runner import Context

from petspot_e2e.exceptions import FixtureNotFoundError


def _table_fields(context: Context) -> dict[str, str]:
    return {row["field"]: row["value"] for row in context.table}


@given("an announcement exists with")
def step_create_announcement(context: Context) -> None:
    fixture = context.petspot.gateway.create_fixture(_table_fields(context))
    context.last_fixture = fixture


@given('an announcement for "{pet_name}" exists')
def step_create_named_announcement(context: Context, pet_name: str) -> None:
    context.last_fixture = context.petspot.gateway.create_fixture({"petName": pet_name})


@then("the gateway returns an identifier and a management password")
def step_fixture_has_credentials(context: Context) -> None:
    assert context.last_fixture.id, "Fixture id is empty"
    assert context.last_fixture.management_password, "Management password is empty"


@then('the announcement for "{pet_name}" has {field} "{value}"')
def step_announcement_field(context: Context, pet_name: str, field: str, value: str) -> None:
    fixture_id = context.petspot.gateway.fixture_id_for(pet_name)
    assert fixture_id is not None, f"No announcement created for {pet_name}"
    announcement = context.petspot.gateway.get_fixture(fixture_id)
    actual = str(announcement.get(field))
    context.petspot.soft_asserts.check(
        actual == value,
        f'the announcement for "{pet_name}" has {field} "{value}"',
        f"Expected {field}={value!r}, got {actual!r}",
    )


@when('the announcement for "{pet_name}" is deleted')
def step_delete_announcement(context: Context, pet_name: str) -> None:
    fixture_id = context.petspot.gateway.fixture_id_for(pet_name)
    context.deleted_fixture_id = fixture_id
    context.petspot.gateway.delete_fixture(fixture_id)


@then("fetching the deleted announcement returns not found")
def step_deleted_announcement_missing(context: Context) -> None:
    try:
        context.petspot.gateway.get_fixture(context.deleted_fixture_id)
    except FixtureNotFoundError:
        return
    raise AssertionError(f"Announcement {context.deleted_fixture_id} still exists")
