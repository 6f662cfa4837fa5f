"""Steps driving the web page or the mobile app session."""

from behave import given, then, when
from behave.runner import Context
from selenium.webdriver.common.by import By

from petspot_e2e.waits import is_visible, wait_for_visible


@given("the user is located at {latitude:f}, {longitude:f}")
def step_set_location(context: Context, latitude: float, longitude: float) -> None:
    if context.petspot.platform is not None and context.petspot.platform.is_mobile:
        context.petspot.session()
        context.petspot.mobile_app().set_device_location(latitude, longitude)
    else:
        context.petspot.set_mock_geolocation(latitude, longitude)


@when('the user opens the "{path}" page')
def step_open_page(context: Context, path: str) -> None:
    context.petspot.debug_screenshot(f"open {path}")
    context.petspot.open(path)


@when("the user restarts the app")
def step_restart_app(context: Context) -> None:
    context.petspot.session()
    context.petspot.mobile_app().restart_app()


@then('the element "{test_id}" is visible')
def step_element_visible(context: Context, test_id: str) -> None:
    wait_for_visible(context.petspot.driver, (By.CSS_SELECTOR, f'[data-testid="{test_id}"]'))


@then('the text "{text}" is shown')
def step_text_shown(context: Context, text: str) -> None:
    locator = (By.XPATH, f"//*[contains(text(), '{text}')]")
    context.petspot.soft_asserts.check(
        is_visible(context.petspot.driver, locator),
        f'the text "{text}" is shown',
        f"Text '{text}' not visible",
    )
