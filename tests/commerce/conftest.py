import pytest
from commerce.catalogue import set_catalogue
from commerce.catalogue.memory_adapter import InMemoryCatalogue
from commerce.notification import set_notifier
from commerce.notification.fake_adapter import FakeNotifier
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield


@pytest.fixture()
def catalogue():
    """In-memory catalogue seeded with a few variants."""
    catalogue = InMemoryCatalogue()
    catalogue.add_variant("var-tee", "Black Tee / M", 20.0, 10, image_url="https://cdn.example.com/tee.jpg")
    catalogue.add_variant("var-mug", "Enamel Mug", 12.5, 5)
    catalogue.add_variant("var-last", "Last Poster", 30.0, 1)
    set_catalogue(catalogue)
    return catalogue


@pytest.fixture()
def notifier():
    notifier = FakeNotifier()
    set_notifier(notifier)
    return notifier


@pytest.fixture()
def checkout_payload():
    """Factory for raw checkout payloads. Card ending in 1 is approved."""

    def _payload(card_number="4111 1111 1111 1111", selection=None, **overrides):
        payload = {
            "email": "ada@example.com",
            "phone": "+1 555 0100",
            "shipping_address": {
                "first_name": "Ada",
                "last_name": "Lovelace",
                "line1": "12 Analytical Row",
                "city": "London",
                "state": "LDN",
                "postal_code": "N1 9GU",
                "country": "GB",
            },
            "payment": {
                "card_number": card_number,
                "expiry_month": 12,
                "expiry_year": 2031,
                "cvv": "123",
                "cardholder_name": "Ada Lovelace",
            },
            "product_selection": (
                selection
                if selection is not None
                else [{"variant_id": "var-tee", "options": {"size": "M"}, "quantity": 2, "unit_price": 20.0}]
            ),
        }
        payload.update(overrides)
        return payload

    return _payload
