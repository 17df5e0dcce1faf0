"""StackRouter tests: first stack in caller order with any keyword hit wins."""
import uuid
from datetime import datetime, timezone

from grylin.schemas.document import DocumentCreate
from grylin.schemas.life_stack import LifeStackResponse
from grylin.services.stack_router import route, routing_text


def make_stack(name, keywords):
    return LifeStackResponse(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        name=name,
        icon="layers",
        color="#6366F1",
        keywords=keywords,
        created_at=datetime.now(timezone.utc),
    )


def doc(title, category="Other"):
    return DocumentCreate(title=title, category=category)


class TestRoute:
    def test_first_match_wins(self):
        car = make_stack("Car", ["insurance", "vehicle"])
        home = make_stack("Home", ["insurance", "rent", "electric"])
        assert route(doc("Vehicle Insurance Renewal"), [car, home]) == car.id
        assert route(doc("Vehicle Insurance Renewal"), [home, car]) == home.id

    def test_category_is_searched(self):
        health = make_stack("Health", ["health"])
        assert route(doc("Clinic visit", "Health"), [health]) == health.id

    def test_case_insensitive(self):
        school = make_stack("School", ["TUITION"])
        assert route(doc("Tuition fee Q3"), [school]) == school.id

    def test_no_match(self):
        assert route(doc("Gym membership"), [make_stack("Car", ["vehicle"])]) is None

    def test_blank_keyword_never_matches(self):
        assert route(doc("Anything"), [make_stack("Empty", ["", "  "])]) is None

    def test_no_stacks(self):
        assert route(doc("Anything"), []) is None

    def test_routing_text(self):
        assert routing_text(doc("PAN Card", "Other")) == "pan card other"
