# Overview: Pytest coverage for sequential code assignment.

from datetime import datetime

import pytest

from posledger.errors import ValidationError
from posledger.extensions import db
from posledger.models import Item
from posledger.models.catalog import STORE_LARICHE, STORE_MINI_QUEEN
from posledger.services import code_generator
from posledger.services.code_generator import (
    generate_item_code,
    generate_order_number,
    generate_variant_code,
    generate_variant_combinations,
)
from posledger.time_utils import utcnow


def _yy():
    return f"{utcnow().year % 100:02d}"


class TestVariantCombinations:

    def test_empty_groups_yield_nothing(self):
        assert generate_variant_combinations({}) == []

    def test_depth_first_in_declaration_order(self):
        combos = generate_variant_combinations({"size": ["S", "M"], "color": ["Red", "Blue"]})
        assert combos == [
            {"size": "S", "color": "Red"},
            {"size": "S", "color": "Blue"},
            {"size": "M", "color": "Red"},
            {"size": "M", "color": "Blue"},
        ]

    def test_count_is_product_of_group_sizes(self):
        combos = generate_variant_combinations({"a": ["1", "2", "3"], "b": ["x", "y"], "c": ["k"]})
        assert len(combos) == 6
        assert len({tuple(c.items()) for c in combos}) == 6

    def test_variant_code_joins_values_and_skips_none(self):
        assert generate_variant_code("MQN-24-0001", {"size": "M", "color": "Red"}) == "MQN-24-0001-M/Red"
        assert generate_variant_code("MQN-24-0001", {"size": "M", "color": None}) == "MQN-24-0001-M"


class TestSequentialCodes:

    def test_first_code_of_the_year(self, app):
        assert generate_item_code(STORE_MINI_QUEEN) == f"MQN-{_yy()}-0001"
        assert generate_order_number() == f"PO-{_yy()}-0001"

    def test_codes_increase_without_gaps(self, make_item):
        codes = [make_item().code for _ in range(3)]
        assert codes == [f"LCH-{_yy()}-{n:04d}" for n in (1, 2, 3)]

    def test_stores_have_independent_sequences(self, make_item):
        make_item(store=STORE_LARICHE)
        make_item(store=STORE_LARICHE)
        assert make_item(store=STORE_MINI_QUEEN).code == f"MQN-{_yy()}-0001"

    def test_previous_year_codes_do_not_continue(self, app, category):
        last_year = (utcnow().year - 1) % 100
        db.session.add(Item(code=f"LCH-{last_year:02d}-0042", category_id=category.id, store=STORE_LARICHE))
        db.session.commit()

        assert generate_item_code(STORE_LARICHE) == f"LCH-{_yy()}-0001"

    def test_explicit_clock(self, app):
        assert generate_item_code(STORE_LARICHE, now=datetime(2031, 5, 1)) == "LCH-31-0001"

    def test_unknown_store_rejected(self, app):
        with pytest.raises(ValidationError):
            generate_item_code("Nowhere")


class TestCodeHelpers:

    def test_item_code_format(self):
        assert code_generator.validate_code_format("MQN-24-0007")
        assert not code_generator.validate_code_format("XYZ-24-0007")
        assert not code_generator.validate_code_format("MQN-24-7")

    def test_store_and_year_from_code(self):
        assert code_generator.store_from_code("LCH-25-0001") == STORE_LARICHE
        assert code_generator.store_from_code("ABC-25-0001") is None
        assert code_generator.year_from_code("LCH-25-0001") == 2025
        assert code_generator.year_from_code("garbage") is None

    def test_order_number_helpers(self):
        assert code_generator.validate_order_number_format("PO-24-0010")
        assert not code_generator.validate_order_number_format("PO-2024-0010")
        assert code_generator.year_from_order_number("PO-24-0010") == 2024
