import random
import re
from datetime import datetime, timezone

from uploader.services.naming import RANDOM_CEILING, generate_stored_name

NOW = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


def test_name_has_three_segments():
    name = generate_stored_name("report.pdf", NOW, random.Random(7))
    expected_suffix = random.Random(7).randint(0, RANDOM_CEILING)
    assert name == f"1714566615250-{expected_suffix}-report.pdf"


def test_original_name_is_passed_through():
    name = generate_stored_name("a b/../c.png", NOW)
    assert name.endswith("-a b/../c.png")


def test_empty_original_name():
    assert re.match(r"^\d+-\d+-$", generate_stored_name("", NOW))


def test_default_clock_and_random_source():
    m = re.match(r"^(\d+)-(\d+)-x\.png$", generate_stored_name("x.png"))
    assert m
    assert int(m.group(1)) > 1_600_000_000_000
    assert 0 <= int(m.group(2)) <= RANDOM_CEILING


def test_same_instant_names_do_not_collide():
    names = {generate_stored_name("same.png", NOW) for _ in range(200)}
    assert len(names) == 200
