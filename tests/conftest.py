"""
Pytest configuration and shared fixtures.
"""

import pytest


@pytest.fixture
def palette():
    """The three-color palette most tests use."""
    return ("R", "G", "B")


@pytest.fixture
def feasible_distribution():
    """Three processes, ten tokens of each of three colors: a perfect partition exists."""
    return {
        1: ["R", "R", "R", "G", "G", "G", "B", "B", "B", "R"],
        2: ["G", "G", "G", "R", "R", "B", "B", "B", "R", "R"],
        3: ["B", "B", "B", "B", "R", "G", "G", "G", "G", "R"],
    }


@pytest.fixture
def single_token_distribution():
    """Every stack already monochrome."""
    return {1: ["R"], 2: ["G"], 3: ["R"]}


@pytest.fixture
def empty_process_distribution():
    """One process starts with nothing."""
    return {1: [], 2: ["G"], 3: ["R", "G"]}
