"""
Shared fixtures and step definitions for BDD tests.

- runner, store, context: available to all scenario files in this directory
- no_logging: autouse, prevents log file creation during tests
- 'the output contains' step: shared across all feature files
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch
from click.testing import CliRunner
from pytest_bdd import then, parsers


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store():
    """MagicMock store yielded by every CLI command's open_store()."""
    mock_store = MagicMock()
    mock_store.create_lead.side_effect = lambda lead: lead
    mock_store.create_visit.side_effect = lambda visit: visit

    @contextmanager
    def _open_store(autocommit=False):
        yield mock_store

    with patch("corretorcrm.cli.main.open_store", _open_store):
        yield mock_store


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("corretorcrm.cli.main.configure_logging"):
        yield


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@then(parsers.parse('the output does not contain "{text}"'))
def output_does_not_contain(context, text):
    assert text not in context["result"].output, (
        f"Did not expect {text!r} in output:\n{context['result'].output}"
    )
