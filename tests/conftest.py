"""Shared test fixtures for Cohesion Insight tests."""

import os
import textwrap

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep project config files and COHESION_* variables out of every test."""

    for key in list(os.environ):
        if key.startswith("COHESION_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def write_source(tmp_path):
    """Write a dedented source file under tmp_path and return its path."""

    def _write(rel_path: str, content: str):
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def order_resource_source():
    """Controller whose ``place`` method scores exactly 8."""
    return '''
        class OrderRepository(Repository):
            def save(self, order):
                return order


        class OrderResource(APIView):
            def __init__(self, repo: OrderRepository, payments: PaymentGateway):
                self.repo = repo
                self.payments = payments

            def place(self, order):
                if order.valid:
                    self.payments.charge(order)
                for line in order.lines:
                    try:
                        self.repo.save(line)
                    except IOError:
                        pass
                return order
    '''
