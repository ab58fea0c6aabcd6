"""Unit tests for the explicit UnitOfWork handle."""

from __future__ import annotations

import pytest

from modules.catalog.models import Item
from shared.infrastructure.uow import TransactionRequired, UnitOfWork

pytestmark = pytest.mark.unit


class TestUnitOfWork:
    def test_active_only_inside_block(self):
        uow = UnitOfWork()
        assert uow.active is False

        with uow:
            assert uow.active is True
            uow.ensure_active()

        assert uow.active is False
        with pytest.raises(TransactionRequired):
            uow.ensure_active()

    def test_transaction_required_is_a_runtime_error(self):
        assert issubclass(TransactionRequired, RuntimeError)

    def test_exception_rolls_back(self):
        with pytest.raises(ValueError):
            with UnitOfWork() as uow:
                Item.objects.using(uow.using).create(
                    seller_id="s", title="Rolled back", base_price=1000
                )
                raise ValueError("abort")

        assert not Item.objects.filter(title="Rolled back").exists()

    def test_nested_unit_of_work_is_a_savepoint(self):
        with UnitOfWork() as outer:
            Item.objects.using(outer.using).create(seller_id="s", title="Outer", base_price=1)
            with pytest.raises(ValueError):
                with UnitOfWork(outer.using) as inner:
                    Item.objects.using(inner.using).create(
                        seller_id="s", title="Inner", base_price=1
                    )
                    raise ValueError("inner abort")

        assert Item.objects.filter(title="Outer").exists()
        assert not Item.objects.filter(title="Inner").exists()

    def test_not_reentrant(self):
        uow = UnitOfWork()
        with uow:
            with pytest.raises(RuntimeError):
                uow.__enter__()

    def test_on_commit_runs_after_commit(self, django_capture_on_commit_callbacks):
        calls = []

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with UnitOfWork() as uow:
                uow.on_commit(lambda: calls.append("committed"))
                assert calls == []

        assert len(callbacks) == 1
        assert calls == ["committed"]
