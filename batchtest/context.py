"""Test context handed to batch registration callbacks."""

from __future__ import annotations

import dataclasses
import functools
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable

from batchtest import utils
from batchtest.engine import assertions
from batchtest.engine.interface import BddInterface, SuiteDeclarer, TestDeclarer


@dataclass(frozen=True)
class TestContext:
    """Declaration primitives and assertion entry points for one batch.

    `describe` and `it` tag everything they create with `batch_key`; the
    other members are shared by every batch of a run.
    """

    __test__ = False

    describe: SuiteDeclarer
    it: TestDeclarer
    before: Callable[..., Any]
    after: Callable[..., Any]
    before_each: Callable[..., Any]
    after_each: Callable[..., Any]
    utils: ModuleType
    assert_: assertions.Assert
    expect: Callable[..., assertions.Expectation]
    should: Callable[..., assertions.Expectation]
    match_snapshot: Callable[[Any], None]
    batch_key: str | None = None

    def for_batch(self, batch_key: str, interface: BddInterface) -> TestContext:
        return dataclasses.replace(
            self,
            describe=interface.describe(batch_key),
            it=interface.it(batch_key),
            batch_key=batch_key,
        )


def build_base_context(interface: BddInterface, snapshot_matcher: Callable[[Any], None]) -> TestContext:
    """Context shared by all batches of a run; use `for_batch` to bind it to a batch."""
    return TestContext(
        describe=interface.describe(),
        it=interface.it(),
        before=interface.before,
        after=interface.after,
        before_each=interface.before_each,
        after_each=interface.after_each,
        utils=utils,
        assert_=assertions.assert_,
        expect=functools.partial(assertions.expect, snapshot_matcher=snapshot_matcher),
        should=functools.partial(assertions.should, snapshot_matcher=snapshot_matcher),
        match_snapshot=snapshot_matcher,
    )
