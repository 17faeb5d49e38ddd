"""Suite / test / hook tree used by the runner."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Optional

RunnableFn = Callable[[], Any]


class Runnable:
    """Common base for anything with a title inside the suite tree."""

    def __init__(self, title: str, parent: Suite | None = None, batch_key: str | None = None):
        self.id = uuid.uuid4().hex[:12]
        self.title = title
        self.parent = parent
        # Owning batch marker; used for grouping and snapshot directories, never for execution.
        self.batch_key = batch_key

    def title_path(self) -> list[str]:
        """Titles from the outermost visible suite down to this runnable.

        The root suite and batch-root suites are synthetic and left out.
        """
        titles: list[str] = []
        node: Runnable | None = self
        while node is not None:
            if not (isinstance(node, Suite) and (node.is_root or node.batch_root)):
                titles.append(node.title)
            node = node.parent
        return list(reversed(titles))

    def full_title(self) -> str:
        return " ".join(self.title_path())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.full_title()!r}>"


class Test(Runnable):
    __test__ = False  # not a pytest class

    def __init__(
        self,
        title: str,
        fn: RunnableFn | None = None,
        parent: Suite | None = None,
        batch_key: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(title, parent, batch_key)
        self.fn = fn
        self.pending = fn is None
        self.timeout = timeout
        self.state: Optional[str] = None  # None while not finished, then "passed" / "failed"
        self.error: BaseException | None = None
        self.duration_seconds = 0.0


class Hook(Runnable):
    """A before/after hook, or the synthetic runnable that reports a failed suite body."""

    def __init__(self, kind: str, fn: RunnableFn, parent: Suite, title: str | None = None):
        super().__init__(title or f'"{kind}" hook', parent, parent.batch_key)
        self.kind = kind
        self.fn = fn
        self.error: BaseException | None = None

    def title_path(self) -> list[str]:
        # Hooks are reported against the suite that owns them
        return self.parent.title_path() + [self.title] if self.parent else [self.title]


class Suite(Runnable):
    def __init__(
        self,
        title: str,
        parent: Suite | None = None,
        batch_key: str | None = None,
        body: RunnableFn | None = None,
        pending: bool = False,
        is_root: bool = False,
        batch_root: bool = False,
    ):
        super().__init__(title, parent, batch_key)
        # Declaration body, evaluated lazily when the runner enters the suite
        self.body = body
        self.pending = pending or (parent.pending if parent else False)
        self.is_root = is_root
        self.batch_root = batch_root
        self.failed = False  # set when a hook or the body fails
        self.children: list[Runnable] = []
        self.before_all: list[Hook] = []
        self.after_all: list[Hook] = []
        self.before_each: list[Hook] = []
        self.after_each: list[Hook] = []

    @classmethod
    def create_root(cls) -> Suite:
        return cls("__root", is_root=True)

    @property
    def suites(self) -> list[Suite]:
        return [c for c in self.children if isinstance(c, Suite)]

    @property
    def tests(self) -> list[Test]:
        return [c for c in self.children if isinstance(c, Test)]

    def add_suite(self, suite: Suite) -> Suite:
        suite.parent = self
        if self.pending:
            suite.pending = True
        self.children.append(suite)
        return suite

    def add_test(self, test: Test) -> Test:
        test.parent = self
        if self.pending:
            test.pending = True
        self.children.append(test)
        return test

    def add_hook(self, kind: str, fn: RunnableFn, title: str | None = None) -> Hook:
        hook = Hook(kind, fn, self, title)
        match kind:
            case "before all":
                self.before_all.append(hook)
            case "after all":
                self.after_all.append(hook)
            case "before each":
                self.before_each.append(hook)
            case "after each":
                self.after_each.append(hook)
            case _:
                raise ValueError(f"Unknown hook kind: {kind}")
        return hook

    def ancestors(self) -> list[Suite]:
        """This suite and its parents, outermost first."""
        chain: list[Suite] = []
        node: Suite | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        return list(reversed(chain))
