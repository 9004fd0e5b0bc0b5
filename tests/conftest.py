import asyncio
import inspect

import pytest

from templates import store as template_store


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test to run inside a simple asyncio event loop"
    )


@pytest.hookimpl
def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        marker = pyfuncitem.get_closest_marker("asyncio")
        if marker is not None:
            testargs = {
                arg: pyfuncitem.funcargs[arg]
                for arg in pyfuncitem._fixtureinfo.argnames
            }
            loop = asyncio.new_event_loop()
            try:
                asyncio.set_event_loop(loop)
                loop.run_until_complete(pyfuncitem.obj(**testargs))
            finally:
                asyncio.set_event_loop(None)
                loop.close()
            return True


class RecordingReplies:
    """Reply sink that keeps every outgoing message instead of sending it."""

    def __init__(self):
        self.sent = []

    async def reply(self, user_id, text, keyboard=None):
        self.sent.append((user_id, str(text), keyboard))

    async def reply_template(self, user_id, template_name, data=None, keyboard=None):
        self.sent.append((user_id, str(template_store.render(template_name, **dict(data or {}))), keyboard))

    def texts(self, user_id=None):
        return [text for uid, text, _ in self.sent if user_id is None or uid == user_id]

    @property
    def last_text(self):
        return self.sent[-1][1] if self.sent else None

    @property
    def last_keyboard(self):
        return self.sent[-1][2] if self.sent else None


class AllowList:
    """Access manager granting only the listed (user_id, action) pairs, or everything."""

    def __init__(self, allow_all=True):
        self.allow_all = allow_all
        self.granted = set()
        self.audit = []

    def allow(self, user_id, action):
        self.granted.add((user_id, action))

    async def check_capability(self, user_id, action):
        return self.allow_all or (user_id, action) in self.granted

    async def log_access(self, user_id, action):
        self.audit.append((user_id, action))


@pytest.fixture
def replies():
    return RecordingReplies()


@pytest.fixture
def access():
    return AllowList()
