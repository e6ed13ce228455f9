import asyncio
from types import SimpleNamespace

from conftest import FakeBot

from ottpulse.bot import handlers
from ottpulse.digest.job import DigestBroadcaster
from ottpulse.digest.settings import DigestSettings
from ottpulse.store import StateStore


class _Message:
    def __init__(self, new_chat_members=()) -> None:
        self.new_chat_members = list(new_chat_members)
        self.replies: list[str] = []

    async def reply_text(self, text, **kwargs):
        self.replies.append(text)


def _setup(state_path, monkeypatch, admin=None):
    monkeypatch.setattr(handlers, "admin_id", lambda: admin)
    store = StateStore.load(state_path)
    broadcaster = DigestBroadcaster(store, DigestSettings(), None, chat_id=-100)
    bot = FakeBot()
    context = SimpleNamespace(bot=bot, bot_data={"broadcaster": broadcaster}, args=[])
    return broadcaster, bot, context


def _update(user_id=7, chat_id=-555, message=None):
    return SimpleNamespace(
        message=message or _Message(),
        effective_user=SimpleNamespace(id=user_id),
        effective_chat=SimpleNamespace(id=chat_id),
    )


def test_new_members_registered_and_group_stored(state_path, monkeypatch) -> None:
    broadcaster, _, context = _setup(state_path, monkeypatch)
    message = _Message([
        SimpleNamespace(id=1, is_bot=False),
        SimpleNamespace(id=2, is_bot=True),
    ])

    asyncio.run(handlers.new_members_handler(_update(chat_id=-100, message=message), context))

    store = broadcaster.store
    assert store.group_id == -100
    assert list(store.members) == ["1"]
    assert message.replies and "Welcome" in message.replies[0]


def test_join_in_other_chat_does_not_redirect_digest(state_path, monkeypatch) -> None:
    broadcaster, bot, context = _setup(state_path, monkeypatch, admin=7)
    message = _Message([SimpleNamespace(id=1, is_bot=False)])

    asyncio.run(handlers.new_members_handler(_update(chat_id=-999777, message=message), context))

    assert broadcaster.store.group_id is None
    assert broadcaster.store.members == {}
    assert message.replies == []
    assert broadcaster.destination == -100

    context.args = ["hello"]
    asyncio.run(handlers.broadcast_command(_update(user_id=7), context))
    assert bot.sent[0]["chat_id"] == -100


def test_setadmin_first_caller_only(state_path, monkeypatch) -> None:
    broadcaster, _, context = _setup(state_path, monkeypatch)

    asyncio.run(handlers.setadmin_command(_update(user_id=7), context))
    other = _update(user_id=8)
    asyncio.run(handlers.setadmin_command(other, context))

    assert broadcaster.store.admin_id == 7
    assert "already" in other.message.replies[0]


def test_broadcast_requires_admin(state_path, monkeypatch) -> None:
    _, bot, context = _setup(state_path, monkeypatch, admin=7)
    context.args = ["hello", "group"]

    stranger = _update(user_id=8)
    asyncio.run(handlers.broadcast_command(stranger, context))
    assert bot.sent == []
    assert "not authorized" in stranger.message.replies[0]

    asyncio.run(handlers.broadcast_command(_update(user_id=7), context))
    assert bot.sent[0]["chat_id"] == -100
    assert bot.sent[0]["text"].endswith("hello group")


def test_language_preference(state_path, monkeypatch) -> None:
    broadcaster, _, context = _setup(state_path, monkeypatch)
    context.args = ["korean"]

    asyncio.run(handlers.language_command(_update(user_id=3), context))
    assert broadcaster.store.members["3"].preferred_language == "Korean"

    context.args = ["elvish"]
    update = _update(user_id=3)
    asyncio.run(handlers.language_command(update, context))
    assert "Choose from" in update.message.replies[0]
    assert broadcaster.store.members["3"].preferred_language == "Korean"
