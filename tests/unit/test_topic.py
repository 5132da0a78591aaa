"""Unit tests for the topic protocol and turn engine."""

import asyncio

import pytest

from topicflow.conversation import (
    ChannelAccount,
    Topic,
    TopicEngine,
    TopicEventType,
    TopicObserver,
    TopicRegistry,
)
from topicflow.errors import (
    DispatchDepthExceededError,
    NoActiveChildError,
    TopicEndedError,
    TopicNotFoundError,
    UnsupportedVariantError,
)
from topicflow.storage import MemoryStorage


class Echo(Topic):
    type_tag = "test.Echo"

    async def on_start(self, args):
        self.state["count"] = 0
        await self.send(f"echo ready {args or ''}".strip())

    async def on_dispatch(self):
        self.state["count"] += 1
        if self.text == "bye":
            await self.end({"count": self.state["count"]})
            return
        await self.send(f"you said {self.text}")


class Child(Topic):
    type_tag = "test.Child"

    async def on_start(self, args):
        await self.send("child started")

    async def on_dispatch(self):
        if self.text == "done":
            await self.end(self.text.upper())
            return
        await self.send(f"child heard {self.text}")


class Parent(Topic):
    type_tag = "test.Parent"

    async def on_start(self, args):
        self.state["returns"] = []
        await self.start_child(Child)

    async def on_dispatch(self):
        if self.text == "switch":
            await self.start_child(Child)
        elif self.text == "quit":
            await self.end("quit")
        elif not await self.dispatch_to_child():
            await self.send(f"parent heard {self.text}")

    async def on_child_end(self, child):
        assert child.is_a(Child)
        self.state["returns"].append(child.return_value)
        await self.send(f"child returned {child.return_value}")


class ContinuationParent(Topic):
    type_tag = "test.ContinuationParent"

    async def on_start(self, args):
        await self.start_child(Child, on_end=self.child_done)

    async def child_done(self, child):
        self.state["via"] = "continuation"
        self.state["value"] = child.return_value

    async def on_child_end(self, child):
        self.state["via"] = "on_child_end"


class Returner(Topic):
    type_tag = "test.Returner"

    async def on_dispatch(self):
        await self.return_to_parent(f"got {self.text}")


class ReturningParent(Topic):
    type_tag = "test.ReturningParent"

    async def on_start(self, args):
        await self.start_child(Returner)

    async def on_dispatch(self):
        await self.dispatch_to_child()

    async def on_child_end(self, child):
        self.state["value"] = child.return_value


class RequiresChild(Topic):
    type_tag = "test.RequiresChild"

    async def on_dispatch(self):
        await self.dispatch_to_child(required=True)


class Exploding(Topic):
    type_tag = "test.Exploding"

    async def on_dispatch(self):
        self.state["touched"] = True
        raise RuntimeError("boom")


class DoubleEnd(Topic):
    type_tag = "test.DoubleEnd"

    async def on_dispatch(self):
        await self.end()
        await self.end()


class BadContinuation(Topic):
    type_tag = "test.BadContinuation"

    async def on_start(self, args):
        await self.start_child(Child, on_end=lambda child: None)


class FailingObserver(TopicObserver):
    def on_event(self, event):
        raise RuntimeError("observer down")


class TestRootLifecycle:
    """Tests for starting and dispatching root topics."""

    @pytest.mark.asyncio
    async def test_start_persists_instance(self, conversation):
        """Test starting a root topic stores its instance."""
        context = await conversation.start(Echo, "x")

        root = await conversation.root()
        assert root is not None
        assert root.type_tag == "test.Echo"
        assert root.started
        assert not root.ended
        assert root.state == {"count": 0}
        assert context.reply_texts == ["echo ready x"]

    @pytest.mark.asyncio
    async def test_dispatch_resumes_state(self, conversation):
        """Test state carries over between turns."""
        await conversation.start(Echo)

        await conversation.say("hi")
        context = await conversation.say("again")

        root = await conversation.root()
        assert root.state["count"] == 2
        assert context.reply_texts == ["you said again"]

    @pytest.mark.asyncio
    async def test_ended_root_is_not_dispatched(self, conversation, engine):
        """Test dispatch reports False once the root ended."""
        await conversation.start(Echo)
        await conversation.say("bye")

        root = await conversation.root()
        assert root.ended
        assert root.return_value == {"count": 1}

        assert await engine.dispatch(conversation.message("hello")) is False

    @pytest.mark.asyncio
    async def test_dispatch_without_root(self, conversation, engine):
        """Test dispatch reports False when nothing was started."""
        assert await engine.dispatch(conversation.message("hello")) is False

    @pytest.mark.asyncio
    async def test_dispatch_unknown_instance(self, conversation, engine):
        """Test dispatching an unknown instance id is fatal."""
        with pytest.raises(TopicNotFoundError):
            await engine.dispatch(conversation.message("hello"), "missing")

    @pytest.mark.asyncio
    async def test_user_joining_does_not_start(self, conversation, engine):
        """Test only the bot joining starts the root topic."""
        user = ChannelAccount(id="user", name="User1")

        started = await engine.do_topic(Echo, conversation.joined(user))

        assert started is False
        assert await conversation.root() is None

    @pytest.mark.asyncio
    async def test_restart_discards_previous_root(self, conversation, engine, storage):
        """Test starting a new root removes the old tree."""
        await conversation.start(Parent)
        old_root = await conversation.root()
        old_child_id = old_root.active_child_id

        await conversation.start(Echo)

        root = await conversation.root()
        assert root.id != old_root.id
        assert await engine.load(old_root.id) is None
        assert await engine.load(old_child_id) is None

    @pytest.mark.asyncio
    async def test_end_twice_raises(self, conversation):
        """Test ending an ended topic is a protocol violation."""
        await conversation.start(DoubleEnd)

        with pytest.raises(TopicEndedError):
            await conversation.say("go")


class TestChildren:
    """Tests for parent/child delegation."""

    @pytest.mark.asyncio
    async def test_turns_forwarded_to_child(self, conversation):
        """Test the active child receives the turn."""
        start_context = await conversation.start(Parent)
        context = await conversation.say("hello")

        assert start_context.reply_texts == ["child started"]
        assert context.reply_texts == ["child heard hello"]

    @pytest.mark.asyncio
    async def test_child_end_notifies_parent_once(self, conversation, engine, observer):
        """Test on_child_end fires exactly once with the return value."""
        await conversation.start(Parent)
        child_id = (await conversation.root()).active_child_id

        context = await conversation.say("done")
        await conversation.say("later")

        root = await conversation.root()
        assert root.state["returns"] == ["DONE"]
        assert root.active_child_id is None
        assert root.children == []
        assert context.reply_texts == ["child returned DONE"]
        assert len(observer.of_type(TopicEventType.CHILD_ENDED)) == 1
        assert await engine.load(child_id) is None

    @pytest.mark.asyncio
    async def test_parent_handles_turn_without_child(self, conversation):
        """Test dispatch_to_child reports False when no child is active."""
        await conversation.start(Parent)
        await conversation.say("done")

        context = await conversation.say("anything")

        assert context.reply_texts == ["parent heard anything"]

    @pytest.mark.asyncio
    async def test_return_to_parent_hands_value_back(self, conversation):
        """Test return_to_parent ends the child with its value."""
        await conversation.start(ReturningParent)

        await conversation.say("ping")

        root = await conversation.root()
        assert root.state == {"value": "got ping"}
        assert root.children == []

    @pytest.mark.asyncio
    async def test_continuation_replaces_on_child_end(self, conversation):
        """Test a registered continuation runs instead of on_child_end."""
        await conversation.start(ContinuationParent)
        root = await conversation.root()
        assert list(root.continuations.values()) == ["child_done"]

        await conversation.say("done")

        root = await conversation.root()
        assert root.state == {"via": "continuation", "value": "DONE"}
        assert root.continuations == {}

    @pytest.mark.asyncio
    async def test_continuation_must_be_own_method(self, conversation):
        """Test a continuation that is not a method is rejected."""
        with pytest.raises(ValueError):
            await conversation.start(BadContinuation)

    @pytest.mark.asyncio
    async def test_replacing_active_child(self, conversation, engine, observer):
        """Test starting a second child discards the first."""
        await conversation.start(Parent)
        first_id = (await conversation.root()).active_child_id

        await conversation.say("switch")

        root = await conversation.root()
        assert root.active_child_id != first_id
        assert root.children == [root.active_child_id]
        assert root.state["returns"] == []
        assert await engine.load(first_id) is None

        replaced = observer.of_type(TopicEventType.CHILD_REPLACED)
        assert len(replaced) == 1
        assert replaced[0].data["child_id"] == first_id

    @pytest.mark.asyncio
    async def test_ending_parent_discards_children(self, conversation, engine):
        """Test ending a topic removes its subtree."""
        await conversation.start(Parent)
        child_id = (await conversation.root()).active_child_id

        await conversation.say("quit")

        root = await conversation.root()
        assert root.ended
        assert root.children == []
        assert await engine.load(child_id) is None

    @pytest.mark.asyncio
    async def test_required_child_missing(self, conversation):
        """Test a required child that is missing raises."""
        await conversation.start(RequiresChild)

        with pytest.raises(NoActiveChildError):
            await conversation.say("hello")

    @pytest.mark.asyncio
    async def test_dispatch_depth_limit(self, storage, settings, conversation):
        """Test nested dispatch beyond the configured depth raises."""
        shallow = TopicEngine(
            storage=storage,
            settings=settings.model_copy(update={"max_dispatch_depth": 1}),
        )
        conversation.engine = shallow
        await conversation.start(Parent)

        with pytest.raises(DispatchDepthExceededError):
            await conversation.say("hello")


class TestTurnAtomicity:
    """Tests for turn persistence."""

    @pytest.mark.asyncio
    async def test_failed_turn_writes_nothing(self, conversation, observer, engine):
        """Test a failing hook leaves stored state untouched."""
        await conversation.start(Exploding)

        with pytest.raises(RuntimeError, match="boom"):
            await conversation.say("hello")

        root = await conversation.root()
        assert "touched" not in root.state
        assert len(observer.of_type(TopicEventType.TURN_FAILED)) == 1
        assert engine.get_metrics()["turns_failed"] == 1

    @pytest.mark.asyncio
    async def test_reload_across_engines(self, storage, settings, conversation):
        """Test a new engine over the same storage resumes the tree."""
        await conversation.start(Parent)

        conversation.engine = TopicEngine(storage=storage, settings=settings)
        context = await conversation.say("done")

        root = await conversation.root()
        assert root.state["returns"] == ["DONE"]
        assert context.reply_texts == ["child returned DONE"]

    @pytest.mark.asyncio
    async def test_observer_errors_do_not_abort(self, storage, settings, conversation):
        """Test a failing observer is logged and ignored."""
        conversation.engine = TopicEngine(
            storage=storage,
            observer=FailingObserver(),
            settings=settings,
        )

        context = await conversation.start(Echo)

        assert context.reply_texts == ["echo ready"]
        assert (await conversation.root()).started


class TestRegistry:
    """Tests for TopicRegistry."""

    def test_subclasses_register_by_tag(self):
        """Test defining a subclass registers its tag."""
        from topicflow.conversation import default_registry

        assert default_registry.resolve("test.Echo") is Echo

    def test_default_tag_is_qualified_name(self):
        """Test the default tag uses module and class name."""

        class Untagged(Topic, register=False):
            pass

        assert Untagged.type_tag.endswith("Untagged")
        assert Untagged.type_tag.startswith(__name__)

    def test_unknown_tag(self):
        """Test resolving an unknown tag raises."""
        registry = TopicRegistry()

        with pytest.raises(UnsupportedVariantError):
            registry.resolve("nope")

    def test_register_as_decorator(self):
        """Test register returns the class."""
        registry = TopicRegistry()

        assert registry.register(Echo) is Echo
        assert "test.Echo" in registry
        assert len(registry) == 1


class Pruner(Topic):
    type_tag = "test.Pruner"

    async def on_start(self, args):
        await self.start_child(Child)
        await self.create_child(Child)

    async def on_dispatch(self):
        if self.text == "prune":
            await self.remove_child(self.active_child_id)
        else:
            await self.dispatch_to_child()


class TestRemoveChild:
    """Tests for Topic.remove_child."""

    @pytest.mark.asyncio
    async def test_remove_active_child(self, conversation, engine):
        """Test removing the active child deletes it and keeps candidates."""
        await conversation.start(Pruner)
        root = await conversation.root()
        active_id, candidate_id = root.children

        await conversation.say("prune")

        root = await conversation.root()
        assert root.active_child_id is None
        assert root.children == [candidate_id]
        assert await engine.load(active_id) is None
        assert (await engine.load(candidate_id)).candidate


class TestEngine:
    """Tests for TopicEngine construction and turn locking."""

    def test_injected_collaborators_are_used(self, settings):
        """Test empty storage and registry passed in are kept."""
        shared = MemoryStorage()
        registry = TopicRegistry()

        engine = TopicEngine(storage=shared, registry=registry, settings=settings)

        assert engine.storage is shared
        assert engine.registry is registry
        assert engine.settings is settings

    @pytest.mark.asyncio
    async def test_engines_share_storage(self, settings, conversation):
        """Test two engines over one empty store see each other's writes."""
        shared = MemoryStorage()
        conversation.engine = TopicEngine(storage=shared, settings=settings)
        await conversation.start(Echo)

        conversation.engine = TopicEngine(storage=shared, settings=settings)
        context = await conversation.say("hi")

        assert context.reply_texts == ["you said hi"]
        assert len(shared) == 2

    @pytest.mark.asyncio
    async def test_locks_released_after_turns(self, conversation, engine):
        """Test no per-conversation lock outlives its turns."""
        for i in range(50):
            conversation.conversation_id = f"conv-{i}"
            await conversation.start(Echo)
            await conversation.say("hi")

        assert engine._locks == {}
        assert engine._lock_users == {}

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self, conversation, engine):
        """Test overlapping turns of one conversation do not lose updates."""
        await conversation.start(Echo)

        await asyncio.gather(*(conversation.say(f"m{i}") for i in range(5)))

        root = await conversation.root()
        assert root.state["count"] == 5
        assert engine._locks == {}

    @pytest.mark.asyncio
    async def test_failed_turn_releases_lock(self, conversation, engine):
        """Test the lock is dropped when a turn raises."""
        await conversation.start(Exploding)

        with pytest.raises(RuntimeError):
            await conversation.say("hello")

        assert engine._locks == {}
