import unittest
from unittest import mock

from pinboard.errors import NotAuthorized, NotFound, ValidationFailed
from pinboard.events import PIN_CREATED, PIN_DELETED, PIN_UPDATED, PinEvents
from pinboard.services.feed_service import FeedService
from pinboard.services.pin_service import PinService
from pinboard.stores.users import UserRecord

from support import BASE_TIME, Clock, memory_pin_store, sql_pin_store

OWNER = UserRecord(id=1, username="owner", email="owner@example.com", password_hash="x", created_at=BASE_TIME)
STRANGER = UserRecord(id=2, username="stranger", email="s@example.com", password_hash="x", created_at=BASE_TIME)


class PinServiceCases:
    def make_store(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self.store = self.make_store()
        self.events = PinEvents(backlog=50)
        self.service = PinService(self.store, self.events, clock=Clock())
        self.feed = FeedService(self.store)

    def create(self, title="Sunset", description="", user=OWNER):
        return self.service.create(user, title=title, description=description, image="/uploads/a.jpg")

    def test_create_sets_owner_and_timestamps(self) -> None:
        pin = self.create("  Sunset  ", None)
        self.assertEqual(pin.title, "Sunset")
        self.assertEqual(pin.description, "")
        self.assertEqual(pin.owner_id, OWNER.id)
        self.assertEqual(pin.created_at, pin.updated_at)

    def test_create_requires_title_and_image(self) -> None:
        with self.assertRaises(ValidationFailed):
            self.create("   ")
        with self.assertRaises(ValidationFailed):
            self.service.create(OWNER, title="ok", description="", image="")

    def test_owner_can_edit(self) -> None:
        pin = self.create()
        edited = self.service.update(pin.id, OWNER, {"title": "Sunrise", "description": "early"})
        self.assertEqual((edited.title, edited.description), ("Sunrise", "early"))
        self.assertEqual(edited.created_at, pin.created_at)
        self.assertGreater(edited.updated_at, pin.updated_at)

    def test_edit_ignores_identity_fields(self) -> None:
        pin = self.create()
        edited = self.service.update(pin.id, OWNER, {"owner_id": 2, "id": 50, "created_at": None, "title": "New"})
        self.assertEqual(edited.id, pin.id)
        self.assertEqual(edited.owner_id, OWNER.id)
        self.assertEqual(edited.title, "New")

    def test_edit_without_changes_returns_pin(self) -> None:
        pin = self.create()
        self.assertEqual(self.service.update(pin.id, OWNER, {}), pin)

    def test_edit_rejects_blank_title(self) -> None:
        pin = self.create()
        with self.assertRaises(ValidationFailed):
            self.service.update(pin.id, OWNER, {"title": " "})

    def test_only_owner_can_edit_or_delete(self) -> None:
        pin = self.create()
        with self.assertRaises(NotAuthorized):
            self.service.update(pin.id, STRANGER, {"title": "mine now"})
        with self.assertRaises(NotAuthorized):
            self.service.delete(pin.id, STRANGER)
        self.assertEqual(self.service.get(pin.id).title, "Sunset")

    def test_delete_then_query(self) -> None:
        keep = self.create("keep")
        drop = self.create("drop")
        self.service.delete(drop.id, OWNER)

        result = self.feed.query("", 1, 12)
        self.assertEqual([p.id for p in result.items], [keep.id])
        self.assertEqual(result.total, 1)
        with self.assertRaises(NotFound):
            self.service.delete(drop.id, OWNER)

    def test_mutations_publish_events(self) -> None:
        received = []
        self.events.subscribe(received.append)

        pin = self.create()
        self.service.update(pin.id, OWNER, {"title": "again"})
        self.service.delete(pin.id, OWNER)

        self.assertEqual([e.kind for e in received], [PIN_CREATED, PIN_UPDATED, PIN_DELETED])
        self.assertEqual({e.pin_id for e in received}, {pin.id})
        self.assertIsNone(received[-1].pin)
        self.assertEqual([e.seq for e in self.events.since(1)], [2, 3])

    def test_failed_mutation_publishes_nothing(self) -> None:
        pin = self.create()
        before = self.events.last_seq
        with self.assertRaises(NotAuthorized):
            self.service.delete(pin.id, STRANGER)
        self.assertEqual(self.events.last_seq, before)


class MemoryPinServiceTest(PinServiceCases, unittest.TestCase):
    def make_store(self):
        return memory_pin_store()


class SqlPinServiceTest(PinServiceCases, unittest.TestCase):
    def make_store(self):
        return sql_pin_store()


class PinEventsTest(unittest.TestCase):
    def test_backlog_is_bounded(self) -> None:
        events = PinEvents(backlog=3)
        for i in range(5):
            events.publish(PIN_CREATED, i)
        self.assertEqual([e.pin_id for e in events.since(0)], [2, 3, 4])
        self.assertEqual(events.last_seq, 5)

    def test_failing_subscriber_does_not_stop_others(self) -> None:
        events = PinEvents()
        received = []
        events.subscribe(mock.Mock(side_effect=RuntimeError("boom")))
        events.subscribe(received.append)

        with self.assertLogs("pinboard.events", level="ERROR"):
            events.publish(PIN_DELETED, 9)
        self.assertEqual([e.pin_id for e in received], [9])

    def test_unsubscribe(self) -> None:
        events = PinEvents()
        received = []
        unsubscribe = events.subscribe(received.append)
        events.publish(PIN_CREATED, 1)
        unsubscribe()
        events.publish(PIN_CREATED, 2)
        self.assertEqual([e.pin_id for e in received], [1])


if __name__ == "__main__":
    unittest.main()
