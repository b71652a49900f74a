import pytest

from app.models.subscription import PushSubscription
from app.services.targets import (
    MalformedEndpoint,
    NativeEndpoint,
    PushTargetStore,
    WebPushEndpoint,
    native_endpoint,
    parse_endpoint,
)

WEB = "https://fcm.googleapis.com/fcm/send/abc123"


class TestParseEndpoint:

    def test_native_ios(self):
        assert parse_endpoint("native://ios/a1b2c3") == NativeEndpoint("ios", "a1b2c3")

    def test_native_round_trips_through_storage_format(self):
        assert parse_endpoint(native_endpoint("android", "tok")) == NativeEndpoint("android", "tok")

    def test_android_accepts_fcm_token_alphabet(self):
        token = "dQw4w9:APA91b-Hx_7"
        assert parse_endpoint(native_endpoint("android", token)) == NativeEndpoint("android", token)

    def test_ios_token_must_be_hex(self):
        assert isinstance(parse_endpoint("native://ios/fcmtoken"), MalformedEndpoint)

    @pytest.mark.parametrize("raw", [
        "native://ios/",
        "native://ios",
        "native:///abc",
        "native://ios/a/b",
        "native://iOS/abc",
        "native://ios/victim?x=1",
        "native://ios/abc#frag",
        "native://ios/a1 b2",
        "native://ios/0e05%2F",
        "native://android/fcm?x=1",
    ])
    def test_bad_native_shape_is_malformed(self, raw):
        assert isinstance(parse_endpoint(raw), MalformedEndpoint)

    def test_web_with_keys(self):
        assert parse_endpoint(WEB, "p", "a") == WebPushEndpoint(WEB, "p", "a")

    def test_web_without_keys_is_malformed(self):
        assert isinstance(parse_endpoint(WEB, "", "a"), MalformedEndpoint)

    @pytest.mark.parametrize("raw", ["", None, "ftp://host/x", "garbage"])
    def test_unknown_endpoint_is_malformed(self, raw):
        assert isinstance(parse_endpoint(raw), MalformedEndpoint)


class TestListTargets:

    @pytest.fixture
    def seeded(self, add_subscription):
        return {
            "news": add_subscription("native://ios/0e05", topics=["news"]),
            "launches": add_subscription("native://ios/1a0c4e5", topics=["launches"]),
            "all": add_subscription(WEB, topics=[]),
        }

    def test_topic_filter_excludes_other_topics(self, db, seeded):
        ids = {t.id for t in PushTargetStore(db).list_targets("launches")}
        assert ids == {seeded["launches"], seeded["all"]}

    def test_matching_topic_is_included(self, db, seeded):
        ids = {t.id for t in PushTargetStore(db).list_targets("news")}
        assert seeded["news"] in ids

    def test_no_filter_returns_everything(self, db, seeded):
        assert len(PushTargetStore(db).list_targets()) == 3

    def test_targets_are_parsed_at_the_boundary(self, db, add_subscription):
        add_subscription("native://ios/abc", user_id="u1")
        (target,) = PushTargetStore(db).list_targets()
        assert target.endpoint == NativeEndpoint("ios", "abc")
        assert target.owner_id == "u1"


class TestStoreWrites:

    def test_delete_targets(self, db, add_subscription):
        keep = add_subscription("native://ios/cee9")
        gone = add_subscription("native://ios/90e")
        assert PushTargetStore(db).delete_targets([gone]) == 1
        assert [s.id for s in db.query(PushSubscription).all()] == [keep]

    def test_delete_nothing_is_noop(self, db):
        assert PushTargetStore(db).delete_targets([]) == 0

    def test_save_upserts_by_endpoint(self, db):
        store = PushTargetStore(db)
        first = store.save_subscription("u1", WEB, ["news"], p256dh="p1", auth="a1")
        second = store.save_subscription("u2", WEB, ["launches"], p256dh="p2", auth="a2")

        assert first.id == second.id
        row = db.query(PushSubscription).one()
        assert (row.user_id, row.p256dh, row.topics) == ("u2", "p2", ["launches"])

    def test_remove_only_own_subscription(self, db, add_subscription):
        add_subscription(WEB, user_id="owner")
        store = PushTargetStore(db)
        assert store.remove_subscription("intruder", WEB) is False
        assert store.remove_subscription("owner", WEB) is True
        assert db.query(PushSubscription).count() == 0

    def test_topic_stats(self, db, add_subscription):
        add_subscription("native://ios/1", topics=["launches", "news"])
        add_subscription("native://ios/2", topics=["news"])
        add_subscription("native://ios/3", topics=[])
        stats = PushTargetStore(db).topic_stats()
        assert stats == {"total_subscriptions": 3, "topic_counts": {"launches": 1, "news": 2}}
