import json
from types import SimpleNamespace

import pytest
import redis
from pika.exceptions import ChannelWrongStateError

from aligned_pipeline.config import RabbitMQConfig
from aligned_pipeline.exceptions import CacheServiceError, EventPublishError
from aligned_pipeline.infrastructure import RabbitMQBroker, RedisCacheService


class FakeChannel:
    """Records the pika channel calls the broker makes."""

    def __init__(self, publish_error=None, deliveries=()):
        self.calls: list[tuple[str, dict]] = []
        self._publish_error = publish_error
        self._deliveries = list(deliveries)
        self._on_message = None

    def __getattr__(self, name):
        def record(**kwargs):
            self.calls.append((name, kwargs))

        return record

    def basic_publish(self, **kwargs):
        if self._publish_error is not None:
            raise self._publish_error
        self.calls.append(("basic_publish", kwargs))

    def basic_consume(self, queue, on_message_callback):
        self.calls.append(("basic_consume", {"queue": queue}))
        self._on_message = on_message_callback

    def start_consuming(self):
        for tag, (body, headers) in enumerate(self._deliveries, start=1):
            self._on_message(
                self, SimpleNamespace(delivery_tag=tag), SimpleNamespace(headers=headers), body
            )

    def named(self, name):
        return [kwargs for call, kwargs in self.calls if call == name]


@pytest.fixture
def config():
    return RabbitMQConfig(host="localhost", user="guest", password="guest")


class TestRabbitMQBroker:
    def test_setup_binds_outcome_keys(self, config):
        channel = FakeChannel()
        RabbitMQBroker(channel, config).setup()

        queues = config.queue_config
        bindings = {(b["queue"], b["exchange"], b["routing_key"]) for b in channel.named("queue_bind")}
        assert bindings == {
            (queues.dlq_name, queues.dlq_exchange_name, queues.dlq_routing_key),
            (queues.name, "events", "recording.capture.uploaded"),
            (queues.outcome_queue_name, "events", "recording.processing.completed"),
            (queues.outcome_queue_name, "events", "recording.processing.failed"),
        }
        [work_queue] = [q for q in channel.named("queue_declare") if q["queue"] == queues.name]
        assert work_queue["arguments"]["x-queue-type"] == "quorum"
        assert work_queue["arguments"]["x-dead-letter-exchange"] == queues.dlq_exchange_name

    def test_publish_sends_persistent_json(self, config):
        channel = FakeChannel()
        RabbitMQBroker(channel, config).publish("recording.processing.completed", {"session_id": "s-1"})

        [published] = channel.named("basic_publish")
        assert published["exchange"] == "events"
        assert json.loads(published["body"]) == {"session_id": "s-1"}
        assert published["properties"].delivery_mode == 2
        assert published["properties"].content_type == "application/json"

    def test_publish_failure_is_wrapped(self, config):
        broker = RabbitMQBroker(FakeChannel(publish_error=ChannelWrongStateError("closed")), config)

        with pytest.raises(EventPublishError) as exc_info:
            broker.publish("recording.processing.failed", {"session_id": "s-1"})

        assert exc_info.value.routing_key == "recording.processing.failed"

    def test_reject_can_dead_letter(self, config):
        channel = FakeChannel()
        broker = RabbitMQBroker(channel, config)

        broker.reject(1)
        broker.reject(2, requeue=False)

        assert channel.named("basic_nack") == [
            {"delivery_tag": 1, "requeue": True},
            {"delivery_tag": 2, "requeue": False},
        ]

    def test_consume_hands_over_body_tag_and_headers(self, config):
        channel = FakeChannel(deliveries=[(b"{}", {"x-delivery-count": 2})])
        received = []

        RabbitMQBroker(channel, config).consume(lambda *args: received.append(args))

        assert received == [(b"{}", 1, {"x-delivery-count": 2})]
        assert channel.named("basic_qos") == [{"prefetch_count": 1}]


class FakeRedis:
    def __init__(self, error=None):
        self.values: dict[str, object] = {}
        self.ttls: dict[str, int] = {}
        self._error = error

    def get(self, key):
        if self._error is not None:
            raise self._error
        return self.values.get(key)

    def set(self, key, value, ex=None):
        if self._error is not None:
            raise self._error
        self.values[key] = value
        self.ttls[key] = ex


class TestRedisCacheService:
    def test_keys_are_namespaced_with_ttl(self):
        client = FakeRedis()
        cache = RedisCacheService(client, ttl_seconds=60, key_prefix="aligned")

        cache.set("analysis:meeting:abc", "{}")

        assert client.values == {"aligned:analysis:meeting:abc": "{}"}
        assert client.ttls == {"aligned:analysis:meeting:abc": 60}
        assert cache.get("analysis:meeting:abc") == "{}"
        assert cache.get("analysis:meeting:other") is None

    def test_bytes_replies_are_decoded(self):
        client = FakeRedis()
        client.values["aligned:k"] = "névé".encode("utf-8")

        assert RedisCacheService(client, ttl_seconds=60).get("k") == "névé"

    def test_redis_errors_become_cache_errors(self):
        cache = RedisCacheService(FakeRedis(error=redis.ConnectionError("refused")), ttl_seconds=60)

        with pytest.raises(CacheServiceError) as exc_info:
            cache.get("k")
        assert exc_info.value.operation == "get"

        with pytest.raises(CacheServiceError):
            cache.set("k", "v")
