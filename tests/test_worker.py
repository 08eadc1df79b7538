import json

import pytest

from aligned_pipeline.config import RabbitMQConfig
from aligned_pipeline.domain.models import SessionStatus
from aligned_pipeline.exceptions import EventPublishError, ProviderError
from aligned_pipeline.handlers import RecordingMessageHandler
from aligned_pipeline.infrastructure.interfaces import MessageBroker
from aligned_pipeline.worker import Worker

from conftest import FakeStorage, ScriptedTranscriber


class FakeBroker(MessageBroker):
    def __init__(self, deliveries=()):
        self.deliveries = list(deliveries)
        self.published: list[tuple[str, dict]] = []
        self.acknowledged: list[int] = []
        self.rejected: list[int] = []
        self.dead_lettered: list[int] = []
        self.publish_error: Exception | None = None

    def publish(self, routing_key, payload):
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((routing_key, payload))

    def acknowledge(self, delivery_tag):
        self.acknowledged.append(delivery_tag)

    def reject(self, delivery_tag, requeue=True):
        self.rejected.append(delivery_tag)
        if not requeue:
            self.dead_lettered.append(delivery_tag)

    def consume(self, callback):
        for tag, (body, headers) in enumerate(self.deliveries, start=1):
            callback(body, tag, headers)

    def setup(self):
        pass


def message(**overrides):
    body = {
        "owner_id": "owner-1",
        "object_name": "uploads/standup.webm",
        "bucket_name": "recordings",
        "title": "Standup",
    }
    body.update(overrides)
    return json.dumps(body).encode()


@pytest.fixture
def rabbitmq_config():
    return RabbitMQConfig(host="localhost", user="guest", password="guest")


@pytest.fixture
def storage():
    storage = FakeStorage()
    storage.upload("recordings", "uploads/standup.webm", b"webm bytes", "audio/webm")
    return storage


def run_worker(deliveries, controller, storage, config, broker=None):
    broker = broker or FakeBroker(deliveries)
    Worker(broker, RecordingMessageHandler(storage, controller), config).start()
    return broker


def test_completed_session_is_acknowledged_and_announced(build_controller, storage, store, rabbitmq_config):
    transcriber = ScriptedTranscriber(default="good morning team")
    broker = run_worker([(message(), None)], build_controller(transcriber), storage, rabbitmq_config)

    assert broker.acknowledged == [1]
    assert broker.rejected == []
    [(routing_key, payload)] = broker.published
    assert routing_key == rabbitmq_config.queue_config.success_routing_key
    assert payload["status"] == "completed"
    assert payload["owner_id"] == "owner-1"
    assert store.get(payload["session_id"], "owner-1").title == "Standup"
    assert transcriber.calls == [b"webm bytes"]


def test_failed_session_is_acknowledged_on_failure_key(build_controller, storage, rabbitmq_config):
    transcriber = ScriptedTranscriber(default=ProviderError("sarvam", "bad audio", status_code=400))
    broker = run_worker(
        [(message(), {"x-delivery-count": 2})], build_controller(transcriber), storage, rabbitmq_config
    )

    assert broker.acknowledged == [1]
    [(routing_key, payload)] = broker.published
    assert routing_key == rabbitmq_config.queue_config.failure_routing_key
    assert payload["status"] == SessionStatus.ERROR.value
    assert payload["error_message"].startswith("Transcription failed")


def test_invalid_message_is_rejected(build_controller, storage, rabbitmq_config):
    deliveries = [(b"not json", None), (json.dumps({"owner_id": "x"}).encode(), None)]
    broker = run_worker(deliveries, build_controller(ScriptedTranscriber()), storage, rabbitmq_config)

    assert broker.rejected == [1, 2]
    assert broker.dead_lettered == [1, 2]
    assert broker.acknowledged == []
    assert broker.published == []


def test_missing_capture_is_rejected(build_controller, storage, rabbitmq_config):
    broker = run_worker(
        [(message(object_name="uploads/missing.webm"), None), (message(), None)],
        build_controller(ScriptedTranscriber(default="still works")),
        storage,
        rabbitmq_config,
    )

    assert broker.rejected == [1]
    assert broker.dead_lettered == []
    assert broker.acknowledged == [2]


def test_message_can_target_existing_session(build_controller, storage, store, rabbitmq_config):
    broker = run_worker(
        [(message(session_id="upstream-id"), None)],
        build_controller(ScriptedTranscriber(default="words")),
        storage,
        rabbitmq_config,
    )

    [(_, payload)] = broker.published
    assert payload["session_id"] == "upstream-id"
    assert store.get("upstream-id", "owner-1").status == SessionStatus.COMPLETED


def test_publish_failure_does_not_stop_consumption(build_controller, storage, store, rabbitmq_config):
    broker = FakeBroker([(message(), None), (message(title="Second"), None)])
    broker.publish_error = EventPublishError("recording.processing.completed", ConnectionResetError())

    run_worker([], build_controller(ScriptedTranscriber(default="words")), storage, rabbitmq_config, broker)

    assert broker.acknowledged == [1, 2]
    assert broker.rejected == []
    assert sorted(s.title for s in store.fetch_all("owner-1")) == ["Second", "Standup"]
