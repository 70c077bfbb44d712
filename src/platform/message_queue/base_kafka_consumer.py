from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from threading import Event
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, Message, Producer, TopicPartition
from opentelemetry import trace
import orjson


if TYPE_CHECKING:
    from anyio.from_thread import BlockingPortal

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import CustomBaseError, LedgerTransientError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.settlement_metrics import metrics
from src.platform.observability.tracing import extract_trace_context


MessageHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class BaseKafkaConsumer(ABC):
    # === Tuning Parameters (subclasses can override) ===
    #
    # POLL_TIMEOUT_SECONDS: Max time poll() waits for messages
    #   - Too long → high latency; Too short → CPU spin
    #
    # COMMIT_INTERVAL_SECONDS / MAX_PENDING_COMMITS: batch offset commits
    #   - Whichever comes first triggers a commit
    #
    # MAX_WORKERS: ThreadPool concurrent worker count
    #
    # TRANSIENT_RETRY_ATTEMPTS / TRANSIENT_RETRY_DELAY_SECONDS:
    #   - In-place retries when the ledger is temporarily unavailable,
    #     after which the message goes to the DLQ for replay
    #
    POLL_TIMEOUT_SECONDS: float = 0.05
    COMMIT_INTERVAL_SECONDS: float = 0.1
    MAX_WORKERS: int = 4
    MAX_PENDING_COMMITS: int = 100
    TRANSIENT_RETRY_ATTEMPTS: int = 3
    TRANSIENT_RETRY_DELAY_SECONDS: float = 1.0

    # Payload fields tried in order for the DLQ message key and span attribute
    KEY_FIELDS: tuple[str, ...] = ('id',)

    def __init__(
        self,
        *,
        service_name: str,
        consumer_group_id: str,
        dlq_topic: str,
    ) -> None:
        self.service_name = service_name
        self.consumer_group_id = consumer_group_id
        self.dlq_topic = dlq_topic
        self.instance_id = settings.KAFKA_CONSUMER_INSTANCE_ID

        # Kafka clients
        self.consumer: Optional[Consumer] = None
        self.producer: Optional[Producer] = None  # For sending to DLQ
        self.executor: Optional[ThreadPoolExecutor] = None
        self.portal: Optional['BlockingPortal'] = None  # anyio cross-thread bridge
        self.tracer = trace.get_tracer(__name__)

        # Running state control
        self.running = False
        self.stop_event = Event()
        # { topic_name: { partition_id: next_offset_to_commit } }
        self._pending_offsets: Dict[str, Dict[int, int]] = {}
        self._pending_count = 0
        self._last_commit_time = time.monotonic()
        self._in_flight_futures: List[Future] = []

    def set_portal(self, portal: 'BlockingPortal') -> None:
        self.portal = portal

    @abstractmethod
    def _get_topic_handlers(self) -> Dict[str, MessageHandler]:
        """
        Return topic name to async handler mapping.

        Example:
            return {
                KafkaTopicBuilder.order_paid(): self._handle_order_paid,
            }
        """
        pass

    @abstractmethod
    def _initialize_dependencies(self) -> None:
        """Initialize use cases and dependencies before consumer starts."""
        pass

    def _create_consumer(self) -> Consumer:
        return Consumer(
            {
                'bootstrap.servers': settings.KAFKA_BOOTSTRAP_SERVERS,
                'group.id': self.consumer_group_id,
                'client.id': self.instance_id,
                'auto.offset.reset': settings.KAFKA_CONSUMER_AUTO_OFFSET_RESET,
                'enable.auto.commit': False,  # Manual commit for precise control
                'fetch.wait.max.ms': 50,
                'fetch.min.bytes': 1,
                'session.timeout.ms': 45000,
                'heartbeat.interval.ms': 15000,
                'reconnect.backoff.ms': 1000,
                'reconnect.backoff.max.ms': 30000,
            }
        )

    def _create_producer(self) -> Producer:
        return Producer(
            {
                'bootstrap.servers': settings.KAFKA_BOOTSTRAP_SERVERS,
                'acks': 'all',
                'retries': 3,
            }
        )

    def _message_key(self, data: Dict[str, Any]) -> str:
        for field in self.KEY_FIELDS:
            if data.get(field):
                return str(data[field])
        return 'unknown'

    @staticmethod
    def _deserialize(msg: Message) -> Dict[str, Any]:
        data = orjson.loads(msg.value() or b'')
        if not isinstance(data, dict):
            raise ValueError('Message payload must be a JSON object')
        return data

    def _send_to_dlq(
        self,
        *,
        message: Dict[str, Any],
        original_topic: str,
        error: str,
        retry_count: int = 0,
    ) -> None:
        if not self.producer:
            Logger.base.error('DLQ producer not initialized')
            return

        key = self._message_key(message)
        dlq_message = {
            'original_message': message,
            'original_topic': original_topic,
            'error': error,
            'retry_count': retry_count,
            'timestamp': time.time(),
            'instance_id': self.instance_id,
        }
        try:
            self.producer.produce(
                topic=self.dlq_topic,
                key=key.encode('utf-8'),
                value=orjson.dumps(dlq_message, default=str),
            )
            self.producer.poll(0)
            Logger.base.warning(f'📮 [DLQ] Sent {key} from {original_topic}: {error}')
        except (KafkaException, BufferError) as e:
            Logger.base.error(f'❌ [DLQ] Failed to send {key}: {e}')

    def _track_offset(self, msg: Message) -> None:
        """Kafka commits the NEXT offset to read: processed offset=5 → commit offset=6"""
        topic, partition = msg.topic(), msg.partition()
        offset = msg.offset() + 1

        partitions = self._pending_offsets.setdefault(topic, {})
        if offset > partitions.get(partition, -1):
            partitions[partition] = offset
            self._pending_count += 1

    def _maybe_commit_offsets(self, *, force: bool = False) -> None:
        now = time.monotonic()
        should_commit = (
            force
            or self._pending_count >= self.MAX_PENDING_COMMITS
            or now - self._last_commit_time >= self.COMMIT_INTERVAL_SECONDS
        )
        if not should_commit or not self._pending_offsets:
            return

        offsets_to_commit = [
            TopicPartition(topic, partition, offset)
            for topic, partitions in self._pending_offsets.items()
            for partition, offset in partitions.items()
        ]
        try:
            if offsets_to_commit and self.consumer:
                self.consumer.commit(offsets=offsets_to_commit, asynchronous=False)
                Logger.base.debug(f'[{self.service_name}] Committed {self._pending_count} offsets')
        except KafkaException as e:
            Logger.base.error(f'[{self.service_name}] Commit failed: {e}')
            return

        self._pending_offsets.clear()
        self._pending_count = 0
        self._last_commit_time = now

    def _run_handler(self, handler: MessageHandler, data: Dict[str, Any]) -> None:
        """Call the async handler on the portal loop, retrying transient ledger errors in place"""
        assert self.portal is not None, 'BlockingPortal not set'
        attempt = 1
        while True:
            try:
                self.portal.call(handler, data)
                return
            except LedgerTransientError:
                if attempt >= self.TRANSIENT_RETRY_ATTEMPTS or self.stop_event.is_set():
                    raise
                time.sleep(self.TRANSIENT_RETRY_DELAY_SECONDS * attempt)
                attempt += 1

    def _process_message(self, msg: Message, handler: MessageHandler, topic: str) -> None:
        """
        Runs in the ThreadPool.

        Flow: deserialize → extract trace → call handler → track offset
        - Business rejection (CustomBaseError): logged, offset committed
        - Anything else, or a ledger that stays unavailable: DLQ, offset committed
        """
        started = time.monotonic()
        data: Dict[str, Any] = {}
        result = 'ok'
        try:
            ts = msg.timestamp()
            if ts and ts[0] == 1:  # CreateTime
                age_ms = int(datetime.now(timezone.utc).timestamp() * 1000) - ts[1]
                if age_ms > 1000:
                    Logger.base.warning(f'[SLOW] {topic} p={msg.partition()} age={age_ms}ms')

            data = self._deserialize(msg)
            extract_trace_context(
                headers={
                    'traceparent': data.get('traceparent', ''),
                    'tracestate': data.get('tracestate', ''),
                }
            )

            with self.tracer.start_as_current_span(
                f'consumer.{topic}',
                attributes={
                    'messaging.system': 'kafka',
                    'messaging.destination': topic,
                    'message.key': self._message_key(data),
                },
            ):
                self._run_handler(handler, data)

        except LedgerTransientError as e:
            result = 'dlq'
            self._send_to_dlq(
                message=data,
                original_topic=topic,
                error=e.message,
                retry_count=self.TRANSIENT_RETRY_ATTEMPTS,
            )
        except CustomBaseError as e:
            result = 'rejected'
            Logger.base.warning(f'⚠️ [{self.service_name}] Rejected {topic}: {e.message}')
        except Exception as e:
            result = 'dlq'
            Logger.base.exception(f'❌ [{self.service_name}] Error on {topic}: {e}')
            if not data:
                data = {'raw': msg.value().hex() if msg.value() else 'empty'}
            self._send_to_dlq(message=data, original_topic=topic, error=str(e))
        finally:
            self._track_offset(msg)
            metrics.record_kafka_message(
                service=self.service_name,
                topic=topic,
                result=result,
                duration=time.monotonic() - started,
            )

    def start(self) -> None:
        """Start consumer with retry while topics are being created."""
        max_retries, delay = 5, 2

        for attempt in range(1, max_retries + 1):
            try:
                self._initialize_dependencies()
                self.consumer = self._create_consumer()
                self.producer = self._create_producer()

                handlers = self._get_topic_handlers()
                self.consumer.subscribe(list(handlers.keys()))

                Logger.base.info(
                    f'[{self.service_name}-{self.instance_id}] Started | '
                    f'group={self.consumer_group_id} topics={len(handlers)} workers={self.MAX_WORKERS}'
                )

                self.executor = ThreadPoolExecutor(
                    max_workers=self.MAX_WORKERS,
                    thread_name_prefix=f'{self.service_name}-worker',
                )

                self.running = True
                self._run_loop(handlers)
                break

            except KafkaException as e:
                if 'UNKNOWN_TOPIC_OR_PART' in str(e) and attempt < max_retries:
                    Logger.base.warning(
                        f'[{self.service_name}] {attempt}/{max_retries}: Topic not ready, retry in {delay}s'
                    )
                    time.sleep(delay)
                    delay *= 2
                else:
                    Logger.base.error(f'[{self.service_name}] Start failed: {e}')
                    raise

    def _run_loop(self, handlers: Dict[str, MessageHandler]) -> None:
        """
        1. poll() fetches next message (max POLL_TIMEOUT_SECONDS)
        2. No message → maybe commit, prune finished futures
        3. Has message → submit to ThreadPool
        """
        assert self.consumer is not None and self.executor is not None
        while self.running and not self.stop_event.is_set():
            try:
                msg = self.consumer.poll(timeout=self.POLL_TIMEOUT_SECONDS)

                if msg is None:
                    self._maybe_commit_offsets()
                    self._in_flight_futures = [f for f in self._in_flight_futures if not f.done()]
                    continue

                if msg.error():
                    if msg.error().code() != KafkaError._PARTITION_EOF:
                        Logger.base.error(f'[{self.service_name}] Kafka error: {msg.error()}')
                    continue

                topic = msg.topic()
                handler = handlers.get(topic)
                if handler is None:
                    continue

                self._in_flight_futures.append(
                    self.executor.submit(self._process_message, msg, handler, topic)
                )
                self._maybe_commit_offsets()

            except KafkaException as e:
                Logger.base.error(f'[{self.service_name}] Loop error: {e}')
                time.sleep(0.1)

    def stop(self) -> None:
        """
        Graceful shutdown: stop polling, drain in-flight messages, final commit,
        close the consumer (triggers rebalance) and flush the DLQ producer.
        """
        if not self.running:
            return

        Logger.base.info(f'[{self.service_name}] Stopping...')
        self.running = False
        self.stop_event.set()

        for future in self._in_flight_futures:
            try:
                future.result(timeout=5.0)
            except Exception as e:
                Logger.base.warning(f'[{self.service_name}] Future error: {e}')

        self._maybe_commit_offsets(force=True)

        if self.executor:
            self.executor.shutdown(wait=True, cancel_futures=False)

        if self.consumer:
            try:
                self.consumer.close()
            except KafkaException as e:
                Logger.base.warning(f'[{self.service_name}] Close error: {e}')

        if self.producer:
            self.producer.flush(timeout=5.0)

        Logger.base.info(f'[{self.service_name}] Stopped')
