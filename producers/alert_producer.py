import logging

from kafka import KafkaProducer

from config import KAFKA_BROKER, TOPICS
from models.arbitrage import Opportunity

logger = logging.getLogger(__name__)


class AlertProducer:
    """Publishes detected opportunities to the arbitrage-alerts Kafka topic."""

    def __init__(self, broker: str = KAFKA_BROKER, topic: str = TOPICS["alerts"]):
        self.topic = topic
        self.producer = KafkaProducer(
            bootstrap_servers=broker,
            value_serializer=lambda v: v.encode("utf-8"),
        )

    def publish(self, opportunity: Opportunity, key: str):
        """Send one opportunity, keyed by pair name so a pair stays on one partition."""
        self.producer.send(
            self.topic,
            key=key.encode("utf-8"),
            value=opportunity.to_json(),
        )
        self.producer.flush()
        logger.info(f"[AlertProducer] Published to {self.topic}: {opportunity.details}")

    def close(self):
        self.producer.close()
