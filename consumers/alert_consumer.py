import json
import logging

from kafka import KafkaConsumer
from config import KAFKA_BROKER, TOPICS

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 58


class AlertConsumer:
    """
    Reads Opportunity messages from the arbitrage-alerts topic
    and prints them to the console.

    Run alongside the engine with:
        python -m consumers.alert_consumer
    """

    def __init__(self, broker: str = KAFKA_BROKER, topic: str = TOPICS["alerts"]):
        self.consumer = KafkaConsumer(
            topic,
            bootstrap_servers=broker,
            group_id="alert-notifier",
            value_deserializer=lambda v: v.decode("utf-8"),
            auto_offset_reset="latest",
        )

    def run(self):
        logger.info("[AlertConsumer] Started. Waiting for arbitrage opportunities...")
        for message in self.consumer:
            try:
                alert = json.loads(message.value)
                self._notify(alert)
            except (ValueError, KeyError) as e:
                logger.error(f"[AlertConsumer] Skipping bad message: {e}")

    def _notify(self, alert: dict):
        print(f"\n{SEPARATOR}")
        print("  *** ARBITRAGE OPPORTUNITY DETECTED ***")
        print(SEPARATOR)
        print(f"  Block    : {alert['block_number']}")
        print(f"  Details  : {alert['details']}")
        print(f"  Seen at  : {alert['timestamp']}")
        print(f"{SEPARATOR}\n")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )
    AlertConsumer().run()
