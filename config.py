import os

# Preferred (usually keyed) RPC endpoint, tried ahead of the public ones
ETHERSCAN_RPC_URL = os.environ.get("ETHERSCAN_RPC_URL")

# Public Ethereum mainnet endpoints, in fallback order
PUBLIC_RPC_URLS = [
    "https://ethereum-rpc.publicnode.com",
    "https://cloudflare-eth.com",
    "https://eth.meowrpc.com",
    "https://eth.llamarpc.com",
    "https://1rpc.io/eth",
]

# How many endpoints must agree before an answer is trusted
RPC_QUORUM = int(os.environ.get("RPC_QUORUM", "1"))

# Per-endpoint request timeout (seconds)
RPC_TIMEOUT_SECONDS = float(os.environ.get("RPC_TIMEOUT_SECONDS", "5"))

# How long to wait on an endpoint before also dialling the next one (seconds)
RPC_STALL_TIMEOUT_SECONDS = float(os.environ.get("RPC_STALL_TIMEOUT_SECONDS", "0.75"))

# Heights this many blocks apart still count as the same answer
RPC_BLOCK_LAG_TOLERANCE = 2

# Simulated DEX pairs to monitor: (name, pool address, reference symbol)
ARBITRAGE_PAIRS = [
    ("WETH/USDT (Uniswap)", "0x2A1530C4...4c13", "ETH/USDT"),
    ("WETH/USDC (Sushiswap)", "0x397FF154...B4f8", "ETH/USDC"),
    ("DAI/ETH (Balancer)", "0xBA122222...7aA5", "DAI/ETH"),
]

# Base prices used by the simulated price source
BASE_PRICES = {
    "ETH/USDT": "3450.00",
    "ETH/USDC": "3450.00",
    "DAI/ETH": "0.00029",
}

# "simulated" or "binance" for the reference leg
PRICE_SOURCE = os.environ.get("PRICE_SOURCE", "simulated").lower()

# A pool/reference gap above this ratio is an opportunity (0.15%)
ARBITRAGE_THRESHOLD = 0.0015

# How often the monitor polls the chain (seconds)
POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "2"))

API_PORT = int(os.environ.get("ARBITRAGE_PORT", "8082"))

USE_KAFKA = os.environ.get("USE_KAFKA", "false").lower() == "true"

KAFKA_BROKER = os.environ.get("KAFKA_BROKER", "localhost:9092")

TOPICS = {
    "alerts": "arbitrage-alerts",
}

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Where the dashboard finds the status API
STATUS_API_URL = os.environ.get("STATUS_API_URL", f"http://localhost:{API_PORT}")
