import os
from dotenv import load_dotenv

# --- 1. CONFIGURATION & SETUP ---

# Load Environment Variables
ENV_PATH = ".env"
load_dotenv(ENV_PATH)

# Watchlist Config
LIST_SIZE = int(os.getenv("WATCHLIST_SIZE", "5"))
WATCHLIST_FREQ = float(os.getenv("WATCHLIST_FREQ", "300"))        # 5 mn
BOT_FREQ = float(os.getenv("BOT_FREQ", "1.0"))                    # 1 s
ACCESS_KEY_FREQ = float(os.getenv("ACCESS_KEY_FREQ", "600"))      # 10 mn

# RPC lags behind right after a liquidation. Refreshing too early re-admits
# accounts that were just liquidated.
POST_LIQUIDATION_DELAY = float(os.getenv("POST_LIQUIDATION_DELAY", "10"))

# Fan-out limits for ratio reads
RATIO_READ_TIMEOUT = float(os.getenv("RATIO_READ_TIMEOUT", "5"))
RATIO_FANOUT_LIMIT = int(os.getenv("RATIO_FANOUT_LIMIT", "32"))

# Liquidation TX
LIQUIDATION_GAS = 300_000_000_000_000   # 300 Tgas
LIQUIDATION_DEPOSIT = 0                 # yoctoNEAR
BROADCAST_QUEUE_SIZE = int(os.getenv("BROADCAST_QUEUE_SIZE", "64"))

STATUS_LOG_PATH = os.getenv("STATUS_LOG_PATH", "status-logs.json")
CREDENTIALS_PATH = os.getenv("NEAR_CREDENTIALS_PATH", "./credentials")

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")


class NetworkConfigError(Exception):
    """Raised when NEAR_ENV names a network we have no settings for."""


def get_config(env):
    """Returns connection settings for a NEAR network name."""
    if env in ("production", "mainnet"):
        return {
            "networkId": "mainnet",
            "nodeUrl": os.getenv("NEAR_NODE_URL_MAINNET", "https://rpc.mainnet.near.org"),
            "contractNames": {
                "oin": os.getenv("OIN_CONTRACT", "v3.oin_finance.near"),
            },
            "walletUrl": "https://wallet.near.org",
            "helperUrl": "https://helper.mainnet.near.org",
            "explorerUrl": "https://explorer.mainnet.near.org",
            "accountId": os.getenv("NEAR_ACCOUNT_MAINNET"),
        }
    if env in ("development", "testnet"):
        return {
            "networkId": "testnet",
            "nodeUrl": os.getenv("NEAR_NODE_URL_TESTNET", "https://rpc.testnet.near.org"),
            "contractNames": {
                "oin": os.getenv("OIN_CONTRACT", ""),
            },
            "walletUrl": "https://wallet.testnet.near.org",
            "helperUrl": "https://helper.testnet.near.org",
            "explorerUrl": "https://explorer.testnet.near.org",
            "accountId": os.getenv("NEAR_ACCOUNT_TESTNET"),
        }
    if env == "local":
        return {
            "networkId": "local",
            "nodeUrl": os.getenv("NEAR_NODE_URL_LOCAL", "http://localhost:3030"),
            "keyPath": os.path.join(os.path.expanduser("~"), ".near", "validator_key.json"),
            "walletUrl": "http://localhost:4000/wallet",
            "contractNames": {
                "oin": os.getenv("OIN_CONTRACT", ""),
            },
            "accountId": os.getenv("NEAR_ACCOUNT_LOCAL"),
        }
    if env in ("test", "ci"):
        return {
            "networkId": "shared-test",
            "nodeUrl": os.getenv("NEAR_NODE_URL_CI_TESTNET", "https://rpc.ci-testnet.near.org"),
            "contractNames": {
                "oin": os.getenv("OIN_CONTRACT", ""),
            },
            "masterAccount": "test.near",
            "accountId": os.getenv("NEAR_ACCOUNT_CI"),
        }
    raise NetworkConfigError(f"Unconfigured environment '{env}'. Can be configured in near_config.py.")


def get_rpc_endpoints(config):
    """Primary node URL first, then FALLBACK_RPCS in the order given."""
    fallback_raw = os.getenv("FALLBACK_RPCS", "").replace('"', '').replace("'", "")
    endpoints = [config["nodeUrl"]]
    for url in fallback_raw.split(","):
        url = url.strip()
        if url and url not in endpoints:
            endpoints.append(url)
    return endpoints


def validate_config(config):
    """Returns a list of problems that must stop the bot from starting."""
    problems = []
    if not config.get("accountId"):
        problems.append(f"Missing agent account for network '{config['networkId']}' in .env")
    if not config.get("contractNames", {}).get("oin"):
        problems.append(f"Missing OIN contract for network '{config['networkId']}' (set OIN_CONTRACT)")
    return problems
