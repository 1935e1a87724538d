import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

BASE_MAINNET_CHAIN_ID = 8453


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./timeguesser.db"
    # Never printed: keep it out of repr()
    validator_private_key: Optional[str] = field(default=None, repr=False)
    score_contract_address: Optional[str] = None
    rpc_url: str = "https://mainnet.base.org"
    chain_id: int = BASE_MAINNET_CHAIN_ID
    receipt_max_attempts: int = 5
    receipt_base_delay: float = 2.0
    trust_unconfirmed_receipts: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            validator_private_key=os.getenv("VALIDATOR_PRIVATE_KEY") or None,
            score_contract_address=os.getenv("SCORE_CONTRACT_ADDRESS") or None,
            rpc_url=os.getenv("BASE_RPC_URL") or cls.rpc_url,
            chain_id=int(os.getenv("CHAIN_ID", str(BASE_MAINNET_CHAIN_ID))),
            receipt_max_attempts=int(os.getenv("RECEIPT_MAX_ATTEMPTS", "5")),
            receipt_base_delay=float(os.getenv("RECEIPT_BASE_DELAY_SEC", "2.0")),
            trust_unconfirmed_receipts=_env_bool("TRUST_UNCONFIRMED_RECEIPTS", True),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
