import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Force-load .env (Windows-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

DEFAULT_API_URL = "https://api.na.bambora.com"
DEFAULT_CHECKOUT_URL = "https://web.na.bambora.com/scripts/payment/payment.asp"


class MerchantCredentials(BaseModel):
    """Credentials of one Bambora merchant account.

    Bambora issues separate passcodes for the Payments API and the Payment
    Profiles API; `api_key_for` picks the one matching an operation.
    """

    model_config = ConfigDict(frozen=True)

    merchant_id: str
    payments_api_key: str = ""
    profiles_api_key: str = ""
    hash_key: str = ""

    def api_key_for(self, category: str) -> str:
        if category == "payments":
            return self.payments_api_key
        if category == "profiles":
            return self.profiles_api_key
        raise ValueError(f"Unknown API category: {category}")


def load_credentials() -> MerchantCredentials:
    return MerchantCredentials(
        merchant_id=os.getenv("BAMBORA_MERCHANT_ID", ""),
        payments_api_key=os.getenv("BAMBORA_PAYMENTS_API_KEY", ""),
        profiles_api_key=os.getenv("BAMBORA_PROFILES_API_KEY", ""),
        hash_key=os.getenv("BAMBORA_HASH_KEY", ""),
    )


def api_url() -> str:
    return os.getenv("BAMBORA_API_URL", DEFAULT_API_URL)


def checkout_url() -> str:
    return os.getenv("BAMBORA_CHECKOUT_URL", DEFAULT_CHECKOUT_URL)


def api_timeout() -> float:
    return float(os.getenv("BAMBORA_TIMEOUT", "30"))
