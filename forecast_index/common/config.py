import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel
from forecast_index.common.errors import ConfigError
from forecast_index.common.schema import DateRange

load_dotenv()

# Used when config/questions.yaml is missing (e.g. a non-editable install)
DEFAULT_QUESTIONS: Dict[str, Any] = {
    "questions": {
        "weak_agi": {
            "title": "Date Weakly General AI is Publicly Known",
            "metaculus_id": 3479,
            "date_range": {"start": "2020-03-26", "end": "2200-01-03"},
        },
        "full_agi": {
            "title": "Date of Artificial General Intelligence",
            "metaculus_id": 5121,
            "date_range": {"start": "2020-08-25", "end": "2199-12-25"},
        },
    },
    "index": {"components": ["weak_agi", "full_agi"]},
}


class QuestionConfig(BaseModel):
    key: str
    title: str
    metaculus_id: int
    date_range: DateRange


def load_question_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the question registry from YAML, falling back to the built-in defaults."""
    if path is not None and path.exists():
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = DEFAULT_QUESTIONS
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    questions = {}
    for key, entry in (raw.get("questions") or {}).items():
        try:
            date_range = entry["date_range"]
            questions[key] = QuestionConfig(
                key=key,
                title=entry.get("title", key),
                metaculus_id=int(entry["metaculus_id"]),
                date_range=DateRange.from_iso(str(date_range["start"]), str(date_range["end"])),
            )
        except KeyError as e:
            raise ConfigError(f"question '{key}' is missing {e}") from e
        except (TypeError, ValueError, AttributeError) as e:
            # pydantic's ValidationError is a ValueError
            raise ConfigError(f"question '{key}' is invalid: {e}") from e

    components = list((raw.get("index") or {}).get("components") or questions.keys())
    unknown = [c for c in components if c not in questions]
    if unknown:
        raise ConfigError(f"Index components not defined under 'questions': {unknown}")

    return {"questions": questions, "index_components": components}


class Config:
    def __init__(self):
        self.repo_root = Path(__file__).parent.parent.parent

        # API URLs
        self.kalshi_base_url = os.getenv("KALSHI_BASE_URL", "https://api.elections.kalshi.com/trade-api/v2")
        self.metaculus_base_url = os.getenv("METACULUS_BASE_URL", "https://www.metaculus.com")
        self.manifold_base_url = os.getenv("MANIFOLD_BASE_URL", "https://api.manifold.markets")
        self.polymarket_clob_url = os.getenv("POLYMARKET_CLOB_URL", "https://clob.polymarket.com")
        self.polymarket_gamma_url = os.getenv("POLYMARKET_GAMMA_URL", "https://gamma-api.polymarket.com")

        # Secrets
        self.kalshi_api_key_id = os.getenv("KALSHI_API_KEY_ID")
        self.kalshi_private_key_path = os.getenv("KALSHI_PRIVATE_KEY_PATH")
        self.kalshi_private_key = None
        if self.kalshi_private_key_path:
            key_path = Path(self.kalshi_private_key_path)
            if not key_path.is_absolute():
                key_path = self.repo_root / key_path
            if key_path.exists():
                self.kalshi_private_key = key_path.read_text()

        self.metaculus_token = os.getenv("METACULUS_TOKEN")

        # Defaults
        self.kalshi_candle_interval = 60  # minutes
        self.request_timeout = 30  # seconds
        self.resolution_ms = 24 * 60 * 60 * 1000  # one day

        questions_path = os.getenv("FORECAST_INDEX_QUESTIONS")
        self.questions_path = Path(questions_path) if questions_path else self.repo_root / "config" / "questions.yaml"
        registry = load_question_config(self.questions_path)
        self.questions: Dict[str, QuestionConfig] = registry["questions"]
        self.index_components: List[str] = registry["index_components"]

config = Config()
