"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Literal, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_RULES: dict[str, list[str]] = {
    "Office Supplies": ["staples", "office depot", "amazon", "supplies"],
    "Travel": ["airline", "hotel", "uber", "lyft", "rental", "airbnb"],
    "Meals & Entertainment": ["restaurant", "cafe", "starbucks", "food", "dining"],
    "Vehicle": ["gas", "fuel", "shell", "chevron", "auto", "repair"],
    "Professional Services": ["legal", "accounting", "consulting", "lawyer"],
    "Advertising": ["google ads", "facebook", "meta", "marketing"],
    "Utilities": ["electric", "water", "internet", "phone", "verizon", "att"],
    "Insurance": ["insurance", "state farm", "geico", "allstate"],
    "Education": ["udemy", "coursera", "university", "tuition", "training"],
}


class InputConfig(BaseModel):
    """Configuration for CSV export parsing."""

    transactions: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "date_format": "%Y-%m-%d",
            "column_mappings": {
                "id": "id",
                "date": "date",
                "amount": "amount",
                "merchant": "merchant",
                "description": "description",
                "source": "source",
            },
        }
    )
    receipts: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "date_format": "%Y-%m-%d",
            "column_mappings": {
                "id": "id",
                "date": "date",
                "amount": "amount",
                "merchant": "merchant",
                "category": "category",
                "image_url": "image_url",
                "created_at": "created_at",
                "transaction_id": "transaction_id",
            },
        }
    )


class AmountScoring(BaseModel):
    """Amount bands for transaction/receipt confidence, in currency units."""

    exact_tolerance: float = 0.01
    exact_weight: float = 0.5
    similar_tolerance: float = 1.0
    similar_weight: float = 0.3


class DateScoring(BaseModel):
    """Date bands for transaction/receipt confidence."""

    same_day_weight: float = 0.3
    window_days: int = 2
    window_weight: float = 0.2


class MerchantScoring(BaseModel):
    """Merchant name weights for transaction/receipt confidence."""

    exact_weight: float = 0.2
    partial_weight: float = 0.15


class MatchingConfig(BaseModel):
    """Configuration for the transaction/receipt matcher."""

    strategy: Literal["greedy", "optimal"] = "greedy"
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    candidate_limit: int = 5
    amount: AmountScoring = Field(default_factory=AmountScoring)
    date: DateScoring = Field(default_factory=DateScoring)
    merchant: MerchantScoring = Field(default_factory=MerchantScoring)


class DuplicateDateBand(BaseModel):
    """Points awarded when two receipt dates are at most ``max_days`` apart."""

    max_days: int
    points: int
    reason: str


class DuplicateConfig(BaseModel):
    """Configuration for duplicate receipt detection."""

    score_threshold: int = 50

    # Percentages of the candidate receipt's amount
    amount_exact_percent: float = 1.0
    amount_exact_points: int = 40
    amount_similar_percent: float = 5.0
    amount_similar_points: int = 20

    # Evaluated in order, first band that fits wins
    date_bands: list[DuplicateDateBand] = Field(
        default_factory=lambda: [
            DuplicateDateBand(max_days=0, points=30, reason="Same date"),
            DuplicateDateBand(max_days=1, points=20, reason="Within 1 day"),
            DuplicateDateBand(max_days=3, points=10, reason="Within 3 days"),
        ]
    )

    same_merchant_similarity: float = 0.8
    same_merchant_points: int = 20
    similar_merchant_similarity: float = 0.6
    similar_merchant_points: int = 10

    linked_transaction_points: int = 10


class CategoryConfig(BaseModel):
    """Keyword rules for category suggestions."""

    rules: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CATEGORY_RULES.items()}
    )
    max_suggestions: int = 3
    rank_by_hits: bool = False


class ReconciliationSettings(BaseModel):
    """Settings for the orchestration service."""

    # Persist the proposed pair for a new receipt without user review
    auto_confirm: bool = False


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "expense_reconciliation_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    matched: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Matched Pairs"))
    missing_receipts: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Missing Receipts")
    )
    unmatched_receipts: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Receipts")
    )
    duplicates: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Possible Duplicates")
    )
    audit_trail: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Audit Trail"))


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    audit_file: Optional[str] = None  # JSON lines, one per audit event


class ReconConfig(BaseModel):
    """Main configuration model for expense reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    categories: CategoryConfig = Field(default_factory=CategoryConfig)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReconConfig().model_dump(mode="json", exclude={"config_file_path"})


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Lists and scalars in ``override`` replace the base value; only nested
    mappings are merged. A user's category rules therefore extend the
    default table, while date bands are replaced wholesale.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Expense Reconciliation Configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
