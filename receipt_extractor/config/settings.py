"""
Configuration Management for Receipt Extractor

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Every policy choice the pipeline makes (which keys it
accepts, which keywords mean "expense", which date formats it tries, what
direction an unlabelled record gets) lives here rather than in code.
Nothing is hard-coded in the normalizer, so a deployment can tune behaviour
through the environment without touching the pipeline.
"""

from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Token in date_formats that selects ISO-8601 timestamp parsing
ISO_TIMESTAMP_FORMAT = "iso"


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class ExtractionSettings(BaseSettings):
    """
    Extraction policy: key aliases, keyword sets, date formats.
    
    Key and keyword lists are comma-separated strings (so they are easy to
    override from the environment) with a matching *_list property.
    Order matters: the first key that is present wins.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        extra="ignore"
    )
    
    # Direction policy
    default_is_expense: bool = Field(
        default=True,
        description="Direction given to records with no usable direction signal"
    )
    
    # Structural keys
    wrapper_keys: str = Field(
        default="transactions,items,data,results,records,receipts",
        description="Object keys that may hold the array of records"
    )
    
    # Field aliases
    amount_keys: str = Field(
        default="amount,total,total_amount,value",
        description="Keys tried for the transaction amount"
    )
    debit_keys: str = Field(
        default="debit",
        description="Amount keys that also imply an expense"
    )
    credit_keys: str = Field(
        default="credit",
        description="Amount keys that also imply income"
    )
    direction_keys: str = Field(
        default="isExpense,is_expense,expense",
        description="Keys holding a boolean expense flag"
    )
    type_keys: str = Field(
        default="type,transactionType,transaction_type,direction,kind",
        description="Keys holding a free-text transaction type"
    )
    note_keys: str = Field(
        default="note,description,merchant,label,desc,memo,narration,particulars",
        description="Keys tried for the descriptive note"
    )
    category_keys: str = Field(
        default="category",
        description="Keys tried for the category label"
    )
    date_keys: str = Field(
        default="date,transactionDate,transaction_date,txnDate,valueDate",
        description="Keys tried for the transaction date"
    )
    
    # Direction keywords (matched case-insensitively as substrings)
    expense_keywords: str = Field(
        default="expense,debit,purchase,withdrawal,payment,spend,outflow",
        description="Type keywords meaning money went out"
    )
    income_keywords: str = Field(
        default="income,credit,deposit,refund,salary,inflow",
        description="Type keywords meaning money came in"
    )
    
    # Dates are tried in order; the first format that parses wins
    date_formats: list[str] = Field(
        default_factory=lambda: [
            ISO_TIMESTAMP_FORMAT,
            "%Y-%m-%d",
            "%m/%d/%Y",
            "%d/%m/%Y",
            "%m-%d-%Y",
            "%d-%m-%Y",
            "%Y/%m/%d",
            "%d.%m.%Y",
            "%b %d, %Y",
            "%d %b %Y",
        ],
        description="Ordered date formats ('iso' = ISO-8601 timestamp)"
    )
    
    # Sanity threshold (warning only, never rejects)
    max_reasonable_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this get a suspicious_amount warning"
    )
    
    @field_validator(
        'wrapper_keys',
        'amount_keys',
        'direction_keys',
        'type_keys',
        'note_keys',
        'category_keys',
        'date_keys',
        'expense_keywords',
        'income_keywords',
    )
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """A key list with no entries would silently disable a field."""
        if not _split_csv(v):
            raise ValueError("At least one entry is required")
        return v
    
    @field_validator('date_formats')
    @classmethod
    def validate_date_formats(cls, v: list[str]) -> list[str]:
        """Every format is either 'iso' or a strptime pattern."""
        if not v:
            raise ValueError("At least one date format is required")
        for fmt in v:
            if fmt != ISO_TIMESTAMP_FORMAT and "%" not in fmt:
                raise ValueError(f"Not a strptime pattern: {fmt!r}")
        return v
    
    @property
    def wrapper_keys_list(self) -> list[str]:
        return _split_csv(self.wrapper_keys)
    
    @property
    def amount_keys_list(self) -> list[str]:
        return _split_csv(self.amount_keys)
    
    @property
    def debit_keys_list(self) -> list[str]:
        return _split_csv(self.debit_keys)
    
    @property
    def credit_keys_list(self) -> list[str]:
        return _split_csv(self.credit_keys)
    
    @property
    def direction_keys_list(self) -> list[str]:
        return _split_csv(self.direction_keys)
    
    @property
    def type_keys_list(self) -> list[str]:
        return _split_csv(self.type_keys)
    
    @property
    def note_keys_list(self) -> list[str]:
        return _split_csv(self.note_keys)
    
    @property
    def category_keys_list(self) -> list[str]:
        return _split_csv(self.category_keys)
    
    @property
    def date_keys_list(self) -> list[str]:
        return _split_csv(self.date_keys)
    
    @property
    def expense_keywords_list(self) -> list[str]:
        return [kw.lower() for kw in _split_csv(self.expense_keywords)]
    
    @property
    def income_keywords_list(self) -> list[str]:
        return [kw.lower() for kw in _split_csv(self.income_keywords)]


class AppSettings(BaseSettings):
    """
    Application-level settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON (False = human-readable console)"
    )
    
    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Sub-settings are built on access so a broken section
    # only fails the code that actually needs it
    
    @property
    def extraction(self) -> ExtractionSettings:
        return ExtractionSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each section that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}
    
    settings = get_settings()
    
    for name in ("extraction", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
