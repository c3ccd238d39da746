from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """Class to store all the settings of the application."""

    PROBABILITY_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    LINEAR_PREDICTOR_PREFIX: str = Field(default="n", min_length=1)
    PROBABILITY_PREFIX: str = Field(default="p", min_length=1)
    PREDICTION_PREFIX: str = Field(default="I", min_length=1)
    EQUATION_KEY_PREFIX: str = Field(default="Item_", min_length=1)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="IFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _distinct_column_prefixes(self) -> Self:
        prefixes = [
            self.LINEAR_PREDICTOR_PREFIX,
            self.PROBABILITY_PREFIX,
            self.PREDICTION_PREFIX,
        ]
        if len(set(prefixes)) != len(prefixes):
            raise ValueError(
                f"Output column prefixes must be distinct, got {prefixes}"
            )
        return self

    def column_names(self, item: int) -> tuple[str, str, str]:
        """Linear predictor, probability and prediction column names of an item."""
        return (
            f"{self.LINEAR_PREDICTOR_PREFIX}{item}",
            f"{self.PROBABILITY_PREFIX}{item}",
            f"{self.PREDICTION_PREFIX}{item}",
        )

    def equation_key(self, item: int) -> str:
        """Key of an item's equation in the prediction result."""
        return f"{self.EQUATION_KEY_PREFIX}{item}"


settings = Settings()  # type: ignore
