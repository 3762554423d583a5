from pydantic import Field
from pydantic_settings import BaseSettings


SYSTEM_INSTRUCTION = (
    "You are a professional travel planning assistant who builds detailed trip "
    "plans from the traveller's requirements. Your reply must be valid JSON."
)
BUDGET_SYSTEM_INSTRUCTION = (
    "You are a professional travel budget analyst. Your reply must be valid JSON."
)
MODEL = "gpt-4"

class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    llm_base_url: str | None = Field(default=None, env="LLM_BASE_URL")
    llm_api_key: str | None = Field(default=None, env="LLM_API_KEY")
    llm_model: str = Field(default=MODEL, env="LLM_MODEL")
    llm_temperature: float = Field(default=0.7)
    budget_temperature: float = Field(default=0.5)
    llm_timeout: float = Field(default=120.0, env="LLM_TIMEOUT")
    json_response_format: bool = Field(default=True)
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"

    def missing_llm_settings(self) -> list[str]:
        """Return the environment names of LLM settings that are not set."""
        missing = []
        if not self.llm_base_url:
            missing.append("LLM_BASE_URL")
        if not self.llm_api_key:
            missing.append("LLM_API_KEY")
        if not self.llm_model:
            missing.append("LLM_MODEL")
        return missing


settings = Settings()
