from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CTREPORT_",
    )

    # --- Reference data ---
    data_dir: Path | None = None  # None -> JSON files shipped in ctreport/data
    closing_text: str = "Sin otros hallazgos."

    # --- OpenAI fallback classifier ---
    use_openai: bool = False
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    llm_timeout_seconds: float = 20.0
    llm_candidate_limit: int = 30

    # --- Web interface ---
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    max_dictation_length: int = 5000

    @property
    def llm_enabled(self) -> bool:
        return self.use_openai and bool(self.openai_api_key)


settings = Settings()
