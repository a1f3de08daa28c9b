from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "", "case_sensitive": False}

    # App
    environment: str = "development"
    debug: bool = True
    app_name: str = "RetiNet"
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    log_json: bool = False

    # Analysis defaults (overridable per request)
    grid_code: str = "iec_default"
    default_conductor: str = "Mink"
    power_factor_policy: str = "kva_weighted"
    transformer_regulation: bool = False

    # Regional library tables; built-in SANS tables when unset
    conductor_library_path: str | None = None
    transformer_table_path: str | None = None


settings = Settings()
