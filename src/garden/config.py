from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://garden:devpassword@db:5432/garden"
    REDIS_URL: str = "redis://redis:6379/0"

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CHECKOUT_SUCCESS_URL: str = (
        "https://thegarden.nctr.live/purchase/success?session_id={CHECKOUT_SESSION_ID}"
    )
    CHECKOUT_CANCEL_URL: str = "https://thegarden.nctr.live/purchase/cancel"

    AFFILIATE_WEBHOOK_SECRET: str = ""
    NCTR_LIVE_WEBHOOK_SECRET: str = ""
    FREE_TRIAL_WEBHOOK_SECRET: str = ""
    FREE_TRIAL_ALLOWED_IPS: list[str] = ["34.171.245.170"]
    # Peers whose X-Forwarded-For is believed; everyone else is taken at face value.
    FORWARDED_ALLOW_IPS: list[str] = ["127.0.0.1"]

    LOYALIZE_API_URL: str = "https://api.loyalize.com"
    LOYALIZE_API_KEY: str = ""

    NCTR_CONTRACT_ADDRESS: str = "0x973104fAa7F2B11787557e85953ECA6B4e262328"
    DEFAULT_NCTR_PER_DOLLAR: float = 50.0
    # Affiliate webhook orders from partners with no brand row.
    AFFILIATE_DEFAULT_NCTR_PER_DOLLAR: float = 0.01

    JWT_SECRET_KEY: str = ""
    JWT_AUDIENCE: str = "authenticated"

    APP_ENV: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
