from pydantic_settings import BaseSettings, SettingsConfigDict
import functools

from pydantic import AnyHttpUrl


class Settings(BaseSettings):
    """
    Central configuration for the SpamZero API service.

    This class defines all environment-driven settings that control the
    application's runtime behavior - including the MongoDB connection used for
    prediction history, the remote classifier endpoint, and logging.

    Values are automatically populated from environment variables using the
    prefix `SPAMZERO_`, or from the `.env.dev` file when present.

    Examples
    --------
    - `SPAMZERO_MONGODB_URI=mongodb://localhost:27017`
    - `SPAMZERO_PREDICT_URL=https://my-space.hf.space/predict`
    - `SPAMZERO_LOG_LEVEL=DEBUG`

    Notes
    -----
    - `MONGODB_URI` is required; the service refuses to start without it.
    - `PREDICT_URL` is optional at startup, but every `/predict` call fails
      with a configuration error until it is set.
    """

    model_config = SettingsConfigDict(env_file=".env.dev", env_prefix="SPAMZERO_")

    # Connection string of the MongoDB deployment holding the history
    MONGODB_URI: str

    # Database and collection names for history records
    MONGODB_DB: str = "spamzero"
    MONGODB_COLLECTION: str = "history"

    # Remote spam classifier endpoint (e.g. a Hugging Face Space)
    PREDICT_URL: AnyHttpUrl | None = None

    # Largest accepted request body, in bytes
    MAX_PAYLOAD_BYTES: int = 1_000_000

    # Minimum log level (DEBUG, INFO, WARNING...)
    LOG_LEVEL: str = "INFO"

    # Emit logs in structured JSON format
    LOG_JSON: bool = True

    @classmethod
    def env(cls) -> "Settings":
        """
        Load and validate settings from environment variables.

        Returns
        -------
        Settings
            A validated Settings instance with all fields populated from
            environment variables or defaults defined above.

        Raises
        ------
        ValidationError
            A required setting such as `MONGODB_URI` is missing.
        """
        return Settings.model_validate({})


@functools.cache
def get_settings() -> Settings:
    """
    Retrieve a cached global instance of the Settings.

    All routes share the same settings instance unless explicitly overridden
    through `app.dependency_overrides`.
    """
    return Settings.env()
